"""
Conflict resolution for detection results.

When the analyzer reports several candidates in the same category (two
frontend frameworks, two JavaScript package managers, ...) exactly one is
selected. The selection is computed once per generation call and shared by
every generator so all produced files agree.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from ..models.detection import (
    DeploymentTarget,
    DetectionResult,
    FrameworkInfo,
    LanguageInfo,
    ToolInfo,
)
from .errors import (
    ConflictWarning,
    DegenerateInputWarning,
    GenerationWarning,
    LowConfidenceWarning,
)
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Languages implied by a framework when the analyzer gave none
FRAMEWORK_LANGUAGES: Dict[str, str] = {
    "react": "javascript",
    "vue": "javascript",
    "angular": "typescript",
    "svelte": "javascript",
    "next.js": "javascript",
    "nextjs": "javascript",
    "nuxt": "javascript",
    "express": "javascript",
    "nestjs": "typescript",
    "django": "python",
    "flask": "python",
    "fastapi": "python",
    "spring": "java",
    "spring boot": "java",
    "gin": "go",
    "echo": "go",
    "actix": "rust",
    "rocket": "rust",
    "rails": "ruby",
    "laravel": "php",
}


@dataclass(frozen=True)
class ResolvedDetection:
    """Detection data after conflicts have been resolved."""
    detection: DetectionResult
    primary_language: Optional[LanguageInfo]
    languages: Tuple[LanguageInfo, ...]
    frameworks: Tuple[FrameworkInfo, ...]
    build_tools: Tuple[ToolInfo, ...]
    package_managers: Tuple[ToolInfo, ...]
    testing_frameworks: Tuple[ToolInfo, ...]
    deployment_targets: Tuple[DeploymentTarget, ...]
    warnings: Tuple[GenerationWarning, ...] = ()

    @property
    def language(self) -> Optional[str]:
        """Primary language key (lower case), or None."""
        return self.primary_language.key if self.primary_language else None

    @property
    def primary_framework(self) -> Optional[FrameworkInfo]:
        if not self.frameworks:
            return None
        return max(self.frameworks, key=lambda f: f.confidence)

    @property
    def framework(self) -> Optional[str]:
        fw = self.primary_framework
        return fw.key if fw else None

    @property
    def package_manager(self) -> Optional[str]:
        """Package manager for the primary language's ecosystem."""
        return self._tool_for_language(self.package_managers)

    @property
    def project_name(self) -> str:
        return self.detection.project_metadata.name

    @property
    def summary(self) -> str:
        return self.detection.summary()

    def has_target(self, *platforms: str) -> bool:
        wanted = {p.lower() for p in platforms}
        return any(t.key in wanted for t in self.deployment_targets)

    def testing_framework_names(self) -> List[str]:
        return [t.key for t in self.testing_frameworks]

    def _tool_for_language(self, tools: Sequence[ToolInfo]) -> Optional[str]:
        if not tools:
            return None
        ecosystem = self.language
        if ecosystem == "typescript":
            ecosystem = "javascript"
        for tool in tools:
            if tool.ecosystem == ecosystem:
                return tool.key
        return tools[0].key


def _select(
    candidates: Sequence[T],
    category_of: Callable[[T], str],
    label: str,
    min_relevance: float,
    warnings: List[GenerationWarning],
) -> Tuple[T, ...]:
    """Pick the highest-confidence candidate per category; first listed wins ties."""
    groups: "OrderedDict[str, List[T]]" = OrderedDict()
    for candidate in candidates:
        groups.setdefault(category_of(candidate), []).append(candidate)

    winners: List[T] = []
    for category, members in groups.items():
        # max() returns the first maximal element, which preserves declaration order on ties
        winner = max(members, key=lambda c: c.confidence)
        winners.append(winner)

        relevant = [m for m in members if m.confidence >= min_relevance]
        if len(relevant) > 1:
            rejected = [m for m in relevant if m is not winner]
            names = ", ".join(f"{m.name} ({m.confidence:.2f})" for m in rejected)
            warnings.append(ConflictWarning(
                f"Multiple {label}s detected in category '{category}': selected "
                f"{winner.name} ({winner.confidence:.2f}), rejected {names}",
                category=category,
                selected=winner.name,
                rejected=[m.name for m in rejected],
            ))
            logger.info("conflict_resolved", category=category, selected=winner.name,
                        rejected=[m.name for m in rejected])

    # Keep the original declaration order for determinism
    order = {id(c): i for i, c in enumerate(candidates)}
    return tuple(sorted(winners, key=lambda c: order[id(c)]))


def resolve_conflicts(
    detection: DetectionResult,
    min_relevance: float = 0.5,
    low_confidence_threshold: float = 0.5,
) -> ResolvedDetection:
    """
    Resolve conflicting candidates in a detection result.

    Args:
        detection: Parsed detection result (left untouched)
        min_relevance: Candidates below this confidence don't count as conflicts
        low_confidence_threshold: Selections below this get a low-confidence warning

    Returns:
        ResolvedDetection shared by every generator in one call
    """
    warnings: List[GenerationWarning] = []

    frameworks = _select(detection.frameworks, lambda f: f.category.lower(), "framework",
                         min_relevance, warnings)
    build_tools = _select(detection.build_tools, lambda t: t.ecosystem, "build tool", min_relevance, warnings)
    package_managers = _select(detection.package_managers, lambda t: t.ecosystem, "package manager",
                               min_relevance, warnings)

    languages = detection.languages
    primary = next((l for l in languages if l.primary), None)
    if primary is None and languages:
        primary = max(languages, key=lambda l: l.confidence)
    if primary is None and frameworks:
        inferred = FRAMEWORK_LANGUAGES.get(max(frameworks, key=lambda f: f.confidence).key)
        if inferred:
            primary = LanguageInfo(name=inferred, confidence=0.5, primary=True)
            warnings.append(LowConfidenceWarning(
                f"No languages detected - inferred {inferred} from frameworks",
                language=inferred,
            ))

    if primary is None:
        warnings.append(DegenerateInputWarning("No languages detected - using generic workflow"))
    elif primary.confidence < low_confidence_threshold and primary in languages:
        warnings.append(LowConfidenceWarning(
            f"Primary language {primary.name} has low confidence ({primary.confidence:.2f})",
            language=primary.name,
        ))

    if not frameworks:
        warnings.append(DegenerateInputWarning("No frameworks detected - using language defaults"))
    for fw in frameworks:
        if fw.confidence < low_confidence_threshold:
            warnings.append(LowConfidenceWarning(
                f"Framework {fw.name} selected with low confidence ({fw.confidence:.2f})",
                framework=fw.name,
            ))

    if not detection.testing_frameworks:
        warnings.append(DegenerateInputWarning("No testing frameworks detected - basic test commands used"))

    return ResolvedDetection(
        detection=detection,
        primary_language=primary,
        languages=languages,
        frameworks=frameworks,
        build_tools=build_tools,
        package_managers=package_managers,
        testing_frameworks=detection.testing_frameworks,
        deployment_targets=detection.deployment_targets,
        warnings=tuple(warnings),
    )
