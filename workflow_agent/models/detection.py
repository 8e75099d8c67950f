"""
Detection result models.

The detection result is produced by an external project analyzer. It is
parsed once into frozen dataclasses so generators can never mutate it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.errors import InvalidInputError


# Ecosystem used as the conflict category for tools that don't declare one
TOOL_ECOSYSTEMS: Dict[str, str] = {
    "npm": "javascript",
    "yarn": "javascript",
    "pnpm": "javascript",
    "bun": "javascript",
    "webpack": "javascript",
    "vite": "javascript",
    "pip": "python",
    "poetry": "python",
    "pipenv": "python",
    "uv": "python",
    "setuptools": "python",
    "maven": "java",
    "gradle": "java",
    "cargo": "rust",
    "go": "go",
    "go modules": "go",
    "bundler": "ruby",
    "composer": "php",
    "dotnet": "csharp",
    "nuget": "csharp",
}


def _get(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Read the first present key, accepting camelCase and snake_case spellings."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def _confidence(value: Any, owner: str) -> float:
    if value is None:
        return 1.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(
            f"Confidence for '{owner}' is not a number: {value!r}",
            component="detection",
            stage="parse",
        )
    if not 0.0 <= confidence <= 1.0:
        raise InvalidInputError(
            f"Confidence for '{owner}' must be within [0, 1], got {confidence}",
            component="detection",
            stage="parse",
        )
    return confidence


def _name(data: Mapping[str, Any], kind: str, key: str = "name") -> str:
    if not isinstance(data, Mapping):
        raise InvalidInputError(f"{kind} entry must be a mapping, got {type(data).__name__}",
                                component="detection", stage="parse")
    name = data.get(key)
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError(f"{kind} entry is missing '{key}'",
                                component="detection", stage="parse")
    return name.strip()


def _entries(data: Mapping[str, Any], *keys: str) -> List[Any]:
    value = _get(data, *keys, default=None)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise InvalidInputError(f"'{keys[0]}' must be a list", component="detection", stage="parse")
    return list(value)


@dataclass(frozen=True)
class FrameworkInfo:
    """A detected framework candidate."""
    name: str
    confidence: float = 1.0
    category: str = "general"
    version: Optional[str] = None
    evidence: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FrameworkInfo":
        name = _name(data, "framework")
        return cls(
            name=name,
            confidence=_confidence(data.get("confidence"), name),
            category=str(data.get("category") or data.get("type") or "general"),
            version=data.get("version"),
            evidence=tuple(str(e) for e in data.get("evidence") or ()),
        )

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class LanguageInfo:
    """A detected programming language."""
    name: str
    confidence: float = 1.0
    version: Optional[str] = None
    primary: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LanguageInfo":
        name = _name(data, "language")
        return cls(
            name=name,
            confidence=_confidence(data.get("confidence"), name),
            version=data.get("version"),
            primary=bool(data.get("primary", False)),
        )

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class ToolInfo:
    """A detected build tool, package manager or testing framework."""
    name: str
    confidence: float = 1.0
    version: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolInfo":
        if isinstance(data, str):
            return cls(name=data)
        name = _name(data, "tool")
        return cls(
            name=name,
            confidence=_confidence(data.get("confidence"), name),
            version=data.get("version"),
            category=data.get("category") or data.get("type"),
        )

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def ecosystem(self) -> str:
        """Conflict category: declared category, else the tool's ecosystem."""
        return self.category or TOOL_ECOSYSTEMS.get(self.key, self.key)


@dataclass(frozen=True)
class DeploymentTarget:
    """A detected deployment platform."""
    platform: str
    confidence: float = 1.0
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeploymentTarget":
        if isinstance(data, str):
            return cls(platform=data)
        key = "platform" if "platform" in data else "name"
        platform = _name(data, "deployment target", key=key)
        return cls(
            platform=platform,
            confidence=_confidence(data.get("confidence"), platform),
            type=data.get("type"),
        )

    @property
    def key(self) -> str:
        return self.platform.lower()


@dataclass(frozen=True)
class ProjectMetadata:
    """Basic project identity."""
    name: str = "project"
    description: str = ""
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ProjectMetadata":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise InvalidInputError("projectMetadata must be a mapping",
                                    component="detection", stage="parse")
        return cls(
            name=str(data.get("name") or "project"),
            description=str(data.get("description") or ""),
            version=data.get("version"),
        )


@dataclass(frozen=True)
class DetectionResult:
    """Structured output of project analysis, consumed read-only."""
    frameworks: Tuple[FrameworkInfo, ...] = ()
    languages: Tuple[LanguageInfo, ...] = ()
    build_tools: Tuple[ToolInfo, ...] = ()
    package_managers: Tuple[ToolInfo, ...] = ()
    testing_frameworks: Tuple[ToolInfo, ...] = ()
    deployment_targets: Tuple[DeploymentTarget, ...] = ()
    project_metadata: ProjectMetadata = field(default_factory=ProjectMetadata)

    def __post_init__(self):
        primaries = [lang.name for lang in self.languages if lang.primary]
        if len(primaries) > 1:
            raise InvalidInputError(
                f"At most one language may be primary, got: {', '.join(primaries)}",
                component="detection",
                stage="parse",
                details={"primary_languages": primaries},
            )

    @classmethod
    def from_dict(cls, data: Any) -> "DetectionResult":
        """
        Parse analyzer output.

        Args:
            data: Mapping in the analyzer's JSON shape (camelCase or snake_case keys)

        Returns:
            Parsed detection result

        Raises:
            InvalidInputError: If the payload is null or malformed
        """
        if data is None:
            raise InvalidInputError("Detection result is required", component="detection", stage="parse")
        if not isinstance(data, Mapping):
            raise InvalidInputError(
                f"Detection result must be a mapping, got {type(data).__name__}",
                component="detection",
                stage="parse",
            )

        return cls(
            frameworks=tuple(FrameworkInfo.from_dict(f) for f in _entries(data, "frameworks")),
            languages=tuple(LanguageInfo.from_dict(l) for l in _entries(data, "languages")),
            build_tools=tuple(ToolInfo.from_dict(t) for t in _entries(data, "buildTools", "build_tools")),
            package_managers=tuple(
                ToolInfo.from_dict(t) for t in _entries(data, "packageManagers", "package_managers")
            ),
            testing_frameworks=tuple(
                ToolInfo.from_dict(t) for t in _entries(data, "testingFrameworks", "testing_frameworks")
            ),
            deployment_targets=tuple(
                DeploymentTarget.from_dict(t) for t in _entries(data, "deploymentTargets", "deployment_targets")
            ),
            project_metadata=ProjectMetadata.from_dict(_get(data, "projectMetadata", "project_metadata")),
        )

    @classmethod
    def coerce(cls, data: Any) -> "DetectionResult":
        """Accept an already-built DetectionResult or a raw mapping."""
        if isinstance(data, cls):
            return data
        return cls.from_dict(data)

    @property
    def is_empty(self) -> bool:
        return not self.languages and not self.frameworks

    def summary(self) -> str:
        """Short human-readable summary used in output metadata."""
        parts = []
        if self.languages:
            parts.append("Languages: " + ", ".join(l.name for l in self.languages))
        if self.frameworks:
            parts.append("Frameworks: " + ", ".join(f.name for f in self.frameworks))
        return "; ".join(parts) or "none"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frameworks": [
                {"name": f.name, "version": f.version, "confidence": f.confidence,
                 "evidence": list(f.evidence), "category": f.category}
                for f in self.frameworks
            ],
            "languages": [
                {"name": l.name, "version": l.version, "confidence": l.confidence, "primary": l.primary}
                for l in self.languages
            ],
            "buildTools": [{"name": t.name, "confidence": t.confidence} for t in self.build_tools],
            "packageManagers": [{"name": t.name, "confidence": t.confidence} for t in self.package_managers],
            "testingFrameworks": [{"name": t.name, "confidence": t.confidence} for t in self.testing_frameworks],
            "deploymentTargets": [{"platform": t.platform, "confidence": t.confidence}
                                  for t in self.deployment_targets],
            "projectMetadata": {
                "name": self.project_metadata.name,
                "description": self.project_metadata.description,
                "version": self.project_metadata.version,
            },
        }
