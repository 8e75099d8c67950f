"""
Best-practices scoring for workflow documents.

The score starts at zero and earns a quarter point each for explicit
permissions, pinned actions, dependency caching and a security scan.
`write-all` permissions and actions pinned to a moving branch are penalised.
The result is clamped to [0, 1].
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Tuple

# Actions pinned to a release tag (v4, v1.2.3) or a full commit sha
PINNED_REF = re.compile(r"^(v\d+(\.\d+)*|[0-9a-f]{40})$")
MOVING_REFS = ("main", "master", "latest", "HEAD", "stable", "nightly")

SECURITY_ACTIONS = (
    "github/codeql-action/analyze",
    "actions/dependency-review-action",
    "gitleaks/gitleaks-action",
    "returntocorp/semgrep-action",
    "aquasecurity/trivy-action",
    "fossa-contrib/fossa-action",
)
SECURITY_COMMANDS = re.compile(
    r"\b(npm audit|yarn audit|pnpm audit|pip-audit|safety check|cargo audit|govulncheck|bundle audit|"
    r"bundler-audit|composer audit|dependency-check|trivy|snyk)\b"
)

PERMISSIONS_WEIGHT = 0.25
PINNED_WEIGHT = 0.25
CACHING_WEIGHT = 0.25
SECURITY_WEIGHT = 0.25
WRITE_ALL_PENALTY = 0.25
MOVING_REF_PENALTY = 0.1


@dataclass
class ScoreBreakdown:
    """How a best-practices score was reached."""
    score: float
    rewards: List[str] = field(default_factory=list)
    penalties: List[str] = field(default_factory=list)


def iter_steps(document: Mapping[str, Any]) -> Iterator[Tuple[str, Mapping[str, Any]]]:
    """Yield (job_id, step) pairs for every well-formed step."""
    jobs = document.get("jobs")
    if not isinstance(jobs, Mapping):
        return
    for job_id, job in jobs.items():
        if not isinstance(job, Mapping):
            continue
        steps = job.get("steps")
        if not isinstance(steps, list):
            continue
        for step in steps:
            if isinstance(step, Mapping):
                yield str(job_id), step


def split_action(uses: str) -> Tuple[str, str]:
    """Split `owner/repo@ref` into its name and ref ('' when unversioned)."""
    if uses.startswith("./") or uses.startswith("docker://"):
        return uses, "local"
    name, _, ref = uses.partition("@")
    return name, ref


def _all_permissions(document: Mapping[str, Any]) -> List[Any]:
    found = []
    if "permissions" in document:
        found.append(document["permissions"])
    jobs = document.get("jobs")
    if isinstance(jobs, Mapping):
        found.extend(job["permissions"] for job in jobs.values()
                     if isinstance(job, Mapping) and "permissions" in job)
    return found


def score_workflow(document: Mapping[str, Any]) -> ScoreBreakdown:
    """
    Score a parsed workflow document.

    Args:
        document: Workflow mapping as returned by yaml.safe_load

    Returns:
        ScoreBreakdown with the clamped score and the reasons behind it
    """
    breakdown = ScoreBreakdown(score=0.0)
    score = 0.0

    permissions = _all_permissions(document)
    if any(p == "write-all" for p in permissions):
        score -= WRITE_ALL_PENALTY
        breakdown.penalties.append("write-all permissions")
    elif "permissions" in document and isinstance(document["permissions"], (Mapping, str)):
        score += PERMISSIONS_WEIGHT
        breakdown.rewards.append("explicit permissions")

    refs: List[Tuple[str, str]] = []
    cached = False
    scanned = False
    for _, step in iter_steps(document):
        uses = step.get("uses")
        if isinstance(uses, str):
            name, ref = split_action(uses)
            refs.append((name, ref))
            with_ = step.get("with") or {}
            if name == "actions/cache" or (isinstance(with_, Mapping) and "cache" in with_):
                cached = True
            if name in SECURITY_ACTIONS:
                scanned = True
        run = step.get("run")
        if isinstance(run, str):
            if SECURITY_COMMANDS.search(run):
                scanned = True

    moving = [name for name, ref in refs if ref in MOVING_REFS]
    if refs and all(ref == "local" or PINNED_REF.match(ref) for _, ref in refs):
        score += PINNED_WEIGHT
        breakdown.rewards.append("pinned actions")
    if moving:
        score -= MOVING_REF_PENALTY * len(moving)
        breakdown.penalties.append(f"actions on moving refs: {', '.join(sorted(set(moving)))}")

    if cached:
        score += CACHING_WEIGHT
        breakdown.rewards.append("dependency caching")
    if scanned:
        score += SECURITY_WEIGHT
        breakdown.rewards.append("security scan")

    breakdown.score = round(min(1.0, max(0.0, score)), 2)
    return breakdown


def best_practice_suggestions(document: Mapping[str, Any]) -> List[str]:
    """Suggestions for common omissions."""
    suggestions: List[str] = []
    if "permissions" not in document:
        suggestions.append("Add an explicit top-level permissions block to limit the GITHUB_TOKEN scope")
    if "concurrency" not in document:
        suggestions.append("Add a concurrency group to cancel superseded runs")

    jobs = document.get("jobs")
    if isinstance(jobs, Mapping):
        missing = [str(job_id) for job_id, job in jobs.items()
                   if isinstance(job, Mapping) and "timeout-minutes" not in job and "uses" not in job]
        if missing:
            suggestions.append(f"Set timeout-minutes on jobs: {', '.join(missing)}")

    has_cache = any(
        str(step.get("uses") or "").startswith("actions/cache")
        or "cache" in (step.get("with") or {})
        for _, step in iter_steps(document)
        if isinstance(step.get("with") or {}, Mapping)
    )
    if not has_cache:
        suggestions.append("Cache dependencies to speed up repeated runs")
    return suggestions
