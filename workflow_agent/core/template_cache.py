"""
Read-through cache of resolved action references.

Keys are (language, framework, action-name) tuples; values are pinned
`owner/repo@version` references. Values are pure functions of their key, so
concurrent upserts of the same key always store identical data.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .logger import get_logger

logger = get_logger(__name__)


# Pinned major versions for every action the generators emit
ACTION_VERSIONS: Dict[str, str] = {
    "actions/checkout": "v4",
    "actions/setup-node": "v4",
    "actions/setup-python": "v5",
    "actions/setup-go": "v5",
    "actions/setup-java": "v4",
    "actions/setup-dotnet": "v4",
    "actions/cache": "v4",
    "actions/upload-artifact": "v4",
    "actions/download-artifact": "v4",
    "actions/github-script": "v7",
    "actions/configure-pages": "v5",
    "actions/upload-pages-artifact": "v3",
    "actions/deploy-pages": "v4",
    "actions-rust-lang/setup-rust-toolchain": "v1",
    "ruby/setup-ruby": "v1",
    "shivammathur/setup-php": "v2",
    "pnpm/action-setup": "v4",
    "snok/install-poetry": "v1",
    "github/codeql-action/init": "v3",
    "github/codeql-action/analyze": "v3",
    "github/codeql-action/upload-sarif": "v3",
    "actions/dependency-review-action": "v4",
    "gitleaks/gitleaks-action": "v2",
    "docker/setup-buildx-action": "v3",
    "docker/login-action": "v3",
    "docker/build-push-action": "v6",
    "docker/metadata-action": "v5",
    "aws-actions/configure-aws-credentials": "v4",
    "google-github-actions/auth": "v2",
    "azure/login": "v2",
    "azure/setup-kubectl": "v4",
    "amondnet/vercel-action": "v25",
    "nwtgck/actions-netlify": "v3",
    "akhileshns/heroku-deploy": "v3",
    "trstringer/manual-approval": "v1",
    "codecov/codecov-action": "v4",
    "grafana/setup-k6-action": "v1",
    "treosh/lighthouse-ci-action": "v12",
    "benchmark-action/github-action-benchmark": "v1",
    "dorny/paths-filter": "v3",
    "slackapi/slack-github-action": "v1",
    "peter-evans/create-pull-request": "v6",
    "actions/stale": "v9",
    "fossa-contrib/fossa-action": "v3",
    "returntocorp/semgrep-action": "v1",
}

# Setup action per language
SETUP_ACTIONS: Dict[str, str] = {
    "javascript": "actions/setup-node",
    "typescript": "actions/setup-node",
    "python": "actions/setup-python",
    "go": "actions/setup-go",
    "java": "actions/setup-java",
    "kotlin": "actions/setup-java",
    "rust": "actions-rust-lang/setup-rust-toolchain",
    "ruby": "ruby/setup-ruby",
    "php": "shivammathur/setup-php",
    "csharp": "actions/setup-dotnet",
}

CacheKey = Tuple[str, str, str]


@dataclass(frozen=True)
class ActionReference:
    """A resolved action with a pinned version."""
    action: str
    version: str
    fallback: bool = False

    @property
    def ref(self) -> str:
        return f"{self.action}@{self.version}"


class TemplateCache:
    """Thread-safe, lazily populated cache of action references."""

    def __init__(self):
        self._entries: Dict[CacheKey, ActionReference] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def resolve(self, language: Optional[str], framework: Optional[str], action: str) -> ActionReference:
        """
        Resolve an action to a pinned reference.

        Args:
            language: Primary language key, or None
            framework: Framework key, or None
            action: Action name without version (e.g. "actions/cache") or
                the pseudo-action "setup" for the language setup action

        Returns:
            The pinned reference; `fallback` is set when no specific entry
            exists for the key
        """
        key = ((language or "").lower(), (framework or "").lower(), action)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self.hits += 1
                return cached

        resolved = self._lookup(*key)
        with self._lock:
            self.misses += 1
            self._entries[key] = resolved
        logger.debug("template_cache_miss", language=key[0], framework=key[1], action=action,
                     ref=resolved.ref, fallback=resolved.fallback)
        return resolved

    def setup_action(self, language: Optional[str]) -> Optional[ActionReference]:
        """Setup action for a language, or None when there is no dedicated one."""
        ref = self.resolve(language, None, "setup")
        return None if ref.fallback else ref

    def ref(self, action: str, language: Optional[str] = None, framework: Optional[str] = None) -> str:
        return self.resolve(language, framework, action).ref

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _lookup(language: str, framework: str, action: str) -> ActionReference:
        if action == "setup":
            setup = SETUP_ACTIONS.get(language)
            if setup is None:
                return ActionReference("actions/checkout", ACTION_VERSIONS["actions/checkout"], fallback=True)
            return ActionReference(setup, ACTION_VERSIONS[setup])
        if action in ACTION_VERSIONS:
            return ActionReference(action, ACTION_VERSIONS[action])
        # Unknown actions are still pinned to a major version
        return ActionReference(action, "v1", fallback=True)
