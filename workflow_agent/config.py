"""
Configuration management for the workflow generation engine.
Handles environment variables and engine-wide settings.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class GeneratorSettings:
    """Settings shared by every workflow generator."""
    generator_version: str = field(default_factory=lambda: os.getenv("WORKFLOW_GENERATOR_VERSION", "1.0.0"))
    default_branch: str = field(default_factory=lambda: os.getenv("WORKFLOW_DEFAULT_BRANCH", "main"))
    runner: str = field(default_factory=lambda: os.getenv("WORKFLOW_RUNNER", "ubuntu-latest"))
    timeout_seconds: float = field(default_factory=lambda: float(os.getenv("WORKFLOW_TIMEOUT_SECONDS", "30")))
    min_relevance: float = field(default_factory=lambda: float(os.getenv("WORKFLOW_MIN_RELEVANCE", "0.5")))
    low_confidence_threshold: float = field(default_factory=lambda: float(os.getenv("WORKFLOW_LOW_CONFIDENCE", "0.5")))
    matrix_threshold: int = field(default_factory=lambda: int(os.getenv("WORKFLOW_MATRIX_THRESHOLD", "8")))
    job_timeout_minutes: int = 30


@dataclass
class AgentHooksSettings:
    """Settings for agent-hook automation workflows."""
    webhook_url: str = field(default_factory=lambda: os.getenv("AGENT_HOOKS_WEBHOOK_URL", ""))
    automation_level: str = field(default_factory=lambda: os.getenv("AGENT_HOOKS_AUTOMATION_LEVEL", "standard"))
    build_time_threshold_minutes: int = 10
    test_time_threshold_minutes: int = 15
    deploy_time_threshold_minutes: int = 20
    failure_rate_threshold: int = 5
    resource_usage_threshold: int = 80


@dataclass
class Config:
    """Main configuration container."""
    generator: GeneratorSettings = field(default_factory=GeneratorSettings)
    agent_hooks: AgentHooksSettings = field(default_factory=AgentHooksSettings)

    # Paths
    output_dir: Path = field(default_factory=lambda: Path(os.getenv("OUTPUT_DIR", ".github/workflows")))

    verbose: bool = field(default_factory=lambda: _env_bool("VERBOSE"))

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not 0.0 <= self.generator.min_relevance <= 1.0:
            issues.append("WORKFLOW_MIN_RELEVANCE must be between 0 and 1")
        if not 0.0 <= self.generator.low_confidence_threshold <= 1.0:
            issues.append("WORKFLOW_LOW_CONFIDENCE must be between 0 and 1")
        if self.generator.timeout_seconds <= 0:
            issues.append("WORKFLOW_TIMEOUT_SECONDS must be positive")
        if self.generator.matrix_threshold < 1:
            issues.append("WORKFLOW_MATRIX_THRESHOLD must be at least 1")
        if self.agent_hooks.automation_level not in ("minimal", "standard", "full"):
            issues.append("AGENT_HOOKS_AUTOMATION_LEVEL must be minimal, standard or full")

        return issues

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls()


# Global config instance
config = Config.from_env()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config
