"""
Generation options.

Options are immutable. They are built through GenerationOptionsBuilder, which
applies the documented defaults field by field, so a partially specified
request never leaves a field unset.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar

from ..core.errors import InvalidInputError


class WorkflowType(Enum):
    """Kinds of workflow the base generators produce."""
    CI = "ci"
    CD = "cd"
    SECURITY = "security"
    PERFORMANCE = "performance"
    MAINTENANCE = "maintenance"
    TESTING = "testing"
    MONITORING = "monitoring"
    RELEASE = "release"
    # Produced by the specialised generators, never requested directly
    DEPLOYMENT = "deployment"
    PROMOTION = "promotion"
    ROLLBACK = "rollback"
    ADVANCED = "advanced"
    AGENT_HOOKS = "agent-hooks"


class OptimizationLevel(Enum):
    BASIC = "basic"
    STANDARD = "standard"
    AGGRESSIVE = "aggressive"


class SecurityLevel(Enum):
    STANDARD = "standard"
    ENTERPRISE = "enterprise"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """Convert a raw value into an enum member or raise InvalidInputError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInputError(
            f"Invalid {field_name} '{value}'. Expected one of: {allowed}",
            component="options",
            stage="parse",
        )


@dataclass(frozen=True)
class EnvironmentManagementOptions:
    """Extra steps added to environment deploy workflows."""
    include_secret_validation: bool = False
    include_oidc: bool = False
    include_config_generation: bool = False
    generate_env_files: bool = False
    auto_detect_secrets: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "EnvironmentManagementOptions":
        if not data:
            return cls()
        return cls(
            include_secret_validation=bool(data.get("includeSecretValidation",
                                                    data.get("include_secret_validation", False))),
            include_oidc=bool(data.get("includeOIDC", data.get("include_oidc", False))),
            include_config_generation=bool(data.get("includeConfigGeneration",
                                                    data.get("include_config_generation", False))),
            generate_env_files=bool(data.get("generateEnvFiles", data.get("generate_env_files", False))),
            auto_detect_secrets=bool(data.get("autoDetectSecrets", data.get("auto_detect_secrets", False))),
        )


@dataclass(frozen=True)
class GenerationOptions:
    """Options controlling a generation call."""
    workflow_type: WorkflowType = WorkflowType.CI
    optimization_level: OptimizationLevel = OptimizationLevel.STANDARD
    security_level: SecurityLevel = SecurityLevel.STANDARD
    include_comments: bool = True
    agent_hooks_enabled: bool = False
    environment_management: EnvironmentManagementOptions = field(default_factory=EnvironmentManagementOptions)

    @classmethod
    def builder(cls) -> "GenerationOptionsBuilder":
        return GenerationOptionsBuilder()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "GenerationOptions":
        """Build options from a camelCase or snake_case mapping."""
        builder = GenerationOptionsBuilder()
        if not data:
            return builder.build()
        if not isinstance(data, Mapping):
            raise InvalidInputError("Generation options must be a mapping", component="options", stage="parse")

        def pick(camel: str, snake: str) -> Any:
            return data.get(camel, data.get(snake))

        if pick("workflowType", "workflow_type") is not None:
            builder.workflow_type(pick("workflowType", "workflow_type"))
        if pick("optimizationLevel", "optimization_level") is not None:
            builder.optimization_level(pick("optimizationLevel", "optimization_level"))
        if pick("securityLevel", "security_level") is not None:
            builder.security_level(pick("securityLevel", "security_level"))
        if pick("includeComments", "include_comments") is not None:
            builder.include_comments(bool(pick("includeComments", "include_comments")))
        if pick("agentHooksEnabled", "agent_hooks_enabled") is not None:
            builder.agent_hooks_enabled(bool(pick("agentHooksEnabled", "agent_hooks_enabled")))
        env = pick("environmentManagement", "environment_management")
        if env is not None:
            builder.environment_management(env)
        return builder.build()

    @classmethod
    def coerce(cls, data: Any) -> "GenerationOptions":
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        return cls.from_dict(data)

    def with_type(self, workflow_type: WorkflowType) -> "GenerationOptions":
        return replace(self, workflow_type=workflow_type)

    @property
    def caching_enabled(self) -> bool:
        return self.optimization_level is not OptimizationLevel.BASIC

    @property
    def use_matrix(self) -> bool:
        return self.optimization_level is OptimizationLevel.AGGRESSIVE

    @property
    def enterprise(self) -> bool:
        return self.security_level is SecurityLevel.ENTERPRISE


class GenerationOptionsBuilder:
    """Fluent builder that starts from documented defaults."""

    def __init__(self):
        self._workflow_type = WorkflowType.CI
        self._optimization_level = OptimizationLevel.STANDARD
        self._security_level = SecurityLevel.STANDARD
        self._include_comments = True
        self._agent_hooks_enabled = False
        self._environment_management = EnvironmentManagementOptions()

    def workflow_type(self, value: Any) -> "GenerationOptionsBuilder":
        self._workflow_type = parse_enum(WorkflowType, value, "workflow type")
        return self

    def optimization_level(self, value: Any) -> "GenerationOptionsBuilder":
        self._optimization_level = parse_enum(OptimizationLevel, value, "optimization level")
        return self

    def security_level(self, value: Any) -> "GenerationOptionsBuilder":
        self._security_level = parse_enum(SecurityLevel, value, "security level")
        return self

    def include_comments(self, value: bool = True) -> "GenerationOptionsBuilder":
        self._include_comments = value
        return self

    def agent_hooks_enabled(self, value: bool = True) -> "GenerationOptionsBuilder":
        self._agent_hooks_enabled = value
        return self

    def environment_management(self, value: Any) -> "GenerationOptionsBuilder":
        if isinstance(value, EnvironmentManagementOptions):
            self._environment_management = value
        elif isinstance(value, Mapping):
            self._environment_management = EnvironmentManagementOptions.from_dict(value)
        else:
            raise InvalidInputError("environmentManagement must be a mapping",
                                    component="options", stage="parse")
        return self

    def build(self) -> GenerationOptions:
        return GenerationOptions(
            workflow_type=self._workflow_type,
            optimization_level=self._optimization_level,
            security_level=self._security_level,
            include_comments=self._include_comments,
            agent_hooks_enabled=self._agent_hooks_enabled,
            environment_management=self._environment_management,
        )
