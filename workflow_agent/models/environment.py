"""
Multi-environment deployment models.

Environment configs are inputs; strategy configs, approval gates, promotion
pipelines and rollback configs are derived per generation call.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..core.errors import InvalidInputError
from .options import parse_enum
from .workflow import WorkflowOutput


class EnvironmentType(Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DeploymentStrategy(Enum):
    ROLLING = "rolling"
    BLUE_GREEN = "blue-green"
    CANARY = "canary"


@dataclass(frozen=True)
class EnvironmentConfig:
    """A deployment environment, in promotion order."""
    name: str
    type: EnvironmentType
    approval_required: bool = False
    secrets: Tuple[str, ...] = ()
    variables: Tuple[Tuple[str, str], ...] = ()
    deployment_strategy: DeploymentStrategy = DeploymentStrategy.ROLLING
    rollback_enabled: bool = False
    promotion_source: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.type is EnvironmentType.PRODUCTION

    @property
    def variables_dict(self) -> Dict[str, str]:
        return dict(self.variables)

    @classmethod
    def create(
        cls,
        name: str,
        type: Union[str, EnvironmentType],
        approval_required: bool = False,
        secrets: Optional[List[str]] = None,
        variables: Optional[Dict[str, str]] = None,
        deployment_strategy: Union[str, DeploymentStrategy] = DeploymentStrategy.ROLLING,
        rollback_enabled: bool = False,
        promotion_source: Optional[str] = None,
    ) -> "EnvironmentConfig":
        if not name or not str(name).strip():
            raise InvalidInputError("Environment name is required", component="environments", stage="parse")
        return cls(
            name=str(name).strip(),
            type=parse_enum(EnvironmentType, type, "environment type"),
            approval_required=approval_required,
            secrets=tuple(secrets or ()),
            variables=tuple(sorted((str(k), str(v)) for k, v in (variables or {}).items())),
            deployment_strategy=parse_enum(DeploymentStrategy, deployment_strategy, "deployment strategy"),
            rollback_enabled=rollback_enabled,
            promotion_source=promotion_source,
        )

    @classmethod
    def from_dict(cls, data: Any) -> "EnvironmentConfig":
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise InvalidInputError("Environment config must be a mapping", component="environments", stage="parse")
        return cls.create(
            name=data.get("name", ""),
            type=data.get("type", "development"),
            approval_required=bool(data.get("approvalRequired", data.get("approval_required", False))),
            secrets=list(data.get("secrets") or []),
            variables=dict(data.get("variables") or {}),
            deployment_strategy=data.get("deploymentStrategy", data.get("deployment_strategy", "rolling")),
            rollback_enabled=bool(data.get("rollbackEnabled", data.get("rollback_enabled", False))),
            promotion_source=data.get("promotionSource", data.get("promotion_source")),
        )


@dataclass(frozen=True)
class AnalysisTemplate:
    """A metric analysis run before or after promotion."""
    template_name: str
    args: Tuple[Tuple[str, str], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"templateName": self.template_name, "args": [{"name": k, "value": v} for k, v in self.args]}


@dataclass(frozen=True)
class RollingConfig:
    max_unavailable: str
    max_surge: str
    progress_deadline_seconds: int = 600
    revision_history_limit: int = 10
    type: str = field(default="rolling", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "maxUnavailable": self.max_unavailable,
            "maxSurge": self.max_surge,
            "progressDeadlineSeconds": self.progress_deadline_seconds,
            "revisionHistoryLimit": self.revision_history_limit,
        }


@dataclass(frozen=True)
class BlueGreenConfig:
    auto_promotion_enabled: bool
    scale_down_delay_seconds: int
    pre_promotion_analysis: Tuple[AnalysisTemplate, ...] = ()
    post_promotion_analysis: Tuple[AnalysisTemplate, ...] = ()
    preview_replica_count: int = 1
    type: str = field(default="blue-green", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "autoPromotionEnabled": self.auto_promotion_enabled,
            "scaleDownDelaySeconds": self.scale_down_delay_seconds,
            "prePromotionAnalysis": [a.to_dict() for a in self.pre_promotion_analysis],
            "postPromotionAnalysis": [a.to_dict() for a in self.post_promotion_analysis],
            "previewReplicaCount": self.preview_replica_count,
        }


@dataclass(frozen=True)
class CanaryStep:
    """Either a traffic weight change or a pause."""
    set_weight: Optional[int] = None
    pause_seconds: Optional[int] = None
    until_approved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        if self.set_weight is not None:
            return {"setWeight": self.set_weight}
        if self.until_approved:
            return {"pause": {}}
        return {"pause": {"duration": f"{self.pause_seconds}s"}}


@dataclass(frozen=True)
class CanaryConfig:
    steps: Tuple[CanaryStep, ...]
    success_rate_threshold: float
    max_error_rate: float
    analysis: Tuple[AnalysisTemplate, ...] = ()
    max_unavailable: str = "25%"
    type: str = field(default="canary", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "steps": [s.to_dict() for s in self.steps],
            "analysis": [a.to_dict() for a in self.analysis],
            "successRateThreshold": self.success_rate_threshold,
            "maxErrorRate": self.max_error_rate,
            "maxUnavailable": self.max_unavailable,
        }


DeploymentStrategyConfig = Union[RollingConfig, BlueGreenConfig, CanaryConfig]


@dataclass(frozen=True)
class ApprovalGate:
    environment: str
    required_approvals: int
    approvers: Tuple[str, ...]
    timeout_minutes: int = 60
    instructions: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "requiredApprovals": self.required_approvals,
            "approvers": list(self.approvers),
            "timeoutMinutes": self.timeout_minutes,
            "instructions": self.instructions,
        }


@dataclass(frozen=True)
class PromotionCondition:
    type: str
    config: Tuple[Tuple[str, Any], ...] = ()

    @property
    def config_dict(self) -> Dict[str, Any]:
        return dict(self.config)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "config": self.config_dict}


@dataclass(frozen=True)
class PromotionPipeline:
    source_environment: str
    target_environment: str
    auto_promote: bool
    conditions: Tuple[PromotionCondition, ...] = ()
    rollback_on_failure: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceEnvironment": self.source_environment,
            "targetEnvironment": self.target_environment,
            "autoPromote": self.auto_promote,
            "conditions": [c.to_dict() for c in self.conditions],
            "rollbackOnFailure": self.rollback_on_failure,
        }


@dataclass(frozen=True)
class RollbackConfig:
    enabled: bool
    triggers: Tuple[str, ...]
    strategy: str = "immediate"
    max_retries: int = 3

    def __post_init__(self):
        if self.enabled and not self.triggers:
            raise ValueError("An enabled rollback config needs at least one trigger")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "triggers": list(self.triggers),
            "strategy": self.strategy,
            "maxRetries": self.max_retries,
        }


@dataclass
class MultiEnvironmentResult:
    """Everything produced for one list of environments."""
    workflows: List[WorkflowOutput] = field(default_factory=list)
    environments: List[EnvironmentConfig] = field(default_factory=list)
    deployment_strategies: Dict[str, DeploymentStrategyConfig] = field(default_factory=dict)
    approval_gates: List[ApprovalGate] = field(default_factory=list)
    promotion_pipelines: List[PromotionPipeline] = field(default_factory=list)
    rollback_configs: Dict[str, RollbackConfig] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def workflow(self, filename: str) -> WorkflowOutput:
        for output in self.workflows:
            if output.filename == filename:
                return output
        raise KeyError(filename)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflows": [w.to_dict() for w in self.workflows],
            "environments": [e.name for e in self.environments],
            "deploymentStrategies": {k: v.to_dict() for k, v in self.deployment_strategies.items()},
            "approvalGates": [g.to_dict() for g in self.approval_gates],
            "promotionPipelines": [p.to_dict() for p in self.promotion_pipelines],
            "rollbackConfigs": {k: v.to_dict() for k, v in self.rollback_configs.items()},
            "warnings": list(self.warnings),
        }
