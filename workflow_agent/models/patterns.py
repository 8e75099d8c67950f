"""
Advanced pattern configurations.

Each pattern type is its own frozen dataclass; together they form the
PatternConfig union. parse_pattern_config turns a raw mapping into the
matching variant, keyed by its `type` field.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from ..core.errors import InvalidInputError, UnsupportedPatternError
from ..utils.helpers import minutes_ceil, parse_duration


class PatternType(Enum):
    MONOREPO = "monorepo"
    MICROSERVICES = "microservices"
    CANARY = "canary"
    BLUE_GREEN = "blue-green"
    FEATURE_FLAGS = "feature-flags"
    ORCHESTRATION = "orchestration"


_OPERATORS = (">", ">=", "<", "<=", "==", "!=")


@dataclass(frozen=True)
class MetricThreshold:
    """A metric predicate such as `error_rate > 5`."""
    metric: str
    operator: str
    threshold: float
    window_seconds: Optional[int] = None

    def __post_init__(self):
        if self.operator not in _OPERATORS:
            raise InvalidInputError(
                f"Unsupported operator '{self.operator}' for metric '{self.metric}'",
                component="patterns",
                stage="parse",
            )

    @property
    def predicate(self) -> str:
        threshold = int(self.threshold) if float(self.threshold).is_integer() else self.threshold
        text = f"{self.metric} {self.operator} {threshold}"
        if self.window_seconds:
            text += f" for {self.window_seconds}s"
        return text

    @classmethod
    def from_dict(cls, data: Any) -> "MetricThreshold":
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping) or "metric" not in data:
            raise InvalidInputError("Metric threshold needs a 'metric'", component="patterns", stage="parse")
        window = data.get("window", data.get("duration"))
        return cls(
            metric=str(data["metric"]),
            operator=str(data.get("operator", ">")),
            threshold=float(data.get("threshold", 0)),
            window_seconds=_duration(window) if window is not None else None,
        )


def _duration(value: Any, default: Optional[int] = None) -> int:
    try:
        return parse_duration(value, default)
    except ValueError as e:
        raise InvalidInputError(str(e), component="patterns", stage="parse")


def _thresholds(items: Any) -> Tuple[MetricThreshold, ...]:
    return tuple(MetricThreshold.from_dict(i) for i in items or ())


def _required_name(data: Mapping[str, Any], kind: str) -> str:
    name = data.get("name") if isinstance(data, Mapping) else None
    if not name:
        raise InvalidInputError(f"Every {kind} needs a 'name'", component="patterns", stage="parse")
    return str(name)


# Monorepo

@dataclass(frozen=True)
class MonorepoPackage:
    name: str
    path: str
    language: Optional[str] = None
    framework: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    build_command: Optional[str] = None
    test_command: Optional[str] = None
    deployable: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "MonorepoPackage":
        if isinstance(data, cls):
            return data
        name = _required_name(data, "package")
        return cls(
            name=name,
            path=str(data.get("path") or f"packages/{name}").rstrip("/"),
            language=data.get("language"),
            framework=data.get("framework"),
            dependencies=tuple(data.get("dependencies") or ()),
            build_command=data.get("buildCommand", data.get("build_command")),
            test_command=data.get("testCommand", data.get("test_command")),
            deployable=bool(data.get("deployable", False)),
        )


@dataclass(frozen=True)
class MonorepoPattern:
    packages: Tuple[MonorepoPackage, ...]
    build_order: Tuple[str, ...] = ()
    dependency_graph_enabled: bool = True
    shared_paths: Tuple[str, ...] = ()
    matrix_threshold: Optional[int] = None

    @property
    def type(self) -> PatternType:
        return PatternType.MONOREPO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonorepoPattern":
        graph = data.get("dependencyGraph", data.get("dependency_graph")) or {}
        return cls(
            packages=tuple(MonorepoPackage.from_dict(p) for p in data.get("packages") or ()),
            build_order=tuple(data.get("buildOrder", data.get("build_order")) or ()),
            dependency_graph_enabled=bool(graph.get("enabled", True)),
            shared_paths=tuple(data.get("sharedPaths", data.get("shared_paths")) or ()),
            matrix_threshold=data.get("matrixThreshold", data.get("matrix_threshold")),
        )


# Microservices

@dataclass(frozen=True)
class ServiceDefinition:
    name: str
    path: str
    language: Optional[str] = None
    port: Optional[int] = None
    dependencies: Tuple[str, ...] = ()
    health_check_path: str = "/health"
    replicas: int = 1

    @classmethod
    def from_dict(cls, data: Any) -> "ServiceDefinition":
        if isinstance(data, cls):
            return data
        name = _required_name(data, "service")
        return cls(
            name=name,
            path=str(data.get("path") or f"services/{name}").rstrip("/"),
            language=data.get("language"),
            port=data.get("port"),
            dependencies=tuple(data.get("dependencies") or ()),
            health_check_path=data.get("healthCheckPath", data.get("health_check_path")) or "/health",
            replicas=int(data.get("replicas", 1)),
        )


@dataclass(frozen=True)
class ServiceMeshConfig:
    provider: str = "istio"
    mtls: bool = True


@dataclass(frozen=True)
class TracingConfig:
    provider: str = "opentelemetry"
    endpoint: str = "http://otel-collector:4317"
    sample_rate: float = 0.1


@dataclass(frozen=True)
class MicroservicesPattern:
    services: Tuple[ServiceDefinition, ...]
    service_mesh: Optional[ServiceMeshConfig] = None
    tracing: Optional[TracingConfig] = None
    rollback_on_failure: bool = True

    @property
    def type(self) -> PatternType:
        return PatternType.MICROSERVICES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MicroservicesPattern":
        mesh = data.get("serviceMesh", data.get("service_mesh"))
        tracing = data.get("tracing")
        return cls(
            services=tuple(ServiceDefinition.from_dict(s) for s in data.get("services") or ()),
            service_mesh=ServiceMeshConfig(
                provider=mesh.get("provider", "istio"), mtls=bool(mesh.get("mtls", True))
            ) if mesh and mesh.get("enabled", True) else None,
            tracing=TracingConfig(
                provider=tracing.get("provider", "opentelemetry"),
                endpoint=tracing.get("endpoint", "http://otel-collector:4317"),
                sample_rate=float(tracing.get("sampleRate", tracing.get("sample_rate", 0.1))),
            ) if tracing and tracing.get("enabled", True) else None,
            rollback_on_failure=bool(data.get("rollbackOnFailure", data.get("rollback_on_failure", True))),
        )


# Canary

@dataclass(frozen=True)
class CanaryStage:
    percentage: int
    duration_seconds: int
    success_criteria: Tuple[MetricThreshold, ...] = ()
    rollback_criteria: Tuple[MetricThreshold, ...] = ()
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CanaryStage":
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping) or "percentage" not in data:
            raise InvalidInputError("Every canary stage needs a 'percentage'", component="patterns", stage="parse")
        return cls(
            percentage=int(data["percentage"]),
            duration_seconds=_duration(data.get("duration"), default=300),
            success_criteria=_thresholds(data.get("successCriteria", data.get("success_criteria"))),
            rollback_criteria=_thresholds(data.get("rollbackCriteria", data.get("rollback_criteria"))),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class CanaryPattern:
    stages: Tuple[CanaryStage, ...]
    metrics_provider: str = "prometheus"
    service_name: Optional[str] = None

    @property
    def type(self) -> PatternType:
        return PatternType.CANARY

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CanaryPattern":
        return cls(
            stages=tuple(CanaryStage.from_dict(s) for s in data.get("stages") or ()),
            metrics_provider=data.get("metricsProvider", data.get("metrics_provider")) or "prometheus",
            service_name=data.get("serviceName", data.get("service_name")),
        )


# Blue-green

@dataclass(frozen=True)
class BlueGreenPattern:
    health_check_path: str = "/health"
    health_check_retries: int = 5
    target_color: str = "green"
    service_name: Optional[str] = None

    @property
    def type(self) -> PatternType:
        return PatternType.BLUE_GREEN

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlueGreenPattern":
        target = str(data.get("targetColor", data.get("target_color")) or "green").lower()
        if target not in ("blue", "green"):
            raise InvalidInputError(f"targetColor must be blue or green, got '{target}'",
                                    component="patterns", stage="parse")
        return cls(
            health_check_path=data.get("healthCheckPath", data.get("health_check_path")) or "/health",
            health_check_retries=int(data.get("healthCheckRetries", data.get("health_check_retries", 5))),
            target_color=target,
            service_name=data.get("serviceName", data.get("service_name")),
        )


# Feature flags

@dataclass(frozen=True)
class FeatureFlag:
    key: str
    description: str = ""
    default_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "FeatureFlag":
        if isinstance(data, str):
            return cls(key=data)
        if not isinstance(data, Mapping) or not (data.get("key") or data.get("name")):
            raise InvalidInputError("Every feature flag needs a 'key'", component="patterns", stage="parse")
        return cls(
            key=str(data.get("key") or data.get("name")),
            description=str(data.get("description", "")),
            default_enabled=bool(data.get("defaultEnabled", data.get("default_enabled", False))),
        )


@dataclass(frozen=True)
class UserSegment:
    name: str
    rollout_percentages: Tuple[int, ...] = (100,)

    @classmethod
    def from_dict(cls, data: Any) -> "UserSegment":
        name = _required_name(data, "segment")
        percentages = data.get("rolloutPercentages", data.get("rollout_percentages")) or [100]
        return cls(name=name, rollout_percentages=tuple(int(p) for p in percentages))


@dataclass(frozen=True)
class FeatureFlagPattern:
    flags: Tuple[FeatureFlag, ...]
    segments: Tuple[UserSegment, ...] = (UserSegment("all-users"),)
    rollback_triggers: Tuple[MetricThreshold, ...] = ()
    provider: str = "launchdarkly"

    @property
    def type(self) -> PatternType:
        return PatternType.FEATURE_FLAGS

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeatureFlagPattern":
        segments = tuple(UserSegment.from_dict(s) for s in data.get("segments") or ())
        return cls(
            flags=tuple(FeatureFlag.from_dict(f) for f in data.get("flags") or ()),
            segments=segments or (UserSegment("all-users"),),
            rollback_triggers=_thresholds(data.get("rollbackTriggers", data.get("rollback_triggers"))),
            provider=data.get("provider") or "launchdarkly",
        )


# Orchestration

_ORCHESTRATION_STRATEGIES = ("sequential", "parallel", "conditional")
_COORDINATION_STRATEGIES = ("wait-all", "wait-any", "fail-fast")
_ERROR_STRATEGIES = ("fail-fast", "continue-on-error", "retry")
_BACKOFF_STRATEGIES = ("fixed", "linear", "exponential")


def _choice(value: Any, allowed: Tuple[str, ...], default: str, field_name: str) -> str:
    choice = str(value or default).lower()
    if choice not in allowed:
        raise InvalidInputError(f"{field_name} must be one of {', '.join(allowed)}, got '{choice}'",
                                component="patterns", stage="parse")
    return choice


def _minutes(value: Any, default: int) -> int:
    """Timeouts are minutes when numeric, or a duration string such as "90m"."""
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(1, int(value))
    return minutes_ceil(_duration(value))


@dataclass(frozen=True)
class ChildWorkflow:
    name: str
    workflow: str
    inputs: Tuple[Tuple[str, str], ...] = ()
    dependencies: Tuple[str, ...] = ()
    condition: Optional[str] = None
    timeout_minutes: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ChildWorkflow":
        if isinstance(data, cls):
            return data
        name = _required_name(data, "child workflow")
        workflow = str(data.get("workflow") or f"{name}.yml")
        if "/" in workflow:
            workflow = workflow.rsplit("/", 1)[1]
        inputs = data.get("inputs") or {}
        if not isinstance(inputs, Mapping):
            raise InvalidInputError(f"Inputs of child workflow '{name}' must be a mapping",
                                    component="patterns", stage="parse")
        timeout = data.get("timeout")
        return cls(
            name=name,
            workflow=workflow,
            inputs=tuple((str(k), _input_value(v)) for k, v in inputs.items()),
            dependencies=tuple(data.get("dependencies") or ()),
            condition=data.get("condition") or None,
            timeout_minutes=_minutes(timeout, 0) if timeout is not None else None,
        )


def _input_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


@dataclass(frozen=True)
class RetryPolicy:
    enabled: bool = False
    max_attempts: int = 3
    backoff: str = "exponential"
    initial_delay_seconds: int = 30

    @classmethod
    def from_dict(cls, data: Any) -> "RetryPolicy":
        if isinstance(data, cls):
            return data
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", True)) if data else False,
            max_attempts=max(1, int(data.get("maxAttempts", data.get("max_attempts", 3)))),
            backoff=_choice(data.get("backoffStrategy", data.get("backoff")), _BACKOFF_STRATEGIES,
                            "exponential", "backoffStrategy"),
            initial_delay_seconds=_duration(data.get("initialDelay", data.get("initial_delay")), default=30),
        )


@dataclass(frozen=True)
class OrchestrationPattern:
    children: Tuple[ChildWorkflow, ...]
    name: str = "Workflow Orchestration"
    triggers: Optional[Mapping[str, Any]] = None
    strategy: str = "sequential"
    timeout_minutes: int = 60
    coordination: str = "wait-all"
    max_concurrency: int = 3
    retry_policy: RetryPolicy = RetryPolicy()
    error_strategy: str = "fail-fast"
    notifications: Tuple[str, ...] = ()
    rollback_enabled: bool = False

    @property
    def type(self) -> PatternType:
        return PatternType.ORCHESTRATION

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrchestrationPattern":
        parent = data.get("parentWorkflow", data.get("parent_workflow")) or {}
        coordination = data.get("coordination") or {}
        errors = data.get("errorHandling", data.get("error_handling")) or {}
        children = data.get("childWorkflows", data.get("child_workflows", data.get("children")))
        return cls(
            children=tuple(ChildWorkflow.from_dict(c) for c in children or ()),
            name=parent.get("name") or "Workflow Orchestration",
            triggers=parent.get("triggers") or None,
            strategy=_choice(parent.get("strategy"), _ORCHESTRATION_STRATEGIES, "sequential", "strategy"),
            timeout_minutes=_minutes(parent.get("timeout"), 60),
            coordination=_choice(coordination.get("strategy"), _COORDINATION_STRATEGIES,
                                 "wait-all", "coordination strategy"),
            max_concurrency=max(1, int(coordination.get("maxConcurrency",
                                                         coordination.get("max_concurrency", 3)))),
            retry_policy=RetryPolicy.from_dict(coordination.get("retryPolicy", coordination.get("retry_policy"))),
            error_strategy=_choice(errors.get("strategy"), _ERROR_STRATEGIES, "fail-fast", "errorHandling strategy"),
            notifications=tuple(str(n).lower() for n in errors.get("notifications") or ()),
            rollback_enabled=bool(errors.get("rollbackEnabled", errors.get("rollback_enabled", False))),
        )


PatternConfig = Union[
    MonorepoPattern, MicroservicesPattern, CanaryPattern, BlueGreenPattern, FeatureFlagPattern, OrchestrationPattern,
]

PATTERN_PARSERS: Dict[PatternType, Callable[[Mapping[str, Any]], Any]] = {
    PatternType.MONOREPO: MonorepoPattern.from_dict,
    PatternType.MICROSERVICES: MicroservicesPattern.from_dict,
    PatternType.CANARY: CanaryPattern.from_dict,
    PatternType.BLUE_GREEN: BlueGreenPattern.from_dict,
    PatternType.FEATURE_FLAGS: FeatureFlagPattern.from_dict,
    PatternType.ORCHESTRATION: OrchestrationPattern.from_dict,
}

# Camel-case keys under which a variant's settings may be nested
_PAYLOAD_KEYS = {
    PatternType.MONOREPO: ("monorepo",),
    PatternType.MICROSERVICES: ("microservices",),
    PatternType.CANARY: ("canary",),
    PatternType.BLUE_GREEN: ("blueGreen", "blue_green"),
    PatternType.FEATURE_FLAGS: ("featureFlags", "feature_flags"),
    PatternType.ORCHESTRATION: ("orchestration",),
}

_PATTERN_CLASSES = (MonorepoPattern, MicroservicesPattern, CanaryPattern, BlueGreenPattern, FeatureFlagPattern,
                    OrchestrationPattern)


def parse_pattern_config(data: Any) -> PatternConfig:
    """
    Resolve a raw pattern configuration into its typed variant.

    Args:
        data: A PatternConfig instance, or a mapping with a `type` key whose
            settings are either at the top level or nested under the
            variant's key (e.g. {"type": "monorepo", "monorepo": {...}})

    Raises:
        UnsupportedPatternError: For an unknown `type`
        InvalidInputError: For a missing or malformed configuration
    """
    if isinstance(data, _PATTERN_CLASSES):
        return data
    if not isinstance(data, Mapping):
        raise InvalidInputError("Pattern configuration must be a mapping", component="patterns", stage="parse")

    raw_type = data.get("type")
    try:
        pattern_type = PatternType(str(raw_type).lower())
    except ValueError:
        raise UnsupportedPatternError(
            f"Unsupported advanced pattern type: {raw_type}",
            component="advanced-pattern-generator",
            stage="parse",
            details={"supported": [t.value for t in PatternType]},
        )

    payload: Mapping[str, Any] = data
    for key in _PAYLOAD_KEYS[pattern_type]:
        if isinstance(data.get(key), Mapping):
            payload = data[key]
            break
    return PATTERN_PARSERS[pattern_type](payload)
