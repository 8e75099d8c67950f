"""Tests for detection, options, environment and pattern models."""

import pytest

from workflow_agent.core.errors import InvalidInputError, UnsupportedPatternError


class TestDetectionResult:
    """Test detection result parsing."""

    def test_from_dict_parses_all_sections(self, react_detection):
        """Test every analyzer section is parsed."""
        from workflow_agent.models.detection import DetectionResult

        detection = DetectionResult.from_dict(react_detection)

        assert [f.name for f in detection.frameworks] == ["React", "Vue"]
        assert detection.languages[0].primary is True
        assert detection.package_managers[0].ecosystem == "javascript"
        assert detection.deployment_targets[0].platform == "vercel"
        assert detection.project_metadata.name == "storefront"

    def test_null_detection_raises(self):
        """Test a null payload is rejected."""
        from workflow_agent.models.detection import DetectionResult

        with pytest.raises(InvalidInputError):
            DetectionResult.from_dict(None)

    def test_non_mapping_raises(self):
        """Test a list payload is rejected."""
        from workflow_agent.models.detection import DetectionResult

        with pytest.raises(InvalidInputError):
            DetectionResult.from_dict(["react"])

    def test_confidence_out_of_range_raises(self):
        """Test confidence must lie within [0, 1]."""
        from workflow_agent.models.detection import DetectionResult

        with pytest.raises(InvalidInputError):
            DetectionResult.from_dict({"frameworks": [{"name": "React", "confidence": 1.5}]})

    def test_two_primary_languages_raise(self):
        """Test at most one language may be primary."""
        from workflow_agent.models.detection import DetectionResult

        with pytest.raises(InvalidInputError):
            DetectionResult.from_dict({"languages": [
                {"name": "Python", "primary": True},
                {"name": "Go", "primary": True},
            ]})

    def test_snake_case_keys_accepted(self):
        """Test snake_case analyzer keys are read too."""
        from workflow_agent.models.detection import DetectionResult

        detection = DetectionResult.from_dict({
            "package_managers": ["yarn"],
            "testing_frameworks": ["vitest"],
            "deployment_targets": ["netlify"],
        })

        assert detection.package_managers[0].name == "yarn"
        assert detection.testing_frameworks[0].name == "vitest"
        assert detection.deployment_targets[0].platform == "netlify"

    def test_empty_detection(self):
        """Test an empty payload parses into an empty result."""
        from workflow_agent.models.detection import DetectionResult

        detection = DetectionResult.from_dict({})

        assert detection.is_empty
        assert detection.summary() == "none"
        assert detection.project_metadata.name == "project"


class TestGenerationOptions:
    """Test generation options and the builder."""

    def test_defaults(self):
        """Test documented defaults."""
        from workflow_agent.models.options import (
            GenerationOptions, OptimizationLevel, SecurityLevel, WorkflowType,
        )

        options = GenerationOptions.coerce(None)

        assert options.workflow_type == WorkflowType.CI
        assert options.optimization_level == OptimizationLevel.STANDARD
        assert options.security_level == SecurityLevel.STANDARD
        assert options.include_comments is True
        assert options.agent_hooks_enabled is False
        assert options.caching_enabled
        assert not options.use_matrix

    def test_builder_is_fluent(self):
        """Test the builder chains and builds immutable options."""
        from workflow_agent.models.options import GenerationOptions, WorkflowType

        options = (
            GenerationOptions.builder()
            .workflow_type("security")
            .optimization_level("aggressive")
            .security_level("enterprise")
            .include_comments(False)
            .build()
        )

        assert options.workflow_type == WorkflowType.SECURITY
        assert options.use_matrix
        assert options.enterprise
        with pytest.raises(AttributeError):
            options.include_comments = True

    def test_from_dict_camel_case(self):
        """Test camelCase option keys."""
        from workflow_agent.models.options import GenerationOptions

        options = GenerationOptions.from_dict({
            "workflowType": "cd",
            "optimizationLevel": "basic",
            "environmentManagement": {"includeOIDC": True, "autoDetectSecrets": True},
        })

        assert options.workflow_type.value == "cd"
        assert not options.caching_enabled
        assert options.environment_management.include_oidc
        assert options.environment_management.auto_detect_secrets
        assert not options.environment_management.include_secret_validation

    def test_invalid_enum_value_raises(self):
        """Test an unknown optimization level is rejected."""
        from workflow_agent.models.options import GenerationOptions

        with pytest.raises(InvalidInputError, match="Invalid"):
            GenerationOptions.from_dict({"optimizationLevel": "extreme"})

    def test_with_type_returns_copy(self):
        """Test with_type leaves the original untouched."""
        from workflow_agent.models.options import GenerationOptions, WorkflowType

        options = GenerationOptions()
        changed = options.with_type(WorkflowType.TESTING)

        assert changed.workflow_type == WorkflowType.TESTING
        assert options.workflow_type == WorkflowType.CI


class TestEnvironmentConfig:
    """Test environment config parsing."""

    def test_from_dict(self):
        """Test camelCase environment mapping."""
        from workflow_agent.models.environment import (
            DeploymentStrategy, EnvironmentConfig, EnvironmentType,
        )

        env = EnvironmentConfig.from_dict({
            "name": "production",
            "type": "production",
            "approvalRequired": True,
            "secrets": ["DB_PASSWORD"],
            "variables": {"REGION": "eu-west-1"},
            "deploymentStrategy": "canary",
            "rollbackEnabled": True,
        })

        assert env.type == EnvironmentType.PRODUCTION
        assert env.is_production
        assert env.deployment_strategy == DeploymentStrategy.CANARY
        assert env.variables_dict == {"REGION": "eu-west-1"}
        assert env.secrets == ("DB_PASSWORD",)

    def test_defaults_to_development(self):
        """Test an untyped environment is development."""
        from workflow_agent.models.environment import EnvironmentConfig, EnvironmentType

        env = EnvironmentConfig.from_dict({"name": "dev"})

        assert env.type == EnvironmentType.DEVELOPMENT
        assert not env.rollback_enabled

    def test_missing_name_raises(self):
        """Test an environment needs a name."""
        from workflow_agent.models.environment import EnvironmentConfig

        with pytest.raises(InvalidInputError):
            EnvironmentConfig.from_dict({"type": "staging"})

    def test_enabled_rollback_needs_triggers(self):
        """Test an enabled rollback config without triggers is invalid."""
        from workflow_agent.models.environment import RollbackConfig

        with pytest.raises(ValueError):
            RollbackConfig(enabled=True, triggers=())


class TestPatternConfig:
    """Test advanced pattern parsing."""

    def test_parse_canary(self):
        """Test canary stages and durations are parsed."""
        from workflow_agent.models.patterns import CanaryPattern, parse_pattern_config

        pattern = parse_pattern_config({
            "type": "canary",
            "stages": [
                {"percentage": 10, "duration": "5m",
                 "successCriteria": [{"metric": "error_rate", "operator": "<", "threshold": 1}]},
                {"percentage": 50, "duration": 600},
            ],
        })

        assert isinstance(pattern, CanaryPattern)
        assert [s.percentage for s in pattern.stages] == [10, 50]
        assert pattern.stages[0].duration_seconds == 300
        assert pattern.stages[0].success_criteria[0].predicate == "error_rate < 1"

    def test_settings_nested_under_variant_key(self):
        """Test settings may be nested under the pattern's own key."""
        from workflow_agent.models.patterns import MonorepoPattern, parse_pattern_config

        pattern = parse_pattern_config({
            "type": "monorepo",
            "monorepo": {"packages": [{"name": "web"}, {"name": "api", "dependencies": ["web"]}]},
        })

        assert isinstance(pattern, MonorepoPattern)
        assert [p.path for p in pattern.packages] == ["packages/web", "packages/api"]
        assert pattern.packages[1].dependencies == ("web",)

    def test_parse_orchestration(self):
        """Test orchestration settings, defaults and timeouts are parsed."""
        from workflow_agent.models.patterns import OrchestrationPattern, parse_pattern_config

        pattern = parse_pattern_config({
            "type": "orchestration",
            "orchestration": {
                "parentWorkflow": {"strategy": "Parallel", "timeout": "2h"},
                "childWorkflows": [
                    {"name": "build", "inputs": {"debug": True, "shards": 4}, "timeout": 15},
                ],
                "coordination": {"retryPolicy": {"maxAttempts": 2, "initialDelay": "1m"}},
            },
        })

        assert isinstance(pattern, OrchestrationPattern)
        assert pattern.strategy == "parallel"
        assert pattern.timeout_minutes == 120
        assert pattern.coordination == "wait-all"
        assert pattern.error_strategy == "fail-fast"
        child = pattern.children[0]
        assert child.workflow == "build.yml"
        assert child.inputs == (("debug", "true"), ("shards", "4"))
        assert child.timeout_minutes == 15
        assert pattern.retry_policy.enabled
        assert pattern.retry_policy.initial_delay_seconds == 60
        assert pattern.retry_policy.backoff == "exponential"

    def test_orchestration_without_retry_policy(self):
        """Test retries stay off unless a retry policy is given."""
        from workflow_agent.models.patterns import parse_pattern_config

        pattern = parse_pattern_config({"type": "orchestration", "childWorkflows": [{"name": "build"}]})

        assert not pattern.retry_policy.enabled
        assert pattern.strategy == "sequential"

    def test_unknown_type_raises(self):
        """Test an unknown pattern type is unsupported."""
        from workflow_agent.models.patterns import parse_pattern_config

        with pytest.raises(UnsupportedPatternError):
            parse_pattern_config({"type": "shadow-traffic"})

    def test_non_mapping_raises(self):
        """Test a pattern config must be a mapping."""
        from workflow_agent.models.patterns import parse_pattern_config

        with pytest.raises(InvalidInputError):
            parse_pattern_config("canary")

    def test_invalid_operator_raises(self):
        """Test metric thresholds only accept comparison operators."""
        from workflow_agent.models.patterns import MetricThreshold

        with pytest.raises(InvalidInputError):
            MetricThreshold.from_dict({"metric": "latency", "operator": "~", "threshold": 3})

    def test_blue_green_target_color(self):
        """Test blue-green target color must be blue or green."""
        from workflow_agent.models.patterns import parse_pattern_config

        with pytest.raises(InvalidInputError):
            parse_pattern_config({"type": "blue-green", "targetColor": "red"})
