"""Tests for agent hooks automation workflows."""

import pytest
import yaml

from workflow_agent.models.options import GenerationOptions, WorkflowType
from workflow_agent.validators.workflow_validator import validate_workflow


def _generate(engine_config, resolved, level="standard", webhook_url=""):
    from workflow_agent.generators.agent_hooks_generator import AgentHooksGenerator

    engine_config.agent_hooks.automation_level = level
    engine_config.agent_hooks.webhook_url = webhook_url
    return AgentHooksGenerator(config=engine_config).generate(resolved, GenerationOptions())


class TestAgentHooks:
    """Test the agent hooks workflows."""

    def test_four_workflows(self, engine_config, react_detection, resolve):
        """Test all four automation workflows are generated and valid."""
        outputs = _generate(engine_config, resolve(react_detection))

        assert [o.filename for o in outputs] == [
            "agent-hooks-webhook-response.yml",
            "agent-hooks-dependency-updates.yml",
            "agent-hooks-performance-optimization.yml",
            "agent-hooks-retry-recovery.yml",
        ]
        for output in outputs:
            assert output.type == WorkflowType.AGENT_HOOKS
            assert validate_workflow(output.content).is_valid, output.filename

    def test_webhook_url_from_secret_by_default(self, engine_config, react_detection, resolve):
        """Test the webhook URL comes from a secret unless configured."""
        outputs = _generate(engine_config, resolve(react_detection))
        env = yaml.safe_load(outputs[0].content)["env"]

        assert env["AGENT_HOOKS_WEBHOOK_URL"] == "${{ secrets.AGENT_HOOKS_WEBHOOK_URL }}"
        assert env["AUTOMATION_LEVEL"] == "standard"

    def test_configured_webhook_url(self, engine_config, react_detection, resolve):
        """Test a configured webhook URL is used as is."""
        outputs = _generate(engine_config, resolve(react_detection), webhook_url="https://hooks.example.com/agent")
        env = yaml.safe_load(outputs[0].content)["env"]

        assert env["AGENT_HOOKS_WEBHOOK_URL"] == "https://hooks.example.com/agent"

    def test_retry_recovery_jobs(self, engine_config, react_detection, resolve):
        """Test retry and recovery run after failure analysis."""
        outputs = _generate(engine_config, resolve(react_detection))
        jobs = yaml.safe_load(outputs[3].content)["jobs"]

        assert {"failure-analysis", "intelligent-retry", "recovery-implementation"} <= set(jobs)

    @pytest.mark.parametrize("level,expected", [("minimal", False), ("standard", False), ("full", True)])
    def test_auto_merge_only_when_full(self, engine_config, react_detection, resolve, level, expected):
        """Test auto-merge of safe updates needs full automation."""
        outputs = _generate(engine_config, resolve(react_detection), level=level)
        jobs = yaml.safe_load(outputs[1].content)["jobs"]

        assert ("update-validation" in jobs) is expected

    def test_minimal_skips_auto_actions(self, engine_config, react_detection, resolve):
        """Test minimal automation only reports."""
        minimal = _generate(engine_config, resolve(react_detection), level="minimal")[0].content
        standard = _generate(engine_config, resolve(react_detection), level="standard")[0].content

        assert "Trigger optimization workflow" not in minimal
        assert "Trigger optimization workflow" in standard
