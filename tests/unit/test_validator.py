"""Tests for workflow validation and best-practice scoring."""

import pytest

from workflow_agent.core.errors import WorkflowSyntaxError
from workflow_agent.validators.best_practices import score_workflow
from workflow_agent.validators.workflow_validator import WorkflowValidator, parse_workflow


VALID_WORKFLOW = """\
name: CI
on:
  push:
    branches: [main]
permissions:
  contents: read
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/cache@v4
        with:
          path: ~/.npm
          key: npm
      - run: npm ci
      - run: npm audit --audit-level=high
"""


class TestStructure:
    """Test structural validation."""

    def test_valid_workflow(self):
        """Test a well-formed workflow scores full marks."""
        result = WorkflowValidator().validate(VALID_WORKFLOW)

        assert result.is_valid
        assert result.errors == []
        assert result.score == pytest.approx(1.0)

    def test_invalid_yaml_raises_with_position(self):
        """Test unparseable YAML raises a syntax error with a line number."""
        with pytest.raises(WorkflowSyntaxError) as exc_info:
            WorkflowValidator().validate("name: CI\njobs:\n  build: [unclosed\n")

        assert exc_info.value.line is not None

    def test_missing_top_level_fields(self):
        """Test name, on and jobs are required."""
        result = WorkflowValidator().validate("permissions: read-all\n")

        assert not result.is_valid
        assert "Missing required field 'name'" in result.errors
        assert "Missing required field 'on'" in result.errors
        assert "Missing required field 'jobs'" in result.errors

    def test_non_mapping_document(self):
        """Test a scalar document is rejected."""
        result = WorkflowValidator().validate("just text")

        assert result.errors == ["Workflow must be a YAML mapping"]

    def test_job_checks(self):
        """Test runs-on, steps and step shape are checked per job."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "jobs:\n"
            "  build:\n"
            "    steps: []\n"
            "  test:\n"
            "    runs-on: ubuntu-latest\n"
            "    steps:\n"
            "      - name: nothing\n"
            "      - uses: actions/checkout@v4\n"
            "        run: echo both\n"
        )

        assert "Job 'build' is missing 'runs-on'" in result.errors
        assert "Job 'build' must have a non-empty 'steps' list" in result.errors
        assert "Step 1 in job 'test' must define 'uses' or 'run'" in result.errors
        assert "Step 2 in job 'test' cannot define both 'uses' and 'run'" in result.errors

    def test_needs_checks(self):
        """Test unknown, self and cyclic needs are errors."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "jobs:\n"
            "  a:\n"
            "    runs-on: ubuntu-latest\n"
            "    needs: [b, ghost]\n"
            "    steps: [{run: echo a}]\n"
            "  b:\n"
            "    runs-on: ubuntu-latest\n"
            "    needs: [a, b]\n"
            "    steps: [{run: echo b}]\n"
        )

        assert "Job 'a' needs unknown job 'ghost'" in result.errors
        assert "Job 'b' cannot depend on itself" in result.errors
        assert any(e.startswith("Job dependencies form a cycle:") for e in result.errors)

    def test_malformed_needs_are_errors(self):
        """Test needs that are neither a job id nor a list of ids are reported, not raised."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "jobs:\n"
            "  a:\n"
            "    runs-on: ubuntu-latest\n"
            "    needs: 5\n"
            "    steps: [{run: echo a}]\n"
            "  b:\n"
            "    runs-on: ubuntu-latest\n"
            "    needs: [{b: c}]\n"
            "    steps: [{run: echo b}]\n"
        )

        assert not result.is_valid
        assert "Job 'a' has invalid 'needs'; expected a job id or a list of job ids" in result.errors
        assert "Job 'b' has invalid 'needs'; expected a job id or a list of job ids" in result.errors
        assert not any(e.startswith("Job dependencies form a cycle:") for e in result.errors)

    def test_scalar_steps_are_errors(self):
        """Test a steps value that is not a list is reported, not raised."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "jobs:\n"
            "  build:\n"
            "    runs-on: ubuntu-latest\n"
            "    steps: 5\n"
        )

        assert result.errors == ["Job 'build' must have a non-empty 'steps' list"]
        assert 0.0 <= result.score <= 1.0

    def test_non_string_uses_does_not_raise(self):
        """Test a numeric uses value is tolerated by the best-practice checks."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "jobs:\n"
            "  build:\n"
            "    runs-on: ubuntu-latest\n"
            "    steps:\n"
            "      - uses: 5\n"
        )

        assert result.is_valid
        assert "Cache dependencies to speed up repeated runs" in result.suggestions


class TestBestPractices:
    """Test warnings, suggestions and scoring."""

    def test_unpinned_and_moving_refs_warn(self):
        """Test actions without a release pin are flagged."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "jobs:\n"
            "  build:\n"
            "    runs-on: ubuntu-latest\n"
            "    steps:\n"
            "      - uses: actions/checkout\n"
            "      - uses: acme/deploy@main\n"
            "      - uses: ./local-action\n"
        )

        assert result.is_valid
        assert "Action 'actions/checkout' in job 'build' is not pinned to a version" in result.warnings
        assert any("acme/deploy@main" in w for w in result.warnings)
        assert not any("local-action" in w for w in result.warnings)

    def test_stable_channel_ref_is_not_pinned(self):
        """Test an action tracking the stable branch is warned about and not scored as pinned."""
        result = WorkflowValidator().validate(
            "name: CI\n"
            "on: push\n"
            "permissions:\n"
            "  contents: read\n"
            "jobs:\n"
            "  build:\n"
            "    runs-on: ubuntu-latest\n"
            "    steps:\n"
            "      - uses: actions/checkout@v4\n"
            "      - uses: dtolnay/rust-toolchain@stable\n"
            "      - run: cargo build\n"
        )

        assert any("dtolnay/rust-toolchain@stable" in w for w in result.warnings)
        assert "pinned actions" not in score_workflow(parse_workflow(
            "name: CI\non: push\njobs:\n  b:\n    runs-on: x\n    steps:\n      - uses: a/b@stable\n"
        )).rewards

    def test_write_all_is_penalised(self):
        """Test write-all permissions warn and lower the score."""
        text = VALID_WORKFLOW.replace("permissions:\n  contents: read\n", "permissions: write-all\n")
        result = WorkflowValidator().validate(text)

        assert any("write-all" in w for w in result.warnings)
        assert result.score < 1.0

    def test_suggestions_for_missing_practices(self):
        """Test a bare workflow gets improvement suggestions and a low score."""
        result = WorkflowValidator().validate(
            "name: CI\non: push\njobs:\n  build:\n    runs-on: ubuntu-latest\n    steps:\n      - run: make\n"
        )

        assert result.is_valid
        assert result.suggestions
        assert result.score <= 0.25

    def test_generated_workflows_score_well(self, react_detection):
        """Test generated enterprise CI passes with a high score."""
        import asyncio

        from workflow_agent.generators.yaml_generator import YAMLGenerator

        output = asyncio.run(YAMLGenerator().generate_workflow(
            react_detection, {"workflowType": "ci", "securityLevel": "enterprise"}))
        result = YAMLGenerator().validate_workflow(output.content)

        assert result.is_valid
        assert result.score >= 0.75
