"""Tests for the workflow-agent command line interface."""

import json

import pytest
import yaml
from typer.testing import CliRunner

from workflow_agent.main import app

runner = CliRunner()


@pytest.fixture
def detection_file(tmp_path, react_detection):
    path = tmp_path / "detection.json"
    path.write_text(json.dumps(react_detection))
    return path


class TestGenerateCommand:
    """Test the generate command."""

    def test_dry_run_prints_workflow(self, detection_file):
        """Test a dry run prints the workflow instead of writing it."""
        result = runner.invoke(app, ["generate", str(detection_file), "--type", "ci", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "# --- ci.yml ---" in result.output
        assert "name: Continuous Integration" in result.output

    def test_writes_to_output_dir(self, detection_file, tmp_path):
        """Test the workflow is written to the output directory."""
        out = tmp_path / "workflows"
        result = runner.invoke(app, ["generate", str(detection_file), "-t", "security", "-o", str(out)])

        assert result.exit_code == 0, result.output
        document = yaml.safe_load((out / "security.yml").read_text())
        assert "secret-scan" in document["jobs"]

    def test_json_format(self, detection_file, tmp_path):
        """Test json format writes the serialized output."""
        result = runner.invoke(app, ["generate", str(detection_file), "-f", "json", "-o", str(tmp_path)])

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "ci.json").read_text())
        assert data["type"] == "ci"

    def test_unsupported_format_exits_2(self, detection_file):
        """Test an unknown output format is a usage error."""
        result = runner.invoke(app, ["generate", str(detection_file), "-f", "toml", "--dry-run"])

        assert result.exit_code == 2

    def test_invalid_option_value_exits_1(self, detection_file):
        """Test an unknown workflow type is reported as an error."""
        result = runner.invoke(app, ["generate", str(detection_file), "-t", "nightly", "--dry-run"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_malformed_detection_exits_1(self, tmp_path):
        """Test a detection file that is not JSON is reported as an error."""
        path = tmp_path / "detection.json"
        path.write_text("{not json")

        result = runner.invoke(app, ["generate", str(path), "--dry-run"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_missing_detection_file(self, tmp_path):
        """Test a missing detection file is rejected before running."""
        result = runner.invoke(app, ["generate", str(tmp_path / "missing.json")])

        assert result.exit_code == 2


class TestSuiteCommand:
    """Test the suite command."""

    def test_suite_writes_all_workflows(self, detection_file, tmp_path):
        """Test the complete suite is written."""
        out = tmp_path / "workflows"
        result = runner.invoke(app, ["suite", str(detection_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out.iterdir()) == sorted([
            "ci.yml", "cd.yml", "security.yml", "performance.yml",
            "testing.yml", "monitoring.yml", "maintenance.yml",
        ])

    def test_suite_with_agent_hooks(self, detection_file, tmp_path):
        """Test --agent-hooks adds the automation workflows."""
        out = tmp_path / "workflows"
        result = runner.invoke(app, ["suite", str(detection_file), "--agent-hooks", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert len(list(out.iterdir())) == 11


class TestEnvironmentsCommand:
    """Test the environments command."""

    def test_environments_dry_run(self, detection_file, tmp_path):
        """Test environment workflows are printed on a dry run."""
        envs = tmp_path / "environments.json"
        envs.write_text(json.dumps([
            {"name": "staging", "type": "staging"},
            {"name": "production", "type": "production", "rollbackEnabled": True},
        ]))

        result = runner.invoke(app, ["environments", str(detection_file), str(envs), "--oidc", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "# --- deploy-staging.yml ---" in result.output
        assert "# --- promotion.yml ---" in result.output
        assert "# --- rollback.yml ---" in result.output

    def test_invalid_environments_exit_1(self, detection_file, tmp_path):
        """Test an empty environment list is reported as an error."""
        envs = tmp_path / "environments.json"
        envs.write_text("[]")

        result = runner.invoke(app, ["environments", str(detection_file), str(envs), "--dry-run"])

        assert result.exit_code == 1


class TestPatternCommand:
    """Test the pattern command."""

    def test_canary_pattern(self, detection_file, tmp_path):
        """Test a pattern config file produces its workflows."""
        pattern = tmp_path / "pattern.json"
        pattern.write_text(json.dumps({"type": "canary", "stages": [{"percentage": 10}, {"percentage": 100}]}))

        result = runner.invoke(app, ["pattern", str(detection_file), str(pattern), "-o", str(tmp_path / "out")])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "canary-deployment.yml").exists()

    def test_unknown_pattern_exits_1(self, detection_file, tmp_path):
        """Test an unsupported pattern type is reported as an error."""
        pattern = tmp_path / "pattern.json"
        pattern.write_text(json.dumps({"type": "dark-launch"}))

        result = runner.invoke(app, ["pattern", str(detection_file), str(pattern), "--dry-run"])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestValidateCommand:
    """Test the validate command."""

    VALID = (
        "name: CI\n"
        "on: push\n"
        "jobs:\n"
        "  build:\n"
        "    runs-on: ubuntu-latest\n"
        "    steps:\n"
        "      - uses: actions/checkout@v4\n"
    )

    def test_valid_file(self, tmp_path):
        """Test a valid workflow exits 0."""
        path = tmp_path / "ci.yml"
        path.write_text(self.VALID)

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0, result.output
        assert "VALID" in result.output

    def test_json_output(self, tmp_path):
        """Test --json prints the validation result."""
        path = tmp_path / "ci.yml"
        path.write_text(self.VALID)

        result = runner.invoke(app, ["validate", str(path), "--json"])

        assert result.exit_code == 0, result.output
        assert '"isValid": true' in result.output

    def test_invalid_file_exits_1(self, tmp_path):
        """Test structural errors fail the command."""
        good = tmp_path / "ci.yml"
        good.write_text(self.VALID)
        bad = tmp_path / "broken.yml"
        bad.write_text("name: Broken\non: push\n")

        result = runner.invoke(app, ["validate", str(good), str(bad)])

        assert result.exit_code == 1
        assert "Missing required field 'jobs'" in result.output

    def test_unparseable_file_exits_1(self, tmp_path):
        """Test YAML syntax errors fail the command."""
        path = tmp_path / "broken.yml"
        path.write_text("jobs: [unclosed\n")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
