"""Tests for the single-file workflow generators."""

import pytest
import yaml

from workflow_agent.models.options import GenerationOptions, WorkflowType
from workflow_agent.validators.workflow_validator import get_triggers, validate_workflow


def _options(**kwargs):
    builder = GenerationOptions.builder()
    for key, value in kwargs.items():
        getattr(builder, key)(value)
    return builder.build()


def _generator(name, engine_config):
    from workflow_agent.generators.yaml_generator import GENERATORS

    return GENERATORS[WorkflowType(name)](config=engine_config)


class TestCIGenerator:
    """Test the CI workflow."""

    def test_standard_react_workflow(self, react_detection, resolve, engine_config):
        """Test the default CI workflow for a React project."""
        output = _generator("ci", engine_config).generate(resolve(react_detection), _options())
        document = yaml.safe_load(output.content)

        assert output.filename == "ci.yml"
        assert document["name"] == "Continuous Integration"
        assert list(document["jobs"]) == ["lint", "build-and-test"]
        assert document["jobs"]["build-and-test"]["needs"] == ["lint"]
        assert document["concurrency"]["group"] == "ci-${{ github.ref }}"
        steps = document["jobs"]["build-and-test"]["steps"]
        assert any(s.get("uses", "").startswith("actions/cache@") for s in steps)
        assert any(s.get("run") == "npm ci" for s in steps)
        assert any(s.get("run") == "npx jest --ci --coverage" for s in steps)

    def test_selected_framework_only(self, react_detection, resolve, engine_config):
        """Test the rejected framework never appears in the output."""
        output = _generator("ci", engine_config).generate(resolve(react_detection), _options())

        assert "Vue" not in output.content
        assert any("rejected Vue" in w for w in output.metadata.warnings)

    def test_basic_disables_caching_and_lint(self, react_detection, resolve, engine_config):
        """Test basic optimization skips caching, linting and audits."""
        output = _generator("ci", engine_config).generate(
            resolve(react_detection), _options(optimization_level="basic"))
        document = yaml.safe_load(output.content)

        assert list(document["jobs"]) == ["build-and-test"]
        uses = [s.get("uses", "") for s in document["jobs"]["build-and-test"]["steps"]]
        assert not any(u.startswith("actions/cache@") for u in uses)
        assert "npm audit" not in output.content

    def test_aggressive_adds_matrix(self, react_detection, resolve, engine_config):
        """Test aggressive optimization builds across a version matrix."""
        output = _generator("ci", engine_config).generate(
            resolve(react_detection), _options(optimization_level="aggressive"))
        job = yaml.safe_load(output.content)["jobs"]["build-and-test"]

        assert job["strategy"]["matrix"]["node-version"] == ["18", "20", "22"]
        assert job["strategy"]["fail-fast"] is False
        assert any("Matrix build" in note for note in output.metadata.optimizations)

    def test_enterprise_adds_permissions_and_codeql(self, react_detection, resolve, engine_config):
        """Test enterprise security adds least-privilege permissions and CodeQL."""
        output = _generator("ci", engine_config).generate(
            resolve(react_detection), _options(security_level="enterprise"))
        document = yaml.safe_load(output.content)

        assert document["permissions"] == {"contents": "read"}
        assert "codeql" in document["jobs"]
        assert document["jobs"]["codeql"]["permissions"]["security-events"] == "write"
        assert "npm audit --audit-level=high" in output.content

    def test_enterprise_rust_actions_are_pinned(self, resolve, engine_config):
        """Test every action in an enterprise Rust workflow uses a release tag."""
        output = _generator("ci", engine_config).generate(
            resolve({
                "languages": [{"name": "Rust", "confidence": 0.95, "primary": True}],
                "packageManagers": ["cargo"],
            }),
            _options(security_level="enterprise"),
        )
        document = yaml.safe_load(output.content)
        refs = [step["uses"] for job in document["jobs"].values()
                for step in job["steps"] if "uses" in step]

        assert "actions-rust-lang/setup-rust-toolchain@v1" in refs
        assert all("@v" in ref for ref in refs)
        assert not any("moving branch" in w for w in validate_workflow(output.content).warnings)

    def test_empty_detection_uses_generic_job(self, empty_detection, resolve, engine_config):
        """Test an empty detection still yields a valid generic workflow."""
        output = _generator("ci", engine_config).generate(resolve(empty_detection), _options())
        document = yaml.safe_load(output.content)

        assert list(document["jobs"]) == ["build"]
        assert "Generic CI template used - no supported language detected" in output.metadata.warnings
        assert validate_workflow(output.content).is_valid

    def test_unknown_language_falls_back(self, resolve, engine_config):
        """Test a language without a setup action gets a fallback warning."""
        output = _generator("ci", engine_config).generate(
            resolve({"languages": [{"name": "Elixir", "primary": True}]}), _options())

        assert any("No setup template for language 'elixir'" in w for w in output.metadata.warnings)
        assert validate_workflow(output.content).is_valid

    def test_comments_can_be_disabled(self, react_detection, resolve, engine_config):
        """Test include_comments=False drops every comment line."""
        output = _generator("ci", engine_config).generate(
            resolve(react_detection), _options(include_comments=False))

        assert output.content.startswith("name: Continuous Integration\n")
        assert "  # Install, build and test the project" not in output.content


class TestCDGenerator:
    """Test the CD workflow."""

    def test_jobs_and_triggers(self, react_detection, resolve, engine_config):
        """Test build, deploy and verify run in order."""
        output = _generator("cd", engine_config).generate(resolve(react_detection), _options())
        document = yaml.safe_load(output.content)

        assert document["name"] == "Continuous Deployment"
        assert list(document["jobs"])[:2] == ["build", "deploy"]
        assert document["jobs"]["deploy"]["needs"] == ["build"]
        assert "v*" in get_triggers(document)["push"]["tags"]

    def test_no_targets_warns(self, resolve, engine_config):
        """Test missing deployment targets produce a warning."""
        output = _generator("cd", engine_config).generate(
            resolve({"languages": [{"name": "Go", "primary": True}]}), _options())

        assert "No deployment targets detected - using generic deploy steps" in output.metadata.warnings
        assert validate_workflow(output.content).is_valid


class TestSecurityGenerator:
    """Test the security workflow."""

    def test_standard_jobs(self, python_detection, resolve, engine_config):
        """Test the standard scans."""
        output = _generator("security", engine_config).generate(resolve(python_detection), _options())
        jobs = yaml.safe_load(output.content)["jobs"]

        assert {"dependency-audit", "dependency-review", "codeql", "secret-scan"} <= set(jobs)
        assert "sast" not in jobs
        assert "pip-audit" in output.content

    def test_enterprise_jobs(self, python_detection, resolve, engine_config):
        """Test enterprise adds SAST, license and container scans."""
        output = _generator("security", engine_config).generate(
            resolve(python_detection), _options(security_level="enterprise"))
        jobs = yaml.safe_load(output.content)["jobs"]

        assert {"sast", "license-compliance", "container-scan"} <= set(jobs)


class TestRemainingGenerators:
    """Test the performance, testing, monitoring and maintenance workflows."""

    @pytest.mark.parametrize("workflow_type,filename", [
        ("performance", "performance.yml"),
        ("testing", "testing.yml"),
        ("monitoring", "monitoring.yml"),
        ("maintenance", "maintenance.yml"),
        ("security", "security.yml"),
        ("cd", "cd.yml"),
        ("ci", "ci.yml"),
    ])
    def test_generates_valid_workflow(self, workflow_type, filename, react_detection, resolve, engine_config):
        """Test each generator emits a valid workflow for a typical project."""
        output = _generator(workflow_type, engine_config).generate(resolve(react_detection), _options())
        result = validate_workflow(output.content)

        assert output.filename == filename
        assert output.type == WorkflowType(workflow_type)
        assert result.is_valid, result.errors

    @pytest.mark.parametrize("workflow_type", ["performance", "testing", "monitoring", "maintenance"])
    def test_generic_input_is_valid(self, workflow_type, empty_detection, resolve, engine_config):
        """Test each generator degrades gracefully on empty input."""
        output = _generator(workflow_type, engine_config).generate(resolve(empty_detection), _options())

        assert validate_workflow(output.content).is_valid

    def test_testing_layers(self, react_detection, resolve, engine_config):
        """Test unit and integration tests feed the summary job."""
        output = _generator("testing", engine_config).generate(resolve(react_detection), _options())
        jobs = yaml.safe_load(output.content)["jobs"]

        assert "unit-tests" in jobs
        assert jobs["integration-tests"]["needs"] == ["unit-tests"]
        assert jobs["test-summary"]["if"] == "always()"

    def test_generation_is_deterministic(self, react_detection, resolve, engine_config):
        """Test the same input renders byte-identical content."""
        generator = _generator("security", engine_config)
        first = generator.generate(resolve(react_detection), _options())
        second = generator.generate(resolve(react_detection), _options())

        assert first.content == second.content
