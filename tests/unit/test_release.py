"""Tests for the release workflow generator."""

import pytest
import yaml

from workflow_agent.models.options import GenerationOptions, WorkflowType
from workflow_agent.validators.workflow_validator import get_triggers, validate_workflow


@pytest.fixture
def generator(engine_config):
    from workflow_agent.generators.release_generator import ReleaseGenerator

    return ReleaseGenerator(config=engine_config)


def _options(**kwargs):
    builder = GenerationOptions.builder().workflow_type(WorkflowType.RELEASE)
    for key, value in kwargs.items():
        getattr(builder, key)(value)
    return builder.build()


def _steps(job):
    return {step["name"]: step for step in job["steps"]}


class TestReleaseWorkflow:
    """Test the release pipeline for typical projects."""

    def test_npm_release(self, generator, react_detection, resolve):
        """Test a Node project is versioned, built, published to npm and released."""
        output = generator.generate(resolve(react_detection), _options())
        document = yaml.safe_load(output.content)
        jobs = document["jobs"]

        assert output.filename == "release.yml"
        assert output.type == WorkflowType.RELEASE
        assert validate_workflow(output.content).is_valid
        assert list(jobs) == [
            "prepare-version", "changelog", "build-and-test", "publish", "create-release", "post-release",
        ]
        assert jobs["create-release"]["needs"] == ["prepare-version", "changelog", "build-and-test", "publish"]
        assert document["concurrency"] == {"group": "release", "cancel-in-progress": False}

        publish = _steps(jobs["publish"])
        assert publish["Publish to npm"]["env"]["NODE_AUTH_TOKEN"] == "${{ secrets.NPM_TOKEN }}"
        setup_node = next(s for s in jobs["publish"]["steps"] if s.get("uses", "").startswith("actions/setup-node@"))
        assert setup_node["with"]["registry-url"] == "https://registry.npmjs.org"
        assert "npm version \"$VERSION\"" in publish["Set release version"]["run"]

    def test_dispatch_inputs_and_schedule(self, generator, react_detection, resolve):
        """Test the release can be dispatched with a release type or run weekly."""
        document = yaml.safe_load(generator.generate(resolve(react_detection), _options()).content)
        triggers = get_triggers(document)

        assert triggers["workflow_dispatch"]["inputs"]["release-type"]["options"] == [
            "patch", "minor", "major", "prerelease",
        ]
        assert triggers["schedule"] == [{"cron": "0 10 * * 1"}]

    def test_version_and_changelog_outputs(self, generator, react_detection, resolve):
        """Test later jobs read the version and notes from job outputs."""
        jobs = yaml.safe_load(generator.generate(resolve(react_detection), _options()).content)["jobs"]
        prepare = jobs["prepare-version"]

        assert prepare["outputs"]["new-version"] == "${{ steps.version.outputs.new-version }}"
        assert prepare["steps"][0]["with"]["fetch-depth"] == 0
        assert "require('./package.json').version" in _steps(prepare)["Calculate version"]["run"]
        release = _steps(jobs["create-release"])["Tag and publish release"]
        assert release["env"]["NOTES"] == "${{ needs.changelog.outputs.changelog }}"
        assert release["env"]["GH_REPO"] == "${{ github.repository }}"
        assert "gh release create \"v$VERSION\"" in release["run"]

    def test_python_release_publishes_to_pypi_and_registry(self, generator, python_detection, resolve):
        """Test a containerised Python service publishes to PyPI and pushes an image."""
        output = generator.generate(resolve(python_detection), _options())
        jobs = yaml.safe_load(output.content)["jobs"]
        publish = _steps(jobs["publish"])

        assert "twine upload dist/*" in publish["Publish to PyPI"]["run"]
        assert publish["Publish to PyPI"]["env"]["TWINE_PASSWORD"] == "${{ secrets.PYPI_TOKEN }}"
        assert any(s.get("uses", "").startswith("docker/build-push-action@") for s in jobs["publish"]["steps"])
        assert "python -m build" in output.content
        assert "PyPI publishing runs only after build and tests pass" in output.metadata.optimizations

    def test_artifacts_kept_for_ninety_days(self, generator, react_detection, resolve):
        """Test release artifacts are checksummed and retained."""
        jobs = yaml.safe_load(generator.generate(resolve(react_detection), _options()).content)["jobs"]
        build = _steps(jobs["build-and-test"])

        assert "sha256sum * > checksums.txt" in build["Collect release artifacts"]["run"]
        upload = next(s for s in jobs["build-and-test"]["steps"]
                      if s.get("uses", "").startswith("actions/upload-artifact@"))
        assert upload["with"]["name"] == "release-artifacts"
        assert upload["with"]["retention-days"] == 90


class TestReleaseFallbacks:
    """Test degraded inputs still produce a usable release."""

    def test_unknown_registry_skips_publish(self, generator, resolve):
        """Test a package manager without a known registry drops the publish job."""
        detection = resolve({"languages": [{"name": "PHP", "primary": True}], "packageManagers": ["composer"]})

        output = generator.generate(detection, _options())
        jobs = yaml.safe_load(output.content)["jobs"]

        assert "publish" not in jobs
        assert jobs["create-release"]["needs"] == ["prepare-version", "changelog", "build-and-test"]
        assert ("No package registry known for composer - manual publishing may be required"
                in output.metadata.warnings)

    def test_go_release_warms_module_proxy(self, generator, resolve):
        """Test Go modules are released through the tag without a registry warning."""
        output = generator.generate(resolve({"languages": [{"name": "Go", "primary": True}]}), _options())
        jobs = yaml.safe_load(output.content)["jobs"]

        assert "publish" not in jobs
        assert "proxy.golang.org" in _steps(jobs["post-release"])["Warm the Go module proxy"]["run"]
        assert not any("No package registry" in w for w in output.metadata.warnings)

    def test_generic_project(self, generator, empty_detection, resolve):
        """Test an empty detection still yields a valid release workflow."""
        output = generator.generate(resolve(empty_detection), _options())

        assert validate_workflow(output.content).is_valid
        assert "No languages detected - using generic release workflow" in output.metadata.warnings
        assert "publish" not in yaml.safe_load(output.content)["jobs"]

    def test_enterprise_audit_blocks_release(self, generator, react_detection, resolve):
        """Test the dependency audit only fails the release at enterprise level."""
        standard = yaml.safe_load(generator.generate(resolve(react_detection), _options()).content)
        enterprise = yaml.safe_load(generator.generate(
            resolve(react_detection), _options(security_level="enterprise")).content)

        def audit(document):
            return next(s for s in document["jobs"]["build-and-test"]["steps"] if "audit" in s.get("run", ""))

        assert audit(standard)["continue-on-error"] is True
        assert audit(enterprise)["continue-on-error"] is False
