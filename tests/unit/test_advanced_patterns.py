"""Tests for the advanced pattern generator."""

import pytest
import yaml

from workflow_agent.core.errors import CyclicDependencyError, InvalidInputError, UnsupportedPatternError
from workflow_agent.models.options import GenerationOptions
from workflow_agent.validators.workflow_validator import get_triggers, validate_workflow


@pytest.fixture
def generator(engine_config):
    from workflow_agent.generators.advanced_pattern_generator import AdvancedPatternGenerator

    return AdvancedPatternGenerator(config=engine_config)


@pytest.fixture
def node_project(resolve):
    return resolve({
        "languages": [{"name": "TypeScript", "primary": True}],
        "packageManagers": ["pnpm"],
        "testingFrameworks": ["vitest"],
        "deploymentTargets": ["kubernetes"],
        "projectMetadata": {"name": "platform"},
    })


def _by_name(outputs):
    return {o.filename: yaml.safe_load(o.content) for o in outputs}


class TestPatternHandlers:
    """Test the pattern dispatch table."""

    def test_every_pattern_type_has_a_handler(self, generator):
        """Test each PatternType maps to an existing handler method."""
        from workflow_agent.generators.advanced_pattern_generator import PATTERN_HANDLERS
        from workflow_agent.models.patterns import PatternType

        assert set(PATTERN_HANDLERS) == set(PatternType)
        for method in PATTERN_HANDLERS.values():
            assert callable(getattr(generator, method))

    def test_unsupported_type_raises(self, generator, node_project):
        """Test an unknown pattern type is rejected."""
        with pytest.raises(UnsupportedPatternError):
            generator.generate(node_project, GenerationOptions(), {"type": "serverless"})


class TestMonorepo:
    """Test monorepo workflows."""

    @pytest.fixture
    def monorepo(self):
        return {
            "type": "monorepo",
            "packages": [
                {"name": "web", "path": "apps/web", "dependencies": ["ui"], "deployable": True},
                {"name": "ui", "path": "packages/ui"},
                {"name": "api", "path": "apps/api", "language": "python", "dependencies": ["schema"]},
                {"name": "schema", "path": "packages/schema"},
            ],
            "sharedPaths": ["tsconfig.base.json"],
        }

    def test_build_jobs_follow_dependencies(self, generator, node_project, monorepo):
        """Test package jobs need their dependencies' build jobs."""
        outputs = generator.generate(node_project, GenerationOptions(), monorepo)
        document = _by_name(outputs)["monorepo-ci.yml"]
        jobs = document["jobs"]

        assert document["name"] == "Monorepo CI"
        assert "detect-changes" in jobs
        assert jobs["build-web"]["needs"] == ["detect-changes", "build-ui"]
        assert jobs["build-api"]["needs"] == ["detect-changes", "build-schema"]
        assert jobs["build-ui"]["needs"] == ["detect-changes"]
        order = list(jobs)
        assert order.index("build-ui") < order.index("build-web")

    def test_dependents_rebuild_on_change(self, generator, node_project, monorepo):
        """Test a change to ui also marks web as affected."""
        outputs = generator.generate(node_project, GenerationOptions(), monorepo)
        script = _by_name(outputs)["monorepo-ci.yml"]["jobs"]["detect-changes"]["steps"][2]["run"]

        assert 'changed="$changed ui web"' in script
        assert '"$SHARED_CHANGED" = "true"' in script

    def test_path_filters(self, generator, node_project, monorepo):
        """Test triggers only fire for package and shared paths."""
        outputs = generator.generate(node_project, GenerationOptions(), monorepo)
        triggers = outputs[0].workflow.triggers

        assert triggers["push"]["paths"] == [
            "apps/web/**", "packages/ui/**", "apps/api/**", "packages/schema/**", "tsconfig.base.json",
        ]

    def test_deployable_package_gets_deploy_workflow(self, generator, node_project, monorepo):
        """Test only deployable packages get a deploy workflow."""
        outputs = generator.generate(node_project, GenerationOptions(), monorepo)

        assert [o.filename for o in outputs] == ["monorepo-ci.yml", "deploy-web.yml"]
        for output in outputs:
            assert validate_workflow(output.content).is_valid

    def test_per_package_language(self, generator, node_project, monorepo):
        """Test a package can override the project language."""
        outputs = generator.generate(node_project, GenerationOptions(), monorepo)
        api = outputs[0].workflow.job("build-api")

        assert api.uses_action("actions/setup-python")
        assert not api.uses_action("pnpm/action-setup")

    def test_cycle_raises(self, generator, node_project):
        """Test cyclic package dependencies are rejected."""
        pattern = {"type": "monorepo", "packages": [
            {"name": "a", "dependencies": ["b"]},
            {"name": "b", "dependencies": ["a"]},
        ]}

        with pytest.raises(CyclicDependencyError) as exc_info:
            generator.generate(node_project, GenerationOptions(), pattern)
        assert set(exc_info.value.cycle) == {"a", "b"}

    def test_matrix_above_threshold(self, generator, node_project):
        """Test large monorepos build as matrix levels."""
        packages = [{"name": f"pkg-{i}"} for i in range(4)]
        packages.append({"name": "app", "dependencies": ["pkg-0", "pkg-1"]})
        pattern = {"type": "monorepo", "packages": packages, "matrixThreshold": 3}

        outputs = generator.generate(node_project, GenerationOptions(), pattern)
        jobs = _by_name(outputs)["monorepo-ci.yml"]["jobs"]

        assert list(jobs) == ["detect-changes", "build-level-0", "build-level-1"]
        level0 = [entry["package"] for entry in jobs["build-level-0"]["strategy"]["matrix"]["include"]]
        assert level0 == ["pkg-0", "pkg-1", "pkg-2", "pkg-3"]
        assert jobs["build-level-1"]["needs"] == ["detect-changes", "build-level-0"]

    def test_build_order_without_dependencies(self, generator, node_project):
        """Test build order chains packages when no dependencies are declared."""
        pattern = {"type": "monorepo", "packages": [{"name": "b"}, {"name": "a"}], "buildOrder": ["a", "b"]}

        outputs = generator.generate(node_project, GenerationOptions(), pattern)
        jobs = _by_name(outputs)["monorepo-ci.yml"]["jobs"]

        assert jobs["build-b"]["needs"] == ["detect-changes", "build-a"]

    def test_no_packages_raises(self, generator, node_project):
        """Test a monorepo without packages is rejected."""
        with pytest.raises(InvalidInputError):
            generator.generate(node_project, GenerationOptions(), {"type": "monorepo", "packages": []})


class TestMicroservices:
    """Test microservices workflows."""

    @pytest.fixture
    def services(self):
        return {
            "type": "microservices",
            "services": [
                {"name": "gateway", "dependencies": ["users", "orders"]},
                {"name": "users", "port": 8081},
                {"name": "orders", "dependencies": ["users"], "replicas": 3},
            ],
            "serviceMesh": {"enabled": True, "provider": "linkerd"},
            "tracing": {"enabled": True, "sampleRate": 0.5},
        }

    def test_deploys_in_dependency_order(self, generator, node_project, services):
        """Test services deploy after the services they depend on."""
        outputs = generator.generate(node_project, GenerationOptions(), services)
        documents = _by_name(outputs)
        jobs = documents["microservices-deployment.yml"]["jobs"]

        assert list(jobs) == [
            "resolve-dependencies", "deploy-users", "deploy-orders", "deploy-gateway", "coordinate-deployment",
        ]
        assert jobs["deploy-gateway"]["needs"] == ["resolve-dependencies", "deploy-users", "deploy-orders"]
        assert "--replicas=3" in outputs[0].content
        assert "linkerd.io/inject=enabled" in outputs[0].content
        assert documents["microservices-deployment.yml"]["env"]["OTEL_TRACES_SAMPLER_ARG"] == "0.5"

    def test_health_workflow(self, generator, node_project, services):
        """Test a scheduled health check covers every service."""
        outputs = generator.generate(node_project, GenerationOptions(), services)
        health = _by_name(outputs)["microservices-health.yml"]
        include = health["jobs"]["health-check"]["strategy"]["matrix"]["include"]

        assert get_triggers(health)["schedule"] == [{"cron": "*/5 * * * *"}]
        assert [entry["service"] for entry in include] == ["gateway", "users", "orders"]
        assert all(validate_workflow(o.content).is_valid for o in outputs)

    def test_cycle_raises(self, generator, node_project):
        """Test cyclic service dependencies are rejected."""
        pattern = {"type": "microservices", "services": [
            {"name": "a", "dependencies": ["b"]},
            {"name": "b", "dependencies": ["a"]},
        ]}

        with pytest.raises(CyclicDependencyError):
            generator.generate(node_project, GenerationOptions(), pattern)


class TestCanary:
    """Test canary workflows."""

    def test_stages_chain(self, generator, node_project):
        """Test each stage follows the previous one and rollback watches all."""
        pattern = {"type": "canary", "stages": [
            {"percentage": 10, "duration": "5m",
             "rollbackCriteria": [{"metric": "error_rate", "operator": ">", "threshold": 5}]},
            {"percentage": 50, "duration": "10m"},
        ]}

        outputs = generator.generate(node_project, GenerationOptions(), pattern)
        jobs = yaml.safe_load(outputs[0].content)["jobs"]

        assert outputs[0].filename == "canary-deployment.yml"
        assert list(jobs) == ["deploy-canary", "canary-stage-1", "canary-stage-2",
                              "promote-canary", "rollback-canary"]
        assert jobs["canary-stage-2"]["needs"] == ["canary-stage-1"]
        assert jobs["canary-stage-1"]["env"]["TRAFFIC_PERCENTAGE"] == "10"
        assert jobs["rollback-canary"]["if"] == "failure()"
        assert "error_rate > 5" in outputs[0].content
        assert validate_workflow(outputs[0].content).is_valid

    def test_non_monotonic_stages_warn(self, generator, node_project):
        """Test decreasing stage percentages are flagged but still generated."""
        pattern = {"type": "canary", "stages": [{"percentage": 50}, {"percentage": 20}]}

        outputs = generator.generate(node_project, GenerationOptions(), pattern)

        assert "Canary stage percentages decrease: [50, 20]" in outputs[0].metadata.warnings

    def test_repeated_percentage_is_allowed(self, generator, node_project):
        """Test holding traffic at the same percentage is not a stage-order issue."""
        pattern = {"type": "canary", "stages": [{"percentage": 25}, {"percentage": 25}, {"percentage": 100}]}

        outputs = generator.generate(node_project, GenerationOptions(), pattern)

        assert not any("percentages decrease" in w for w in outputs[0].metadata.warnings)

    def test_no_stages_raises(self, generator, node_project):
        """Test a canary pattern needs stages."""
        with pytest.raises(InvalidInputError):
            generator.generate(node_project, GenerationOptions(), {"type": "canary", "stages": []})


class TestBlueGreen:
    """Test blue-green workflows."""

    def test_jobs(self, generator, node_project):
        """Test deploy, switch and rollback jobs are generated."""
        outputs = generator.generate(node_project, GenerationOptions(), {"type": "blue-green"})
        jobs = yaml.safe_load(outputs[0].content)["jobs"]

        assert outputs[0].filename == "blue-green-deployment.yml"
        assert {"deploy-blue", "deploy-green", "switch-traffic", "rollback"} <= set(jobs)
        assert validate_workflow(outputs[0].content).is_valid

    def test_traffic_jobs_check_out_first(self, generator, resolve):
        """Test jobs that fall back to repository scripts check out the repo first."""
        project = resolve({"languages": [{"name": "Go", "primary": True}]})
        canary = generator.generate(project, GenerationOptions(), {"type": "canary", "stages": [{"percentage": 100}]})
        blue_green = generator.generate(project, GenerationOptions(), {"type": "blue-green"})

        canary_jobs = yaml.safe_load(canary[0].content)["jobs"]
        blue_green_jobs = yaml.safe_load(blue_green[0].content)["jobs"]
        for job in (canary_jobs["promote-canary"], canary_jobs["rollback-canary"],
                    blue_green_jobs["switch-traffic"], blue_green_jobs["rollback"]):
            assert job["steps"][0]["uses"].startswith("actions/checkout@")
            assert any("./scripts/" in step.get("run", "") for step in job["steps"])


class TestFeatureFlags:
    """Test feature flag workflows."""

    def test_rollout_per_segment(self, generator, node_project):
        """Test each segment gets a rollout job and a rollback workflow exists."""
        pattern = {
            "type": "feature-flags",
            "flags": ["new-checkout", {"key": "dark-mode"}],
            "segments": [
                {"name": "beta users", "rolloutPercentages": [10, 50]},
                {"name": "everyone", "rolloutPercentages": [100]},
            ],
            "rollbackTriggers": [{"metric": "error_rate", "operator": ">", "threshold": 2}],
        }

        outputs = generator.generate(node_project, GenerationOptions(), pattern)
        documents = _by_name(outputs)
        jobs = documents["feature-flags.yml"]["jobs"]

        assert set(documents) == {"feature-flags.yml", "feature-flag-rollback.yml"}
        assert {"validate-flags", "deploy", "rollout-beta-users", "rollout-everyone"} <= set(jobs)
        assert "disable-flags" in documents["feature-flag-rollback.yml"]["jobs"]
        assert "error_rate > 2" in outputs[0].content

    def test_script_jobs_check_out_first(self, generator, node_project):
        """Test rollout and disable jobs check out the repo before calling its scripts."""
        pattern = {
            "type": "feature-flags",
            "flags": ["new-checkout"],
            "segments": [{"name": "beta users", "rolloutPercentages": [10, 100]}],
            "rollbackTriggers": [{"metric": "error_rate", "operator": ">", "threshold": 2}],
        }

        documents = _by_name(generator.generate(node_project, GenerationOptions(), pattern))
        rollout = documents["feature-flags.yml"]["jobs"]["rollout-beta-users"]
        disable = documents["feature-flag-rollback.yml"]["jobs"]["disable-flags"]

        for job in (rollout, disable):
            assert job["steps"][0]["uses"].startswith("actions/checkout@")
        assert "./scripts/set-flag-rollout.sh" in rollout["steps"][1]["run"]

    def test_missing_triggers_warn(self, generator, node_project):
        """Test a rollout without rollback triggers is flagged."""
        outputs = generator.generate(node_project, GenerationOptions(),
                                     {"type": "feature-flags", "flags": ["beta"]})

        assert "No rollback triggers configured for feature flag rollout" in outputs[0].metadata.warnings

    def test_no_flags_raises(self, generator, node_project):
        """Test a feature flag pattern needs flags."""
        with pytest.raises(InvalidInputError):
            generator.generate(node_project, GenerationOptions(), {"type": "feature-flags", "flags": []})


class TestOrchestration:
    """Test parent/child workflow orchestration."""

    @pytest.fixture
    def orchestration(self):
        return {
            "type": "orchestration",
            "parentWorkflow": {"name": "Release Train", "strategy": "sequential", "timeout": 45},
            "childWorkflows": [
                {"name": "build", "workflow": "build.yml", "inputs": {"target": "linux amd64"}},
                {"name": "integration", "workflow": ".github/workflows/integration.yml", "timeout": 20},
                {"name": "deploy", "workflow": "deploy.yml", "condition": "github.ref == 'refs/heads/main'"},
            ],
            "coordination": {"strategy": "wait-all", "maxConcurrency": 2},
            "errorHandling": {"strategy": "retry", "notifications": ["slack", "issue"], "rollbackEnabled": True},
        }

    def test_generates_three_valid_workflows(self, generator, node_project, orchestration):
        """Test the parent, coordination and error handling workflows are valid."""
        outputs = generator.generate(node_project, GenerationOptions(), orchestration)

        assert [o.filename for o in outputs] == [
            "orchestration.yml", "orchestration-coordination.yml", "orchestration-error-handling.yml",
        ]
        for output in outputs:
            assert validate_workflow(output.content).is_valid, output.filename

    def test_sequential_children_chain_in_declared_order(self, generator, node_project, orchestration):
        """Test children without dependencies run one after another."""
        documents = _by_name(generator.generate(node_project, GenerationOptions(), orchestration))
        parent = documents["orchestration.yml"]
        jobs = parent["jobs"]

        assert parent["name"] == "Release Train"
        assert list(jobs) == ["plan-orchestration", "run-build", "run-integration", "run-deploy",
                              "orchestration-summary"]
        assert jobs["run-build"]["needs"] == ["plan-orchestration"]
        assert jobs["run-integration"]["needs"] == ["plan-orchestration", "run-build"]
        assert jobs["run-deploy"]["needs"] == ["plan-orchestration", "run-integration"]
        assert jobs["run-deploy"]["if"] == "!failure() && !cancelled() && (github.ref == 'refs/heads/main')"
        assert jobs["run-build"]["timeout-minutes"] == 45
        assert jobs["run-integration"]["timeout-minutes"] == 20

    def test_children_are_dispatched_and_watched(self, generator, node_project, orchestration):
        """Test each child is triggered through gh with its inputs, then watched."""
        documents = _by_name(generator.generate(node_project, GenerationOptions(), orchestration))
        steps = documents["orchestration.yml"]["jobs"]["run-build"]["steps"]

        assert "gh workflow run \"build.yml\"" in steps[0]["run"]
        assert "-f 'target=linux amd64'" in steps[0]["run"]
        assert steps[0]["env"]["GH_REPO"] == "${{ github.repository }}"
        assert "gh run watch \"$RUN_ID\" --exit-status" in steps[1]["run"]
        assert steps[1]["env"]["RUN_ID"] == "${{ steps.dispatch.outputs.run-id }}"
        integration = documents["orchestration.yml"]["jobs"]["run-integration"]["steps"][0]["run"]
        assert "gh workflow run \"integration.yml\"" in integration

    def test_plan_verifies_child_files(self, generator, node_project, orchestration):
        """Test the plan job checks every child workflow exists before running any."""
        documents = _by_name(generator.generate(node_project, GenerationOptions(), orchestration))
        plan = documents["orchestration.yml"]["jobs"]["plan-orchestration"]

        assert plan["steps"][0]["uses"].startswith("actions/checkout@")
        assert ".github/workflows/deploy.yml" in plan["steps"][1]["run"]
        assert "execution-plan=[\"build\", \"integration\", \"deploy\"]" in plan["steps"][2]["run"]

    def test_declared_dependencies_order_children(self, generator, node_project):
        """Test declared dependencies replace the declared order."""
        pattern = {
            "type": "orchestration",
            "childWorkflows": [
                {"name": "deploy", "dependencies": ["test"]},
                {"name": "test", "dependencies": ["build"]},
                {"name": "build"},
            ],
        }

        documents = _by_name(generator.generate(node_project, GenerationOptions(), pattern))
        jobs = documents["orchestration.yml"]["jobs"]

        assert list(jobs)[1:4] == ["run-build", "run-test", "run-deploy"]
        assert jobs["run-deploy"]["needs"] == ["plan-orchestration", "run-test"]
        assert "gh workflow run \"deploy.yml\"" in jobs["run-deploy"]["steps"][0]["run"]

    def test_cycle_raises(self, generator, node_project):
        """Test a dependency cycle among children is rejected."""
        pattern = {
            "type": "orchestration",
            "childWorkflows": [{"name": "a", "dependencies": ["b"]}, {"name": "b", "dependencies": ["a"]}],
        }

        with pytest.raises(CyclicDependencyError):
            generator.generate(node_project, GenerationOptions(), pattern)

    def test_parallel_strategy_uses_matrix(self, generator, node_project):
        """Test parallel children share a matrix limited by maxConcurrency."""
        pattern = {
            "type": "orchestration",
            "parentWorkflow": {"strategy": "parallel"},
            "childWorkflows": [{"name": "lint"}, {"name": "unit"}, {"name": "e2e", "condition": "always()"}],
            "coordination": {"strategy": "fail-fast", "maxConcurrency": 2},
        }

        outputs = generator.generate(node_project, GenerationOptions(), pattern)
        jobs = _by_name(outputs)["orchestration.yml"]["jobs"]
        strategy = jobs["run-level-0"]["strategy"]

        assert strategy["max-parallel"] == 2
        assert strategy["fail-fast"] is True
        assert [entry["child"] for entry in strategy["matrix"]["include"]] == ["lint", "unit", "e2e"]
        assert jobs["orchestration-summary"]["needs"] == ["run-level-0"]
        assert "Condition on 'e2e' is ignored by the parallel strategy" in outputs[0].metadata.warnings

    def test_wait_any_fails_only_without_a_success(self, generator, node_project):
        """Test wait-any coordination tolerates individual child failures."""
        pattern = {
            "type": "orchestration",
            "parentWorkflow": {"strategy": "conditional"},
            "childWorkflows": [{"name": "primary"}, {"name": "fallback"}],
            "coordination": {"strategy": "wait-any"},
        }

        jobs = _by_name(generator.generate(node_project, GenerationOptions(), pattern))["orchestration.yml"]["jobs"]
        summary = jobs["orchestration-summary"]

        assert jobs["run-fallback"]["needs"] == ["plan-orchestration"]
        assert jobs["run-fallback"]["if"] == "!failure() && !cancelled()"
        assert summary["if"] == "always()"
        assert summary["steps"][1]["if"] == "!contains(needs.*.result, 'success')"

    def test_retry_policy_adds_backoff(self, generator, node_project):
        """Test an enabled retry policy reruns failed children with backoff."""
        pattern = {
            "type": "orchestration",
            "childWorkflows": [{"name": "flaky"}],
            "coordination": {"retryPolicy": {"maxAttempts": 4, "backoffStrategy": "linear", "initialDelay": "10s"}},
        }

        documents = _by_name(generator.generate(node_project, GenerationOptions(), pattern))
        watch = documents["orchestration.yml"]["jobs"]["run-flaky"]["steps"][1]["run"]

        assert "gh run rerun \"$RUN_ID\" --failed" in watch
        assert "-ge 4" in watch
        assert "delay=$(( 10 * attempt ))" in watch

    def test_error_handling_workflow(self, generator, node_project, orchestration):
        """Test error handling analyzes, retries, rolls back and notifies."""
        documents = _by_name(generator.generate(node_project, GenerationOptions(), orchestration))
        handler = documents["orchestration-error-handling.yml"]
        steps = {step["name"]: step for step in handler["jobs"]["handle-error"]["steps"]}
        inputs = get_triggers(handler)["workflow_dispatch"]["inputs"]

        assert set(inputs) == {"failed-workflow", "error-type", "environment"}
        assert steps["Retry failed run"]["if"] == "steps.analyze.outputs.retryable == 'true'"
        assert steps["Trigger rollback"]["if"] == "steps.recover.outcome != 'success'"
        assert steps["Notify Slack"]["uses"].startswith("slackapi/slack-github-action@")
        assert "gh issue create" in steps["Open failure issue"]["run"]
        assert handler["permissions"]["issues"] == "write"

    def test_coordination_workflow_lists_children(self, generator, node_project, orchestration):
        """Test the coordination workflow defaults to every child workflow file."""
        documents = _by_name(generator.generate(node_project, GenerationOptions(), orchestration))
        coordination = documents["orchestration-coordination.yml"]
        step = coordination["jobs"]["coordinate-workflows"]["steps"][0]
        action = get_triggers(coordination)["workflow_dispatch"]["inputs"]["action"]

        assert action["options"] == ["status", "cancel-all", "retry-failed", "restart-all"]
        assert step["env"]["CHILD_WORKFLOWS"] == "build.yml integration.yml deploy.yml"
        assert step["env"]["GH_REPO"] == "${{ github.repository }}"

    def test_unknown_channel_warns(self, generator, node_project):
        """Test an unsupported notification channel is reported."""
        pattern = {
            "type": "orchestration",
            "childWorkflows": [{"name": "build"}],
            "errorHandling": {"notifications": ["pager"]},
        }

        outputs = generator.generate(node_project, GenerationOptions(), pattern)

        assert any("Unsupported notification channel 'pager'" in w for w in outputs[0].metadata.warnings)

    def test_invalid_children_raise(self, generator, node_project):
        """Test empty and duplicate children are rejected."""
        with pytest.raises(InvalidInputError):
            generator.generate(node_project, GenerationOptions(), {"type": "orchestration", "childWorkflows": []})
        with pytest.raises(InvalidInputError):
            generator.generate(node_project, GenerationOptions(), {
                "type": "orchestration",
                "childWorkflows": [{"name": "build"}, {"name": "build"}],
            })
        with pytest.raises(InvalidInputError):
            generator.generate(node_project, GenerationOptions(), {
                "type": "orchestration",
                "parentWorkflow": {"strategy": "random"},
                "childWorkflows": [{"name": "build"}],
            })
