"""
Advanced Pattern Generator - monorepo, microservices, canary, blue-green,
feature-flag and child-workflow orchestration workflows.

Each PatternType maps to one handler in PATTERN_HANDLERS. A handler returns
(filename, Workflow) pairs; rendering happens once every workflow of the
pattern is built so all outputs carry the same warnings.
"""

import json
import shlex
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..core.conflict_resolver import ResolvedDetection
from ..core.errors import DegenerateInputWarning, InvalidInputError, StageOrderWarning
from ..core.graph import DependencyGraph
from ..core.renderer import render_template
from ..models.options import GenerationOptions, WorkflowType
from ..models.patterns import (
    BlueGreenPattern,
    CanaryPattern,
    CanaryStage,
    ChildWorkflow,
    FeatureFlagPattern,
    MicroservicesPattern,
    MonorepoPackage,
    MonorepoPattern,
    OrchestrationPattern,
    PatternConfig,
    PatternType,
    RetryPolicy,
    parse_pattern_config,
)
from ..models.workflow import Job, Step, Workflow, WorkflowOutput, dispatch_input
from ..utils.helpers import env_var_name, format_duration, minutes_ceil, slugify
from .base_generator import BaseGenerator, GenerationContext
from .step_library import CONTAINER_TARGETS, GH_CLI_ENV, KUBERNETES_TARGETS, Toolchain

PATTERN_HANDLERS: Dict[PatternType, str] = {
    PatternType.MONOREPO: "monorepo_workflows",
    PatternType.MICROSERVICES: "microservices_workflows",
    PatternType.CANARY: "canary_workflows",
    PatternType.BLUE_GREEN: "blue_green_workflows",
    PatternType.FEATURE_FLAGS: "feature_flag_workflows",
    PatternType.ORCHESTRATION: "orchestration_workflows",
}

BuiltWorkflows = List[Tuple[str, Workflow]]

AFFECTED_PACKAGES_SCRIPT = """\
changed=""
{% for pkg in packages %}
if [ "${{ pkg.filter_var }}" = "true" ]{% if shared %} || [ "$SHARED_CHANGED" = "true" ]{% endif %}; then
  changed="$changed {{ pkg.affected | join(' ') }}"
fi
{% endfor %}
if [ "$GITHUB_EVENT_NAME" = "workflow_dispatch" ]; then
  changed="{{ all_packages | join(' ') }}"
fi
changed=$(echo "$changed" | tr ' ' '\\n' | sed '/^$/d' | sort -u | tr '\\n' ' ')
{% for pkg in packages %}
if echo " $changed " | grep -q " {{ pkg.name }} "; then
  echo "{{ pkg.slug }}=true" >> "$GITHUB_OUTPUT"
else
  echo "{{ pkg.slug }}=false" >> "$GITHUB_OUTPUT"
fi
{% endfor %}
echo "changed-packages=$(printf '%s\\n' $changed | jq -R . | jq -s -c .)" >> "$GITHUB_OUTPUT"
echo "Affected packages: ${changed:-none}"
"""

FLAG_ROLLOUT_SCRIPT = """\
{% for flag in flags %}
if [ -x ./scripts/set-flag-rollout.sh ]; then
  ./scripts/set-flag-rollout.sh "$FLAG_PROVIDER" "{{ flag }}" "{{ segment }}" {{ percentage }}
else
  echo "Set {{ flag }} to {{ percentage }}% for segment {{ segment }} via $FLAG_PROVIDER"
fi
{% endfor %}
"""

CHECK_TRIGGERS_SCRIPT = """\
sleep {{ observe_seconds }}
{% if triggers %}
if [ -x ./scripts/check-metrics.sh ]; then
  ./scripts/check-metrics.sh "$ROLLBACK_TRIGGERS"
else
  echo "Rollback triggers: $ROLLBACK_TRIGGERS"
fi
{% else %}
echo "No rollback triggers configured"
{% endif %}
"""

VERIFY_CHILDREN_SCRIPT = """\
missing=0
{% for workflow in workflows %}
if [ ! -f ".github/workflows/{{ workflow }}" ]; then
  echo "::error::Child workflow {{ workflow }} not found"
  missing=1
elif ! grep -q "workflow_dispatch" ".github/workflows/{{ workflow }}"; then
  echo "::error::Child workflow {{ workflow }} has no workflow_dispatch trigger"
  missing=1
fi
{% endfor %}
exit $missing
"""

DISPATCH_CHILD_SCRIPT = """\
started=$(date -u +%Y-%m-%dT%H:%M:%SZ)
gh workflow run "{{ workflow }}" --ref "$GITHUB_REF"{% if args %} {{ args }}{% endif %}

run_id=""
for _ in $(seq 1 12); do
  sleep 5
  run_id=$(gh run list --workflow "{{ workflow }}" --event workflow_dispatch --created ">=$started" \\
    --limit 1 --json databaseId --jq '.[0].databaseId // empty')
  if [ -n "$run_id" ]; then
    break
  fi
done
if [ -z "$run_id" ]; then
  echo "::error::{{ name }} did not start"
  exit 1
fi
echo "run-id=$run_id" >> "$GITHUB_OUTPUT"
"""

WATCH_CHILD_SCRIPT = """\
attempt=1
until gh run watch "$RUN_ID" --exit-status > /dev/null; do
{% if retry %}
  if [ "$attempt" -ge {{ max_attempts }} ]; then
    echo "::error::{{ name }} failed after $attempt attempts"
    exit 1
  fi
  delay={{ delay }}
  echo "{{ name }} failed; retrying in ${delay}s"
  sleep "$delay"
  gh run rerun "$RUN_ID" --failed
  sleep 10
  attempt=$((attempt + 1))
{% else %}
  echo "::error::{{ name }} failed"
  exit 1
{% endif %}
done
echo "{{ name }}: $GITHUB_SERVER_URL/$GITHUB_REPOSITORY/actions/runs/$RUN_ID" >> "$GITHUB_STEP_SUMMARY"
"""

COORDINATION_SCRIPT = """\
workflows="${WORKFLOWS:-$CHILD_WORKFLOWS}"
for workflow in $(echo "$workflows" | tr ',' ' '); do
  case "$ACTION" in
    status)
      echo "### $workflow" >> "$GITHUB_STEP_SUMMARY"
      gh run list --workflow "$workflow" --limit 5 --json databaseId,status,conclusion \\
        --jq '.[] | "- \\(.databaseId): \\(.status) \\(.conclusion // "")"' >> "$GITHUB_STEP_SUMMARY"
      ;;
    cancel-all)
      for status in queued in_progress; do
        for id in $(gh run list --workflow "$workflow" --status "$status" --json databaseId --jq '.[].databaseId'); do
          gh run cancel "$id"
        done
      done
      ;;
    retry-failed)
      id=$(gh run list --workflow "$workflow" --status failure --limit 1 --json databaseId --jq '.[0].databaseId // empty')
      if [ -n "$id" ]; then
        gh run rerun "$id" --failed
      fi
      ;;
    restart-all)
      gh workflow run "$workflow" --ref "$GITHUB_REF"
      ;;
  esac
done
"""

ERROR_ANALYSIS_SCRIPT = """\
if echo "$FAILED_WORKFLOW" | grep -Eq '^[0-9]+$'; then
  run_id="$FAILED_WORKFLOW"
else
  run_id=$(gh run list --workflow "$FAILED_WORKFLOW" --limit 1 --json databaseId --jq '.[0].databaseId // empty')
fi
if [ -z "$run_id" ]; then
  echo "::error::No run found for $FAILED_WORKFLOW"
  exit 1
fi
echo "run-id=$run_id" >> "$GITHUB_OUTPUT"
case "$ERROR_TYPE" in
  failure|timeout) echo "retryable=true" >> "$GITHUB_OUTPUT" ;;
  *) echo "retryable=false" >> "$GITHUB_OUTPUT" ;;
esac
echo "## Orchestration error ($ERROR_TYPE)" >> "$GITHUB_STEP_SUMMARY"
gh run view "$run_id" --json name,conclusion,jobs \\
  --jq '"Run \\(.name): \\(.conclusion)", (.jobs[] | select(.conclusion == "failure") | "- failed job: \\(.name)")' \\
  >> "$GITHUB_STEP_SUMMARY"
"""

RECOVERY_SCRIPT = """\
for attempt in $(seq 1 {{ max_attempts }}); do
  delay={{ delay }}
  echo "Retry $attempt/{{ max_attempts }} of run $RUN_ID in ${delay}s"
  sleep "$delay"
  gh run rerun "$RUN_ID" --failed
  sleep 10
  if gh run watch "$RUN_ID" --exit-status > /dev/null; then
    echo "Run $RUN_ID recovered on attempt $attempt" >> "$GITHUB_STEP_SUMMARY"
    exit 0
  fi
done
echo "::error::Run $RUN_ID still failing after {{ max_attempts }} attempts"
exit 1
"""

# Seconds to wait before retry number $attempt
BACKOFF_DELAYS = {
    "fixed": "{delay}",
    "linear": "$(( {delay} * attempt ))",
    "exponential": "$(( {delay} * (2 ** (attempt - 1)) ))",
}

NOTIFICATION_CHANNELS = ("slack", "issue")

TRIGGER_ALIASES = {
    "workflowDispatch": "workflow_dispatch",
    "pullRequest": "pull_request",
    "workflowRun": "workflow_run",
    "repositoryDispatch": "repository_dispatch",
}


class AdvancedPatternGenerator(BaseGenerator):
    """Generates workflows for one advanced deployment or repository pattern."""

    workflow_type = WorkflowType.ADVANCED
    filename = "advanced.yml"

    def __init__(self, **kwargs):
        super().__init__(name="AdvancedPatternGenerator", **kwargs)

    def generate(self, resolved: ResolvedDetection, options: GenerationOptions,
                 pattern_config: Union[PatternConfig, Mapping[str, Any], None] = None) -> List[WorkflowOutput]:
        """
        Generate the workflows for an advanced pattern.

        Args:
            resolved: Conflict-resolved detection data
            options: Generation options
            pattern_config: PatternConfig instance or raw mapping with a `type`

        Returns:
            One WorkflowOutput per generated file

        Raises:
            UnsupportedPatternError: Unknown pattern type
            CyclicDependencyError: Dependency cycle among packages, services or child workflows
            InvalidInputError: Missing or malformed pattern settings
        """
        pattern = parse_pattern_config(pattern_config)
        ctx = self.create_context(resolved, options)
        self.log_step(f"Generating {pattern.type.value} pattern workflows")

        handler = getattr(self, PATTERN_HANDLERS[pattern.type])
        built = handler(pattern, ctx)

        outputs = [
            self.render(workflow, ctx, filename=filename, workflow_type=WorkflowType.ADVANCED)
            for filename, workflow in built
        ]
        self.log_success(f"Generated {len(outputs)} {pattern.type.value} workflows")
        return outputs

    # Monorepo

    def monorepo_workflows(self, pattern: MonorepoPattern, ctx: GenerationContext) -> BuiltWorkflows:
        if not pattern.packages:
            raise InvalidInputError("Monorepo pattern needs at least one package",
                                    component="monorepo", stage="generate")

        packages = {pkg.name: pkg for pkg in pattern.packages}
        graph = self._package_graph(pattern, ctx)
        order = graph.topological_order(priority=pattern.build_order)
        threshold = pattern.matrix_threshold or self.settings.matrix_threshold

        paths = [f"{pkg.path}/**" for pkg in pattern.packages] + list(pattern.shared_paths)
        workflow = Workflow(
            name="Monorepo CI",
            description=f"Selective builds for {len(packages)} packages",
            triggers={
                "push": {"branches": self.branches("develop"), "paths": paths},
                "pull_request": {"branches": self.branches("develop"), "paths": paths},
                "workflow_dispatch": {},
            },
            permissions={"contents": "read", "pull-requests": "read"},
            concurrency={"group": "monorepo-${{ github.ref }}", "cancel-in-progress": True},
        )
        workflow.add_job(self._detect_changes_job(pattern, graph, ctx))

        if len(packages) > threshold:
            levels = graph.levels(priority=pattern.build_order)
            previous = None
            for index, level in enumerate(levels):
                job = self._level_job(index, [packages[name] for name in level], previous, ctx)
                workflow.add_job(job)
                previous = job.id
            ctx.optimize(f"{len(packages)} packages built as {len(levels)} matrix levels")
        else:
            for name in order:
                workflow.add_job(self._package_job(packages[name], graph, ctx))
            ctx.optimize("Only packages affected by a change (and their dependents) are rebuilt")

        built: BuiltWorkflows = [("monorepo-ci.yml", workflow)]
        for name in order:
            pkg = packages[name]
            if pkg.deployable:
                built.append((f"deploy-{slugify(pkg.name)}.yml",
                              self._package_deploy_workflow(pkg, graph, packages, ctx)))
        return built

    def _package_graph(self, pattern: MonorepoPattern, ctx: GenerationContext) -> DependencyGraph:
        graph = DependencyGraph(component="monorepo")
        names = [pkg.name for pkg in pattern.packages]
        for name in names:
            graph.add_node(name)

        declared = pattern.dependency_graph_enabled and any(pkg.dependencies for pkg in pattern.packages)
        if declared:
            for pkg in pattern.packages:
                for dep in pkg.dependencies:
                    if dep in graph:
                        graph.add_dependency(pkg.name, dep)
                    else:
                        ctx.warn(DegenerateInputWarning(
                            f"Package '{pkg.name}' depends on unknown package '{dep}' - dependency ignored",
                            package=pkg.name,
                            dependency=dep,
                        ))
        elif pattern.build_order:
            chain = [name for name in pattern.build_order if name in graph]
            for before, after in zip(chain, chain[1:]):
                graph.add_dependency(after, before)
        for name in pattern.build_order:
            if name not in graph:
                ctx.warn(DegenerateInputWarning(f"Build order names unknown package '{name}'", package=name))
        return graph

    def _detect_changes_job(self, pattern: MonorepoPattern, graph: DependencyGraph,
                            ctx: GenerationContext) -> Job:
        filters = [f"{slugify(pkg.name)}:\n  - '{pkg.path}/**'" for pkg in pattern.packages]
        if pattern.shared_paths:
            filters.append("shared:\n" + "\n".join(f"  - '{p}'" for p in pattern.shared_paths))

        env = {
            f"CHANGED_{env_var_name(pkg.name)}": f"${{{{ steps.filter.outputs.{slugify(pkg.name)} }}}}"
            for pkg in pattern.packages
        }
        if pattern.shared_paths:
            env["SHARED_CHANGED"] = "${{ steps.filter.outputs.shared }}"

        script = render_template(AFFECTED_PACKAGES_SCRIPT, {
            "packages": [
                {
                    "name": pkg.name,
                    "slug": slugify(pkg.name),
                    "filter_var": f"CHANGED_{env_var_name(pkg.name)}",
                    "affected": [pkg.name] + graph.dependents(pkg.name),
                }
                for pkg in pattern.packages
            ],
            "shared": bool(pattern.shared_paths),
            "all_packages": [pkg.name for pkg in pattern.packages],
        })

        outputs = {slugify(pkg.name): f"${{{{ steps.affected.outputs.{slugify(pkg.name)} }}}}"
                   for pkg in pattern.packages}
        outputs["changed-packages"] = "${{ steps.affected.outputs.changed-packages }}"

        job = self.job("detect-changes", "Detect changed packages", outputs=outputs,
                       comment="Changed packages plus everything that depends on them")
        job.add_step(self.steps.checkout(fetch_depth=0))
        job.add_step(Step(
            name="Filter changed paths",
            id="filter",
            uses=self.steps.ref("dorny/paths-filter", ctx.toolchain),
            with_={"filters": "\n".join(filters)},
        ))
        job.add_step(Step(name="Compute affected packages", id="affected", run=script, env=env))
        return job

    def _package_toolchain(self, pkg: MonorepoPackage, ctx: GenerationContext) -> Toolchain:
        return Toolchain.for_path(pkg.language, pkg.framework, pkg.path, ctx.toolchain)

    def _package_steps(self, pkg: MonorepoPackage, ctx: GenerationContext) -> List[Step]:
        tc = self._package_toolchain(pkg, ctx)
        if tc.is_generic:
            steps = [self.steps.checkout()]
        else:
            steps = self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled)
        build = pkg.build_command or self.steps.build_command(tc)
        if build:
            steps.append(Step(name=f"Build {pkg.name}", run=build, working_directory=pkg.path))
        test = pkg.test_command or self.steps.test_command(tc)
        if test:
            steps.append(Step(name=f"Test {pkg.name}", run=test, working_directory=pkg.path))
        if not build and not test:
            steps.append(Step(
                name=f"Build {pkg.name}",
                run="if [ -f Makefile ]; then make build test; else echo \"No build configured\"; fi",
                working_directory=pkg.path,
            ))
        return steps

    def _package_job(self, pkg: MonorepoPackage, graph: DependencyGraph, ctx: GenerationContext) -> Job:
        slug = slugify(pkg.name)
        needs = ["detect-changes"] + [f"build-{slugify(dep)}" for dep in graph.dependencies(pkg.name)]
        job = self.job(
            f"build-{slug}",
            f"Build {pkg.name}",
            needs=needs,
            if_=f"!failure() && !cancelled() && needs.detect-changes.outputs.{slug} == 'true'",
        )
        job.add_steps(self._package_steps(pkg, ctx))
        return job

    def _level_job(self, index: int, level: List[MonorepoPackage], previous: Optional[str],
                   ctx: GenerationContext) -> Job:
        include = []
        for pkg in level:
            tc = self._package_toolchain(pkg, ctx)
            include.append({
                "package": pkg.name,
                "path": pkg.path,
                "build": pkg.build_command or self.steps.build_command(tc) or "echo \"No build configured\"",
                "test": pkg.test_command or self.steps.test_command(tc) or "echo \"No tests configured\"",
            })

        needs = ["detect-changes"] + ([previous] if previous else [])
        job = self.job(
            f"build-level-{index}",
            f"Build level {index} (${{{{ matrix.package }}}})",
            needs=needs,
            if_="!failure() && !cancelled() && needs.detect-changes.outputs.changed-packages != '[]'",
            strategy={"fail-fast": False, "matrix": {"include": include}},
            comment=", ".join(pkg.name for pkg in level),
        )
        changed = "contains(fromJSON(needs.detect-changes.outputs.changed-packages), matrix.package)"
        root = Toolchain.for_path(None, None, "${{ matrix.path }}", ctx.toolchain)
        job.add_step(self.steps.checkout())
        if not root.is_generic:
            job.add_steps(self.steps.setup_steps(root))
            install = self.steps.install_step(root)
            if install:
                install.if_ = changed
                job.add_step(install)
        job.add_step(Step(name="Build package", if_=changed, run="${{ matrix.build }}",
                          working_directory="${{ matrix.path }}"))
        job.add_step(Step(name="Test package", if_=changed, run="${{ matrix.test }}",
                          working_directory="${{ matrix.path }}"))
        return job

    def _package_deploy_workflow(self, pkg: MonorepoPackage, graph: DependencyGraph,
                                 packages: Dict[str, MonorepoPackage], ctx: GenerationContext) -> Workflow:
        slug = slugify(pkg.name)
        tc = self._package_toolchain(pkg, ctx)
        paths = [f"{pkg.path}/**"] + [f"{packages[dep].path}/**" for dep in graph.dependencies(pkg.name)]

        workflow = Workflow(
            name=f"Deploy {pkg.name}",
            description=f"Deploys {pkg.path} when it or one of its dependencies changes",
            triggers={
                "push": {"branches": self.branches(), "paths": paths},
                "workflow_dispatch": {},
            },
            permissions={"contents": "read", "deployments": "write", "packages": "write"},
            concurrency={"group": f"deploy-{slug}", "cancel-in-progress": False},
        )
        job = self.job(f"deploy-{slug}", f"Deploy {pkg.name}", environment="production")
        job.add_steps(self._package_steps(pkg, ctx))
        job.add_steps(self.steps.deploy_steps(tc, ctx.resolved, "production", production=True))
        job.add_steps(self.steps.health_check_steps("production"))
        workflow.add_job(job)
        return workflow

    # Microservices

    def microservices_workflows(self, pattern: MicroservicesPattern, ctx: GenerationContext) -> BuiltWorkflows:
        if not pattern.services:
            raise InvalidInputError("Microservices pattern needs at least one service",
                                    component="microservices", stage="generate")

        services = {svc.name: svc for svc in pattern.services}
        graph = DependencyGraph(component="microservices")
        for svc in pattern.services:
            graph.add_node(svc.name)
        for svc in pattern.services:
            for dep in svc.dependencies:
                if dep in services:
                    graph.add_dependency(svc.name, dep)
                else:
                    ctx.warn(DegenerateInputWarning(
                        f"Service '{svc.name}' depends on unknown service '{dep}' - treated as external",
                        service=svc.name,
                        dependency=dep,
                    ))
        order = graph.topological_order()

        env: Dict[str, str] = {"REGISTRY": "ghcr.io"}
        if pattern.service_mesh:
            env["SERVICE_MESH"] = pattern.service_mesh.provider
            env["MESH_MTLS"] = str(pattern.service_mesh.mtls).lower()
        if pattern.tracing:
            env["OTEL_EXPORTER_OTLP_ENDPOINT"] = pattern.tracing.endpoint
            env["OTEL_TRACES_SAMPLER"] = "parentbased_traceidratio"
            env["OTEL_TRACES_SAMPLER_ARG"] = str(pattern.tracing.sample_rate)

        workflow = Workflow(
            name="Microservices Deployment",
            description="Deployment order: " + " -> ".join(order),
            triggers={
                "push": {"branches": self.branches(), "paths": [f"{svc.path}/**" for svc in pattern.services]},
                "workflow_dispatch": {"inputs": {
                    "services": dispatch_input("Comma-separated services to deploy", default="all"),
                }},
            },
            permissions={"contents": "read", "packages": "write", "deployments": "write"},
            concurrency={"group": "microservices-deploy", "cancel-in-progress": False},
            env=env,
        )

        resolve = self.job("resolve-dependencies", "Resolve deployment order",
                           outputs={"deployment-order": "${{ steps.order.outputs.deployment-order }}"})
        resolve.add_step(Step(
            name="Publish deployment order",
            id="order",
            run=f"echo 'deployment-order={json.dumps(order)}' >> \"$GITHUB_OUTPUT\"",
        ))
        workflow.add_job(resolve)

        for name in order:
            workflow.add_job(self._service_job(services[name], graph, pattern, ctx))

        deploy_jobs = [f"deploy-{slugify(name)}" for name in order]
        coordinate = self.job("coordinate-deployment", "Coordinate deployment", needs=deploy_jobs,
                              if_="always()")
        coordinate.add_step(Step(
            name="Summarize service deployments",
            run="\n".join(
                f"echo \"{job_id}: ${{{{ needs.{job_id}.result }}}}\" >> \"$GITHUB_STEP_SUMMARY\""
                for job_id in deploy_jobs
            ),
        ))
        if pattern.rollback_on_failure:
            undo = "\n".join(f"kubectl rollout undo deployment/{slugify(name)} || true" for name in reversed(order))
            coordinate.add_step(Step(
                name="Roll back all services",
                if_="contains(needs.*.result, 'failure')",
                run=f"{undo}\nexit 1",
            ))
            ctx.optimize("Services rolled back in reverse dependency order when any deployment fails")
        workflow.add_job(coordinate)

        health = Workflow(
            name="Service Health Check",
            description="Scheduled health checks for every service",
            triggers={"schedule": [{"cron": "*/5 * * * *"}], "workflow_dispatch": {}},
            permissions={"contents": "read"},
        )
        check = self.job(
            "health-check",
            "Check ${{ matrix.service }}",
            strategy={"fail-fast": False, "matrix": {"include": [
                {"service": svc.name, "path": svc.health_check_path} for svc in pattern.services
            ]}},
            timeout_minutes=5,
        )
        check.add_step(Step(
            name="Request health endpoint",
            run="curl -fsS --retry 3 --retry-delay 5 \"$BASE_URL/${{ matrix.service }}${{ matrix.path }}\"",
            env={"BASE_URL": "${{ vars.SERVICES_BASE_URL }}"},
        ))
        health.add_job(check)

        return [("microservices-deployment.yml", workflow), ("microservices-health.yml", health)]

    def _service_job(self, svc, graph: DependencyGraph, pattern: MicroservicesPattern,
                     ctx: GenerationContext) -> Job:
        slug = slugify(svc.name)
        tc = Toolchain.for_path(svc.language, None, svc.path, ctx.toolchain)
        selected = (f"!inputs.services || inputs.services == 'all' || "
                    f"contains(inputs.services, '{svc.name}')")
        job = self.job(
            f"deploy-{slug}",
            f"Deploy {svc.name}",
            needs=["resolve-dependencies"] + [f"deploy-{slugify(dep)}" for dep in graph.dependencies(svc.name)],
            if_=f"!failure() && !cancelled() && ({selected})",
            environment="production",
            outputs={"healthy": "${{ steps.health.outputs.healthy }}"},
        )
        job.add_step(self.steps.checkout())
        if not tc.is_generic:
            job.add_steps(self.steps.setup_steps(tc))
            job.add_step(self.steps.install_step(tc))
            job.add_step(self.steps.test_step(tc))
        job.add_steps(self.steps.container_steps(tc, slug))

        if pattern.service_mesh:
            annotation = ("linkerd.io/inject=enabled" if pattern.service_mesh.provider == "linkerd"
                          else "sidecar.istio.io/inject=true")
            job.add_step(Step(
                name=f"Enable {pattern.service_mesh.provider} sidecar",
                run=f"kubectl annotate deployment/{slug} {annotation} --overwrite",
            ))

        image = f"ghcr.io/${{{{ github.repository }}}}:{slug}-${{{{ github.sha }}}}"
        rollout = [
            f"kubectl set image deployment/{slug} {slug}={image}",
            f"kubectl scale deployment/{slug} --replicas={svc.replicas}",
            f"kubectl rollout status deployment/{slug} --timeout=600s",
        ]
        if pattern.tracing:
            rollout.insert(1, f"kubectl set env deployment/{slug} OTEL_SERVICE_NAME={svc.name} "
                              "OTEL_EXPORTER_OTLP_ENDPOINT=\"$OTEL_EXPORTER_OTLP_ENDPOINT\"")
        job.add_step(Step(name=f"Roll out {svc.name}", run="\n".join(rollout)))
        job.add_steps(self.steps.health_check_steps(
            svc.name,
            url_expression=f"${{{{ vars.{env_var_name(svc.name)}_URL }}}}",
            path=svc.health_check_path,
        ))
        return job

    # Canary

    def canary_workflows(self, pattern: CanaryPattern, ctx: GenerationContext) -> BuiltWorkflows:
        if not pattern.stages:
            raise InvalidInputError("Canary pattern needs at least one stage", component="canary", stage="generate")

        percentages = [stage.percentage for stage in pattern.stages]
        for previous, current in zip(percentages, percentages[1:]):
            if current < previous:
                ctx.warn(StageOrderWarning(
                    f"Canary stage percentages decrease: {percentages}",
                    percentages=percentages,
                ))
                break

        tc = ctx.toolchain
        service = pattern.service_name or slugify(ctx.resolved.project_name)
        workflow = Workflow(
            name="Canary Deployment",
            description=" -> ".join(f"{p}%" for p in percentages),
            triggers={"push": {"branches": self.branches()}, "workflow_dispatch": {}},
            permissions={"contents": "read", "deployments": "write", "packages": "write"},
            concurrency={"group": "canary-deployment", "cancel-in-progress": False},
            env={"SERVICE_NAME": service, "METRICS_PROVIDER": pattern.metrics_provider},
        )

        deploy = self.job("deploy-canary", "Deploy canary release", environment="production")
        if ctx.resolved.has_target(*CONTAINER_TARGETS):
            deploy.add_step(self.steps.checkout())
            deploy.add_steps(self.steps.container_steps(tc, "canary"))
        elif tc.is_generic:
            deploy.add_step(self.steps.checkout())
        else:
            deploy.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            deploy.add_step(self.steps.build_step(tc))
        deploy.add_step(self._traffic_step("Deploy canary at 0% traffic", 0, ctx))
        workflow.add_job(deploy)

        previous = deploy.id
        stage_jobs = []
        for index, stage in enumerate(pattern.stages, start=1):
            job = self._canary_stage_job(index, stage, previous, ctx)
            workflow.add_job(job)
            stage_jobs.append(job.id)
            previous = job.id

        promote = self.job("promote-canary", "Promote canary", needs=[previous], environment="production")
        promote.add_step(self.steps.checkout())
        promote.add_step(self._traffic_step("Shift 100% traffic to canary", 100, ctx))
        promote.add_step(Step(
            name="Promote canary to stable",
            run=self._kube_or_script(ctx, f"kubectl argo rollouts promote {service}", "promote"),
        ))
        workflow.add_job(promote)

        rollback = self.job(
            "rollback-canary",
            "Roll back canary",
            needs=[deploy.id] + stage_jobs + [promote.id],
            if_="failure()",
            environment="production",
        )
        rollback.add_step(self.steps.checkout())
        rollback.add_step(self._traffic_step("Route all traffic to stable", 0, ctx))
        rollback.add_step(Step(
            name="Abort canary",
            run=self._kube_or_script(ctx, f"kubectl argo rollouts abort {service}", "abort"),
        ))
        workflow.add_job(rollback)

        ctx.optimize(f"Traffic shifted in {len(pattern.stages)} observed stages with automatic rollback")
        return [("canary-deployment.yml", workflow)]

    def _canary_stage_job(self, index: int, stage: CanaryStage, previous: str, ctx: GenerationContext) -> Job:
        label = stage.name or f"{stage.percentage}% traffic"
        success = "; ".join(t.predicate for t in stage.success_criteria)
        rollback = "; ".join(t.predicate for t in stage.rollback_criteria)
        job = self.job(
            f"canary-stage-{index}",
            f"Canary stage {index}: {label}",
            needs=[previous],
            environment="production",
            env={"TRAFFIC_PERCENTAGE": str(stage.percentage)},
            timeout_minutes=max(self.settings.job_timeout_minutes, minutes_ceil(stage.duration_seconds) + 15),
            comment=f"Observe for {format_duration(stage.duration_seconds)}",
        )
        job.add_step(self.steps.checkout())
        job.add_step(self._traffic_step(f"Shift {stage.percentage}% traffic to canary", stage.percentage, ctx))
        job.add_step(Step(name=f"Observe for {format_duration(stage.duration_seconds)}",
                          run=f"sleep {stage.duration_seconds}"))
        job.add_step(Step(
            name="Evaluate canary metrics",
            id="evaluate",
            run=(
                "echo \"Success criteria: ${SUCCESS_CRITERIA:-none}\"\n"
                "echo \"Rollback criteria: ${ROLLBACK_CRITERIA:-none}\"\n"
                "if [ -x ./scripts/evaluate-canary.sh ] && ! ./scripts/evaluate-canary.sh "
                "\"$METRICS_PROVIDER\" \"$SUCCESS_CRITERIA\" \"$ROLLBACK_CRITERIA\"; then\n"
                "  echo \"rollback=true\" >> \"$GITHUB_OUTPUT\"\n"
                "else\n"
                "  echo \"rollback=false\" >> \"$GITHUB_OUTPUT\"\n"
                "fi"
            ),
            env={"SUCCESS_CRITERIA": success, "ROLLBACK_CRITERIA": rollback},
        ))
        if stage.rollback_criteria:
            job.add_step(Step(
                name=f"Roll back when {rollback}",
                if_="steps.evaluate.outputs.rollback == 'true'",
                run=(
                    "echo \"::error::Canary breached rollback criteria: $ROLLBACK_CRITERIA\"\n"
                    "exit 1"
                ),
                env={"ROLLBACK_CRITERIA": rollback},
            ))
        return job

    def _traffic_step(self, name: str, percentage: int, ctx: GenerationContext) -> Step:
        if ctx.resolved.has_target(*KUBERNETES_TARGETS):
            run = f"kubectl argo rollouts set weight \"$SERVICE_NAME\" {percentage}"
        else:
            run = (
                "if [ -x ./scripts/set-traffic.sh ]; then\n"
                f"  ./scripts/set-traffic.sh \"$SERVICE_NAME\" {percentage}\n"
                "else\n"
                f"  echo \"Routing {percentage}% of traffic to the new release\"\n"
                "fi"
            )
        return Step(name=name, run=run)

    @staticmethod
    def _kube_or_script(ctx: GenerationContext, kubectl: str, action: str) -> str:
        if ctx.resolved.has_target(*KUBERNETES_TARGETS):
            return kubectl
        return (
            f"if [ -x ./scripts/{action}.sh ]; then\n"
            f"  ./scripts/{action}.sh \"$SERVICE_NAME\"\n"
            "else\n"
            f"  echo \"{action.capitalize()} $SERVICE_NAME\"\n"
            "fi"
        )

    # Blue-green

    def blue_green_workflows(self, pattern: BlueGreenPattern, ctx: GenerationContext) -> BuiltWorkflows:
        service = pattern.service_name or slugify(ctx.resolved.project_name)
        previous_color = "blue" if pattern.target_color == "green" else "green"
        workflow = Workflow(
            name="Blue-Green Deployment",
            description=f"Deploys both colors, then switches traffic to {pattern.target_color}",
            triggers={
                "push": {"branches": self.branches()},
                "workflow_dispatch": {"inputs": {
                    "target-color": dispatch_input("Color to receive traffic", default=pattern.target_color,
                                                   options=["blue", "green"]),
                }},
            },
            permissions={"contents": "read", "deployments": "write", "packages": "write"},
            concurrency={"group": "blue-green-deployment", "cancel-in-progress": False},
            env={
                "SERVICE_NAME": service,
                "TARGET_COLOR": f"${{{{ inputs.target-color || '{pattern.target_color}' }}}}",
            },
        )

        for color in ("blue", "green"):
            job = self.job(
                f"deploy-{color}",
                f"Deploy {color} slot",
                environment=f"production-{color}",
                outputs={"healthy": "${{ steps.health.outputs.healthy }}"},
            )
            job.add_step(self.steps.checkout())
            job.add_step(Step(
                name=f"Deploy release to {color}",
                run=self._kube_or_script(
                    ctx,
                    f"kubectl set image deployment/{service}-{color} {service}="
                    f"ghcr.io/${{{{ github.repository }}}}:${{{{ github.sha }}}}\n"
                    f"kubectl rollout status deployment/{service}-{color} --timeout=600s",
                    f"deploy-{color}",
                ),
            ))
            health = self.steps.health_check_steps(
                color,
                url_expression=f"${{{{ vars.{color.upper()}_URL }}}}",
                path=pattern.health_check_path,
                retries=pattern.health_check_retries,
            )
            for step in health:
                step.continue_on_error = True
            job.add_steps(health)
            workflow.add_job(job)

        healthy = "needs.deploy-blue.outputs.healthy == 'true' && needs.deploy-green.outputs.healthy == 'true'"
        switch = self.job("switch-traffic", "Switch traffic", needs=["deploy-blue", "deploy-green"],
                          if_=healthy, environment="production")
        switch.add_step(self.steps.checkout())
        switch.add_step(Step(
            name="Switch traffic to target color",
            run=self._kube_or_script(
                ctx,
                "kubectl patch service \"$SERVICE_NAME\" "
                "-p \"{\\\"spec\\\":{\\\"selector\\\":{\\\"color\\\":\\\"$TARGET_COLOR\\\"}}}\"",
                "switch-traffic",
            ),
        ))
        switch.add_steps(self.steps.health_check_steps("production", path=pattern.health_check_path,
                                                       retries=pattern.health_check_retries))
        workflow.add_job(switch)

        rollback = self.job(
            "rollback",
            "Switch back",
            needs=["deploy-blue", "deploy-green", "switch-traffic"],
            if_=f"always() && (needs.switch-traffic.result == 'failure' || !({healthy}))",
            environment="production",
            env={"PREVIOUS_COLOR": f"${{{{ inputs.target-color == 'blue' && 'green' || "
                                   f"inputs.target-color == 'green' && 'blue' || '{previous_color}' }}}}"},
        )
        rollback.add_step(self.steps.checkout())
        rollback.add_step(Step(
            name="Route traffic back immediately",
            run=self._kube_or_script(
                ctx,
                "kubectl patch service \"$SERVICE_NAME\" "
                "-p \"{\\\"spec\\\":{\\\"selector\\\":{\\\"color\\\":\\\"$PREVIOUS_COLOR\\\"}}}\"",
                "rollback",
            ),
        ))
        workflow.add_job(rollback)

        ctx.optimize("Traffic only switches after both slots pass health checks")
        return [("blue-green-deployment.yml", workflow)]

    # Feature flags

    def feature_flag_workflows(self, pattern: FeatureFlagPattern, ctx: GenerationContext) -> BuiltWorkflows:
        if not pattern.flags:
            raise InvalidInputError("Feature flag pattern needs at least one flag",
                                    component="feature-flags", stage="generate")

        tc = ctx.toolchain
        flags = [flag.key for flag in pattern.flags]
        triggers = "; ".join(t.predicate for t in pattern.rollback_triggers)
        provider_secret = f"${{{{ secrets.{env_var_name(pattern.provider)}_API_KEY }}}}"
        env = {"FLAG_PROVIDER": pattern.provider, "FLAG_API_KEY": provider_secret, "ROLLBACK_TRIGGERS": triggers}

        workflow = Workflow(
            name="Feature Flag Rollout",
            description=f"Progressive rollout of {', '.join(flags)}",
            triggers={"push": {"branches": self.branches()}, "workflow_dispatch": {}},
            permissions={"contents": "read", "deployments": "write"},
            concurrency={"group": "feature-flag-rollout", "cancel-in-progress": False},
            env=env,
        )

        validate = self.job("validate-flags", "Validate flag definitions")
        validate.add_step(self.steps.checkout())
        validate.add_step(Step(
            name="Validate flags exist",
            run="\n".join(
                [f"echo \"{flag.key}: default {'on' if flag.default_enabled else 'off'}\"" for flag in pattern.flags]
                + ["if [ -x ./scripts/validate-flags.sh ]; then",
                   f"  ./scripts/validate-flags.sh \"$FLAG_PROVIDER\" {' '.join(flags)}",
                   "fi"]
            ),
        ))
        workflow.add_job(validate)

        deploy = self.job("deploy", "Deploy with flags off", needs=[validate.id], environment="production")
        if tc.is_generic:
            deploy.add_step(self.steps.checkout())
        else:
            deploy.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            deploy.add_step(self.steps.build_step(tc))
        deploy.add_steps(self.steps.deploy_steps(tc, ctx.resolved, "production", production=True))
        workflow.add_job(deploy)

        previous = deploy.id
        for segment in pattern.segments:
            job = self.job(
                f"rollout-{slugify(segment.name)}",
                f"Roll out to {segment.name}",
                needs=[previous],
                environment="production",
                comment=" -> ".join(f"{p}%" for p in segment.rollout_percentages),
            )
            job.add_step(self.steps.checkout())
            for percentage in segment.rollout_percentages:
                job.add_step(Step(
                    name=f"Roll out to {percentage}% of {segment.name}",
                    run=render_template(FLAG_ROLLOUT_SCRIPT, {
                        "flags": flags, "segment": segment.name, "percentage": percentage,
                    }),
                ))
                job.add_step(Step(
                    name=f"Check rollback triggers at {percentage}%",
                    run=render_template(CHECK_TRIGGERS_SCRIPT, {
                        "observe_seconds": 300 if percentage < 100 else 60,
                        "triggers": bool(pattern.rollback_triggers),
                    }),
                ))
            workflow.add_job(job)
            previous = job.id

        if not pattern.rollback_triggers:
            ctx.warn(DegenerateInputWarning("No rollback triggers configured for feature flag rollout"))

        rollback = Workflow(
            name="Feature Flag Rollback",
            description="Turns flags off for every segment",
            triggers={"workflow_dispatch": {"inputs": {
                "flag": dispatch_input("Flag to disable", default="all", options=["all"] + flags),
                "reason": dispatch_input("Reason for the rollback", required=True),
            }}},
            permissions={"contents": "read"},
            env={"FLAG_PROVIDER": pattern.provider, "FLAG_API_KEY": provider_secret},
        )
        disable = self.job("disable-flags", "Disable flags", environment="production")
        disable.add_step(self.steps.checkout())
        for flag in flags:
            disable.add_step(Step(
                name=f"Disable {flag}",
                if_=f"inputs.flag == 'all' || inputs.flag == '{flag}'",
                run=render_template(FLAG_ROLLOUT_SCRIPT, {
                    "flags": [flag], "segment": "all-users", "percentage": 0,
                }),
            ))
        disable.add_step(Step(
            name="Record rollback reason",
            run="echo \"Flags disabled: $REASON\" >> \"$GITHUB_STEP_SUMMARY\"",
            env={"REASON": "${{ inputs.reason }}"},
        ))
        rollback.add_job(disable)

        return [("feature-flags.yml", workflow), ("feature-flag-rollback.yml", rollback)]

    # Orchestration

    def orchestration_workflows(self, pattern: OrchestrationPattern, ctx: GenerationContext) -> BuiltWorkflows:
        if not pattern.children:
            raise InvalidInputError("Orchestration pattern needs at least one child workflow",
                                    component="orchestration", stage="generate")

        children: Dict[str, ChildWorkflow] = {}
        for child in pattern.children:
            if child.name in children:
                raise InvalidInputError(f"Duplicate child workflow '{child.name}'",
                                        component="orchestration", stage="generate")
            children[child.name] = child
        graph = self._child_graph(pattern, ctx)

        workflow = Workflow(
            name=pattern.name,
            description=f"Coordinates {len(children)} child workflows ({pattern.strategy})",
            triggers=self._orchestration_triggers(pattern.triggers),
            permissions={"contents": "read", "actions": "write"},
            concurrency={"group": "orchestration-${{ github.ref }}", "cancel-in-progress": True},
        )

        if pattern.strategy == "parallel":
            levels = graph.levels()
            workflow.add_job(self._plan_job(pattern, levels))
            run_jobs = self._parallel_child_jobs(pattern, children, levels)
            ctx.optimize(f"Up to {pattern.max_concurrency} child workflows run at once")
        else:
            order = graph.topological_order()
            workflow.add_job(self._plan_job(pattern, order))
            run_jobs = [self._child_job(children[name], graph, pattern) for name in order]
            ctx.optimize("Child workflows run in dependency order")
        for job in run_jobs:
            workflow.add_job(job)
        workflow.add_job(self._orchestration_summary_job(pattern, [job.id for job in run_jobs]))

        return [
            ("orchestration.yml", workflow),
            ("orchestration-coordination.yml", self._coordination_workflow(pattern)),
            ("orchestration-error-handling.yml", self._error_handling_workflow(pattern, ctx)),
        ]

    def _child_graph(self, pattern: OrchestrationPattern, ctx: GenerationContext) -> DependencyGraph:
        graph = DependencyGraph(component="orchestration")
        for child in pattern.children:
            graph.add_node(child.name)

        declared = any(child.dependencies for child in pattern.children)
        for child in pattern.children:
            for dep in child.dependencies:
                if dep in graph:
                    graph.add_dependency(child.name, dep)
                else:
                    ctx.warn(DegenerateInputWarning(
                        f"Child workflow '{child.name}' depends on unknown workflow '{dep}' - dependency ignored",
                        workflow=child.name,
                        dependency=dep,
                    ))
        if pattern.strategy == "sequential" and not declared:
            names = [child.name for child in pattern.children]
            for before, after in zip(names, names[1:]):
                graph.add_dependency(after, before)
        if pattern.strategy == "parallel":
            for child in pattern.children:
                if child.condition:
                    ctx.warn(DegenerateInputWarning(
                        f"Condition on '{child.name}' is ignored by the parallel strategy",
                        workflow=child.name,
                    ))
        return graph

    @staticmethod
    def _orchestration_triggers(triggers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        normalized: Dict[str, Any] = {}
        for event, config in (triggers or {}).items():
            event = TRIGGER_ALIASES.get(event, event)
            if event == "schedule" and isinstance(config, str):
                config = [{"cron": config}]
            normalized[event] = {} if config is None or config is True else config
        # Coordination restarts the parent through dispatch
        normalized.setdefault("workflow_dispatch", {})
        return normalized

    def _plan_job(self, pattern: OrchestrationPattern, plan: List[Any]) -> Job:
        workflows = list(dict.fromkeys(child.workflow for child in pattern.children))
        job = self.job("plan-orchestration", "Plan orchestration",
                       outputs={"execution-plan": "${{ steps.plan.outputs.execution-plan }}"})
        job.add_step(self.steps.checkout())
        job.add_step(Step(name="Verify child workflows",
                          run=render_template(VERIFY_CHILDREN_SCRIPT, {"workflows": workflows})))
        job.add_step(Step(
            name="Publish execution plan",
            id="plan",
            run=f"echo 'execution-plan={json.dumps(plan)}' >> \"$GITHUB_OUTPUT\"",
        ))
        return job

    @staticmethod
    def _child_guard(pattern: OrchestrationPattern, condition: Optional[str]) -> Optional[str]:
        if pattern.error_strategy == "continue-on-error":
            guard = "!cancelled()"
        elif pattern.strategy == "conditional" or condition:
            guard = "!failure() && !cancelled()"
        else:
            guard = None
        if condition:
            return f"{guard} && ({condition})"
        return guard

    def _child_steps(self, pattern: OrchestrationPattern, name: str, workflow: str, args: str) -> List[Step]:
        policy = pattern.retry_policy
        return [
            Step(
                name=f"Trigger {name}",
                id="dispatch",
                run=render_template(DISPATCH_CHILD_SCRIPT, {"name": name, "workflow": workflow, "args": args}),
                env=dict(GH_CLI_ENV),
            ),
            Step(
                name=f"Wait for {name}",
                run=render_template(WATCH_CHILD_SCRIPT, {
                    "name": name,
                    "retry": policy.enabled,
                    "max_attempts": policy.max_attempts,
                    "delay": self._backoff_delay(policy),
                }),
                env={**GH_CLI_ENV, "RUN_ID": "${{ steps.dispatch.outputs.run-id }}"},
            ),
            Step(
                name="Dispatch error handling",
                if_="failure() && steps.dispatch.outputs.run-id != ''",
                run=("gh workflow run orchestration-error-handling.yml "
                     "-f failed-workflow=\"$RUN_ID\" -f error-type=failure"),
                env={**GH_CLI_ENV, "RUN_ID": "${{ steps.dispatch.outputs.run-id }}"},
            ),
        ]

    def _child_job(self, child: ChildWorkflow, graph: DependencyGraph, pattern: OrchestrationPattern) -> Job:
        needs = ["plan-orchestration"] + [f"run-{slugify(dep)}" for dep in graph.dependencies(child.name)]
        job = self.job(
            f"run-{slugify(child.name)}",
            f"Run {child.name}",
            needs=needs,
            if_=self._child_guard(pattern, child.condition),
            timeout_minutes=child.timeout_minutes or pattern.timeout_minutes,
            continue_on_error=True if pattern.error_strategy == "continue-on-error" else None,
            outputs={"run-id": "${{ steps.dispatch.outputs.run-id }}"},
            comment=child.workflow,
        )
        job.add_steps(self._child_steps(pattern, child.name, child.workflow, _dispatch_args(child)))
        return job

    def _parallel_child_jobs(self, pattern: OrchestrationPattern, children: Dict[str, ChildWorkflow],
                             levels: List[List[str]]) -> List[Job]:
        jobs: List[Job] = []
        previous = "plan-orchestration"
        for index, level in enumerate(levels):
            members = [children[name] for name in level]
            job = self.job(
                f"run-level-{index}",
                "Run ${{ matrix.child }}",
                needs=[previous],
                if_=self._child_guard(pattern, None) if index else None,
                timeout_minutes=max(c.timeout_minutes or pattern.timeout_minutes for c in members),
                continue_on_error=True if pattern.error_strategy == "continue-on-error" else None,
                strategy={
                    "fail-fast": pattern.coordination == "fail-fast",
                    "max-parallel": pattern.max_concurrency,
                    "matrix": {"include": [
                        {"child": c.name, "workflow": c.workflow, "inputs": _dispatch_args(c)} for c in members
                    ]},
                },
                comment=", ".join(level),
            )
            job.add_steps(self._child_steps(pattern, "${{ matrix.child }}", "${{ matrix.workflow }}",
                                            "${{ matrix.inputs }}"))
            jobs.append(job)
            previous = job.id
        return jobs

    def _orchestration_summary_job(self, pattern: OrchestrationPattern, run_jobs: List[str]) -> Job:
        summary = self.job("orchestration-summary", "Summarize orchestration", needs=run_jobs, if_="always()")
        summary.add_step(Step(
            name="Summarize child workflows",
            run="\n".join(
                f"echo \"{job_id}: ${{{{ needs.{job_id}.result }}}}\" >> \"$GITHUB_STEP_SUMMARY\""
                for job_id in run_jobs
            ),
        ))
        if pattern.coordination == "wait-any":
            failed = "!contains(needs.*.result, 'success')"
        else:
            failed = "contains(needs.*.result, 'failure') || contains(needs.*.result, 'cancelled')"
        summary.add_step(Step(
            name=f"Apply {pattern.coordination} coordination",
            if_=failed,
            run=f"echo \"::error::Orchestration failed under {pattern.coordination}\"\nexit 1",
        ))
        return summary

    def _coordination_workflow(self, pattern: OrchestrationPattern) -> Workflow:
        workflows = list(dict.fromkeys(child.workflow for child in pattern.children))
        workflow = Workflow(
            name="Child Workflow Coordination",
            description="Status, cancel, retry and restart for every child workflow",
            triggers={"workflow_dispatch": {"inputs": {
                "action": dispatch_input("Coordination action", required=True,
                                         options=["status", "cancel-all", "retry-failed", "restart-all"]),
                "workflows": dispatch_input("Comma-separated child workflow files (defaults to all)", default=""),
            }}},
            permissions={"contents": "read", "actions": "write"},
        )
        job = self.job("coordinate-workflows", "Coordinate child workflows")
        job.add_step(Step(
            name="Execute coordination action",
            run=COORDINATION_SCRIPT,
            env={
                **GH_CLI_ENV,
                "ACTION": "${{ inputs.action }}",
                "WORKFLOWS": "${{ inputs.workflows }}",
                "CHILD_WORKFLOWS": " ".join(workflows),
            },
        ))
        workflow.add_job(job)
        return workflow

    def _error_handling_workflow(self, pattern: OrchestrationPattern, ctx: GenerationContext) -> Workflow:
        inputs = {
            "failed-workflow": dispatch_input("Run id or workflow file of the failed child", required=True),
            "error-type": dispatch_input("Type of error", default="failure",
                                         options=["failure", "timeout", "cancelled", "unknown"]),
        }
        if pattern.rollback_enabled:
            inputs["environment"] = dispatch_input("Environment to roll back", default="production")
        permissions = {"contents": "read", "actions": "write"}
        if "issue" in pattern.notifications:
            permissions["issues"] = "write"

        workflow = Workflow(
            name="Orchestration Error Handling",
            description=f"Error strategy: {pattern.error_strategy}",
            triggers={"workflow_dispatch": {"inputs": inputs}},
            permissions=permissions,
            env={"FAILED_WORKFLOW": "${{ inputs.failed-workflow }}", "ERROR_TYPE": "${{ inputs.error-type }}"},
        )
        job = self.job("handle-error", "Handle orchestration error")
        job.add_step(self.steps.checkout())
        job.add_step(Step(name="Analyze error", id="analyze", run=ERROR_ANALYSIS_SCRIPT, env=dict(GH_CLI_ENV)))

        if pattern.error_strategy == "retry":
            policy = pattern.retry_policy
            job.add_step(Step(
                name="Retry failed run",
                id="recover",
                if_="steps.analyze.outputs.retryable == 'true'",
                run=render_template(RECOVERY_SCRIPT, {
                    "max_attempts": policy.max_attempts,
                    "delay": self._backoff_delay(policy),
                }),
                env={**GH_CLI_ENV, "RUN_ID": "${{ steps.analyze.outputs.run-id }}"},
                continue_on_error=True,
            ))
            ctx.optimize(f"Failed child runs retried up to {policy.max_attempts} times with "
                         f"{policy.backoff} backoff")

        if pattern.rollback_enabled:
            job.add_step(Step(
                name="Trigger rollback",
                if_="steps.recover.outcome != 'success'",
                run=("if [ -f .github/workflows/rollback.yml ]; then\n"
                     "  gh workflow run rollback.yml -f environment=\"$ENVIRONMENT\" "
                     "-f reason=\"Orchestration failure in $FAILED_WORKFLOW\"\n"
                     "else\n"
                     "  echo \"::warning::No rollback.yml workflow to dispatch\"\n"
                     "fi"),
                env={**GH_CLI_ENV, "ENVIRONMENT": "${{ inputs.environment }}"},
            ))

        for channel in pattern.notifications:
            if channel == "slack":
                job.env["SLACK_WEBHOOK_URL"] = "${{ secrets.SLACK_WEBHOOK_URL }}"
                job.add_step(Step(
                    name="Notify Slack",
                    if_="always() && env.SLACK_WEBHOOK_URL != ''",
                    uses=self.steps.ref("slackapi/slack-github-action", ctx.toolchain),
                    with_={"payload": ('{"text": "Orchestration failure in ${{ inputs.failed-workflow }} '
                                       '(${{ inputs.error-type }})"}')},
                    env={"SLACK_WEBHOOK_TYPE": "INCOMING_WEBHOOK"},
                ))
            elif channel == "issue":
                job.add_step(Step(
                    name="Open failure issue",
                    if_="always()",
                    run=("gh issue create --title \"Orchestration failure: $FAILED_WORKFLOW\" "
                         "--body \"Error type: $ERROR_TYPE. Handler run: "
                         "$GITHUB_SERVER_URL/$GITHUB_REPOSITORY/actions/runs/$GITHUB_RUN_ID\""),
                    env=dict(GH_CLI_ENV),
                ))
            else:
                ctx.warn(DegenerateInputWarning(
                    f"Unsupported notification channel '{channel}' - expected one of "
                    f"{', '.join(NOTIFICATION_CHANNELS)}",
                    channel=channel,
                ))
        workflow.add_job(job)
        return workflow

    @staticmethod
    def _backoff_delay(policy: RetryPolicy) -> str:
        return BACKOFF_DELAYS[policy.backoff].format(delay=policy.initial_delay_seconds)


def _dispatch_args(child: ChildWorkflow) -> str:
    """`gh workflow run` input flags for a child workflow."""
    return " ".join(f"-f {shlex.quote(f'{key}={value}')}" for key, value in child.inputs)
