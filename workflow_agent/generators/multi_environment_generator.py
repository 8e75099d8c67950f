"""
Multi-Environment Generator - per-environment deploy workflows, approval
gates, promotion pipelines and emergency rollback.
"""

import json
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.conflict_resolver import ResolvedDetection
from ..core.errors import InvalidInputError, LowConfidenceWarning
from ..models.environment import (
    AnalysisTemplate,
    ApprovalGate,
    BlueGreenConfig,
    CanaryConfig,
    CanaryStep,
    DeploymentStrategy,
    DeploymentStrategyConfig,
    EnvironmentConfig,
    EnvironmentType,
    MultiEnvironmentResult,
    PromotionCondition,
    PromotionPipeline,
    RollbackConfig,
    RollingConfig,
)
from ..models.options import GenerationOptions, WorkflowType
from ..models.workflow import Step, Workflow, dispatch_input
from ..utils.helpers import env_var_name, format_duration, slugify
from .base_generator import BaseGenerator, GenerationContext
from .step_library import CONTAINER_TARGETS, GH_CLI_ENV, KUBERNETES_TARGETS, STATIC_FRAMEWORKS

APPROVERS: Dict[EnvironmentType, Tuple[str, ...]] = {
    EnvironmentType.PRODUCTION: ("@team-leads", "@devops-team", "@security-team"),
    EnvironmentType.STAGING: ("@team-leads", "@qa-team"),
    EnvironmentType.DEVELOPMENT: ("@developers",),
}

REQUIRED_APPROVALS: Dict[EnvironmentType, int] = {
    EnvironmentType.PRODUCTION: 2,
    EnvironmentType.STAGING: 1,
    EnvironmentType.DEVELOPMENT: 1,
}

APPROVAL_TIMEOUT_MINUTES = 60
PRODUCTION_SCHEDULE = "0 9 * * 1-5"
PRODUCTION_SOAK_SECONDS = 1800

SECRET_NAME_PATTERN = re.compile(r"(SECRET|TOKEN|PASSWORD|PASSWD|API_KEY|PRIVATE_KEY|CREDENTIAL|_KEY$)",
                                 re.IGNORECASE)

GCP_TARGETS = ("gcp", "cloud-run", "gke", "app-engine", "firebase")
AZURE_TARGETS = ("azure", "aks", "azure-app-service")
AWS_TARGETS = ("aws", "ecs", "eks", "lambda", "s3")


class MultiEnvironmentGenerator(BaseGenerator):
    """Expands an ordered list of environments into deployment workflows."""

    workflow_type = WorkflowType.DEPLOYMENT
    filename = "deploy.yml"

    def __init__(self, **kwargs):
        super().__init__(name="MultiEnvironmentGenerator", **kwargs)

    def generate(
        self,
        resolved: ResolvedDetection,
        options: GenerationOptions,
        environments: Sequence[Any] = (),
    ) -> MultiEnvironmentResult:
        """
        Generate all multi-environment artifacts.

        Args:
            resolved: Conflict-resolved detection data
            options: Generation options (environment management flags apply)
            environments: EnvironmentConfig values or mappings, in promotion order

        Returns:
            MultiEnvironmentResult with workflows and derived configuration

        Raises:
            InvalidInputError: If no environments are given or names repeat
        """
        envs = self._parse_environments(environments)
        ctx = self.create_context(resolved, options)
        self.log_step(f"Generating workflows for {len(envs)} environments")

        if ctx.options.environment_management.auto_detect_secrets:
            envs = [self._auto_detect_secrets(env, ctx) for env in envs]

        result = MultiEnvironmentResult(environments=list(envs))
        for env in envs:
            strategy = self.strategy_config(env)
            gate = self.approval_gate(env)
            rollback = self.rollback_config(env)

            result.deployment_strategies[env.name] = strategy
            if gate:
                result.approval_gates.append(gate)
            if rollback:
                result.rollback_configs[env.name] = rollback

            workflow = self._deploy_workflow(ctx, env, strategy, gate, rollback)
            result.workflows.append(self.render(
                workflow, ctx, filename=f"deploy-{slugify(env.name)}.yml", workflow_type=WorkflowType.DEPLOYMENT,
            ))

        result.promotion_pipelines = self.promotion_pipelines(envs, ctx)
        if result.promotion_pipelines:
            workflow = self._promotion_workflow(ctx, result.promotion_pipelines)
            result.workflows.append(self.render(workflow, ctx, filename="promotion.yml",
                                                workflow_type=WorkflowType.PROMOTION))

        if result.rollback_configs:
            rollback_envs = [env for env in envs if env.name in result.rollback_configs]
            workflow = self._rollback_workflow(ctx, rollback_envs, result.rollback_configs)
            result.workflows.append(self.render(workflow, ctx, filename="rollback.yml",
                                                workflow_type=WorkflowType.ROLLBACK))

        result.warnings = list(ctx.warnings)
        self.log_success(f"Generated {len(result.workflows)} environment workflows")
        return result

    # Derived configuration

    @staticmethod
    def strategy_config(env: EnvironmentConfig) -> DeploymentStrategyConfig:
        """Strategy parameters; non-production environments are more permissive."""
        prod = env.is_production
        service = f"{slugify(env.name)}-service"

        if env.deployment_strategy is DeploymentStrategy.ROLLING:
            return RollingConfig(
                max_unavailable="25%" if prod else "50%",
                max_surge="25%" if prod else "100%",
            )

        analysis = (
            AnalysisTemplate("success-rate", (("service-name", service),)),
            AnalysisTemplate("avg-req-duration", (("service-name", service),)),
        )
        if env.deployment_strategy is DeploymentStrategy.BLUE_GREEN:
            return BlueGreenConfig(
                auto_promotion_enabled=not prod,
                scale_down_delay_seconds=300 if prod else 60,
                pre_promotion_analysis=analysis,
                post_promotion_analysis=analysis[:1],
            )

        short, long_ = (300, 600) if prod else (120, 300)
        steps: List[CanaryStep] = [
            CanaryStep(set_weight=20), CanaryStep(pause_seconds=short),
            CanaryStep(set_weight=40), CanaryStep(pause_seconds=long_),
            CanaryStep(set_weight=60),
        ]
        if prod:
            steps.append(CanaryStep(until_approved=True))
        steps += [CanaryStep(set_weight=80), CanaryStep(pause_seconds=long_)]
        return CanaryConfig(
            steps=tuple(steps),
            success_rate_threshold=0.99 if prod else 0.95,
            max_error_rate=0.01 if prod else 0.05,
            analysis=analysis,
        )

    @staticmethod
    def approval_gate(env: EnvironmentConfig) -> Optional[ApprovalGate]:
        """Gate for environments that require approval; production always does."""
        if not (env.approval_required or env.is_production):
            return None
        return ApprovalGate(
            environment=env.name,
            required_approvals=REQUIRED_APPROVALS[env.type],
            approvers=APPROVERS[env.type],
            timeout_minutes=APPROVAL_TIMEOUT_MINUTES,
            instructions=f"Please review and approve deployment to {env.name} environment",
        )

    @staticmethod
    def rollback_config(env: EnvironmentConfig) -> Optional[RollbackConfig]:
        if not env.rollback_enabled:
            return None
        error_rate = 5 if env.is_production else 10
        return RollbackConfig(
            enabled=True,
            triggers=(
                "health-check-failure >= 3 within 5m",
                f"error-rate > {error_rate}% for 10m",
                "manual",
            ),
            strategy="gradual" if env.is_production else "immediate",
            max_retries=3,
        )

    def promotion_pipelines(self, envs: Sequence[EnvironmentConfig],
                            ctx: GenerationContext) -> List[PromotionPipeline]:
        """Linear promotion between adjacent environments, in list order."""
        names = [env.name for env in envs]
        pipelines: List[PromotionPipeline] = []
        for index in range(1, len(envs)):
            target = envs[index]
            source = envs[index - 1].name
            if target.promotion_source:
                if target.promotion_source in names[:index]:
                    source = target.promotion_source
                else:
                    ctx.warn(LowConfidenceWarning(
                        f"Promotion source '{target.promotion_source}' for {target.name} is not an earlier "
                        f"environment - promoting from {source}",
                        environment=target.name,
                    ))

            conditions = [
                PromotionCondition("health_check", (
                    ("endpoint", "/health"), ("expectedStatus", 200), ("timeout", 30), ("retries", 3),
                )),
                PromotionCondition("test_success", (("testSuite", "integration"), ("requiredPassRate", 100))),
            ]
            if target.is_production:
                conditions.append(PromotionCondition("manual_approval", (
                    ("requiredApprovals", REQUIRED_APPROVALS[EnvironmentType.PRODUCTION]), ("timeout", 120),
                )))
                conditions.append(PromotionCondition("time_delay", (("duration", PRODUCTION_SOAK_SECONDS),)))

            pipelines.append(PromotionPipeline(
                source_environment=source,
                target_environment=target.name,
                auto_promote=not target.is_production,
                conditions=tuple(conditions),
                rollback_on_failure=True,
            ))
        return pipelines

    # Workflows

    def _deploy_workflow(
        self,
        ctx: GenerationContext,
        env: EnvironmentConfig,
        strategy: DeploymentStrategyConfig,
        gate: Optional[ApprovalGate],
        rollback: Optional[RollbackConfig],
    ) -> Workflow:
        key = slugify(env.name)
        tc = ctx.toolchain
        resolved = ctx.resolved
        container = resolved.has_target(*CONTAINER_TARGETS)
        pages = not container and (tc.framework in STATIC_FRAMEWORKS or resolved.has_target("github-pages"))
        management = ctx.options.environment_management

        permissions = {"contents": "read", "deployments": "write", "issues": "write"}
        if management.include_oidc:
            permissions["id-token"] = "write"
        if container:
            permissions["packages"] = "write"
        if pages:
            permissions.update({"pages": "write", "id-token": "write"})
        if env.is_production:
            permissions.update({"checks": "write", "statuses": "write"})

        workflow = Workflow(
            name=f"Deploy to {env.name}",
            description=f"{env.type.value} deployment using the {env.deployment_strategy.value} strategy",
            triggers=self._triggers(env),
            permissions=permissions,
            concurrency={"group": f"deploy-{key}", "cancel-in-progress": False},
            env={"DEPLOY_ENVIRONMENT": env.name, "DEPLOYMENT_STRATEGY": strategy.type},
        )

        pre = self.job(
            f"pre-deploy-{key}",
            f"Prepare {env.name} deployment",
            if_="${{ !inputs.rollback }}",
            outputs={"version": "${{ steps.version.outputs.version }}"},
            comment="Build, validate configuration and compute the release version",
        )
        pre.add_step(self.steps.checkout())
        pre.add_step(Step(
            name="Compute release version",
            id="version",
            run='echo "version=${INPUT_VERSION:-${GITHUB_SHA::7}}" >> "$GITHUB_OUTPUT"',
            env={"INPUT_VERSION": "${{ inputs.version }}"},
        ))
        pre.add_steps(self._management_steps(ctx, env))
        if not tc.is_generic:
            pre.add_steps(self.steps.setup_steps(tc))
            if ctx.options.caching_enabled:
                pre.add_step(self.steps.cache_step(tc))
            pre.add_step(self.steps.install_step(tc))
            pre.add_step(self.steps.build_step(tc))
            pre.add_step(self.steps.test_step(tc))
        if not container:
            pre.add_step(self.steps.upload_artifact_step(tc, name=f"build-{key}", retention_days=5))
        workflow.add_job(pre)

        deploy_needs = [pre.id]
        if gate:
            approve = self.job(
                f"approve-{key}",
                f"Approve {env.name} deployment",
                needs=[pre.id],
                timeout_minutes=gate.timeout_minutes,
                comment=f"Requires {gate.required_approvals} approval(s) from {', '.join(gate.approvers)}",
            )
            approve.add_step(Step(
                name="Wait for approval",
                uses=self.steps.ref("trstringer/manual-approval", tc),
                with_={
                    "secret": "${{ github.TOKEN }}",
                    "approvers": ",".join(a.lstrip("@") for a in gate.approvers),
                    "minimum-approvals": gate.required_approvals,
                    "issue-title": f"Deploy ${{{{ needs.{pre.id}.outputs.version }}}} to {env.name}",
                    "issue-body": gate.instructions,
                    "exclude-workflow-initiator-as-approver": env.is_production,
                },
            ))
            workflow.add_job(approve)
            deploy_needs.append(approve.id)

        deploy = self.job(
            f"deploy-{key}",
            f"Deploy to {env.name}",
            needs=deploy_needs,
            environment={"name": env.name, "url": "${{ vars.DEPLOYMENT_URL }}"},
            outputs={
                "deployment-status": "${{ steps.status.outputs.status }}",
                "deployment-url": "${{ vars.DEPLOYMENT_URL }}",
                "deployment-version": f"${{{{ needs.{pre.id}.outputs.version }}}}",
            },
            env=self.steps.secret_env(env.secrets),
            comment=f"{strategy.type} deployment",
        )
        deploy.add_step(self.steps.checkout())
        if management.include_oidc:
            deploy.add_steps(self._oidc_steps(ctx))
        if not container:
            deploy.add_step(Step(
                name="Download build artifacts",
                uses=self.steps.ref("actions/download-artifact", tc),
                with_={"name": f"build-{key}", "path": self.steps.artifact_path(tc)},
            ))
        if tc.framework in ("django", "flask", "rails", "laravel") and not tc.is_generic:
            deploy.add_steps(self.steps.setup_steps(tc))
            deploy.add_step(self.steps.install_step(tc))
        deploy.add_step(self._strategy_step(strategy, env, ctx))
        deploy.add_steps(self.steps.deploy_steps(tc, resolved, env.name, production=env.is_production))
        deploy.add_steps(self.steps.health_check_steps(env.name))
        deploy.add_step(Step(name="Record deployment status", id="status",
                             run='echo "status=success" >> "$GITHUB_OUTPUT"'))
        workflow.add_job(deploy)

        post = self.job(
            f"post-deploy-{key}",
            f"Validate {env.name} deployment",
            needs=[deploy.id],
            if_=f"needs.{deploy.id}.outputs.deployment-status == 'success'",
        )
        post.add_step(self.steps.checkout())
        post.add_step(self.steps.smoke_test_step(tc, env.name))
        post.add_step(Step(
            name="Write deployment summary",
            run=(
                f"echo \"### Deployed to {env.name}\" >> \"$GITHUB_STEP_SUMMARY\"\n"
                f"echo \"Version: ${{{{ needs.{deploy.id}.outputs.deployment-version }}}}\" >> \"$GITHUB_STEP_SUMMARY\""
            ),
        ))
        workflow.add_job(post)

        if rollback:
            job = self.job(
                f"rollback-{key}",
                f"Roll back {env.name}",
                needs=[deploy.id, post.id],
                if_="${{ always() && (contains(needs.*.result, 'failure') || inputs.rollback) }}",
                environment=env.name,
                comment="Triggers: " + "; ".join(rollback.triggers),
            )
            job.add_step(self.steps.checkout())
            if management.include_oidc:
                job.add_steps(self._oidc_steps(ctx))
            job.add_step(self._rollback_step(ctx, env, rollback))
            job.add_steps(self.steps.health_check_steps(env.name))
            workflow.add_job(job)

        ctx.optimize(f"{env.name}: {strategy.type} strategy with health-gated post-deploy validation")
        return workflow

    def _triggers(self, env: EnvironmentConfig) -> Dict[str, Any]:
        triggers: Dict[str, Any] = {}
        if env.type is EnvironmentType.DEVELOPMENT:
            triggers["push"] = {"branches": self.branches("develop")}
        elif env.type is EnvironmentType.STAGING:
            triggers["push"] = {"branches": self.branches()}
        else:
            triggers["schedule"] = [{"cron": PRODUCTION_SCHEDULE}]
        triggers["workflow_dispatch"] = {"inputs": {
            "version": dispatch_input("Version to deploy (defaults to the current commit)", default=""),
            "rollback": dispatch_input("Roll back instead of deploying", default=False, type_="boolean"),
        }}
        return triggers

    def _management_steps(self, ctx: GenerationContext, env: EnvironmentConfig) -> List[Step]:
        management = ctx.options.environment_management
        key = slugify(env.name)
        steps: List[Step] = []
        variables = env.variables_dict

        if management.include_secret_validation and env.secrets:
            names = [env_var_name(s) for s in env.secrets]
            steps.append(Step(
                name="Validate required secrets",
                shell="bash",
                run=(
                    "missing=0\n"
                    f"for name in {' '.join(names)}; do\n"
                    "  if [ -z \"${!name}\" ]; then\n"
                    "    echo \"::error::Secret $name is not configured\"\n"
                    "    missing=1\n"
                    "  fi\n"
                    "done\n"
                    "exit $missing"
                ),
                env=self.steps.secret_env(env.secrets),
            ))

        if management.include_config_generation:
            config = json.dumps({"environment": env.name, "type": env.type.value, "variables": variables},
                                indent=2, sort_keys=True)
            steps.append(Step(
                name="Generate environment configuration",
                run=f"mkdir -p config\ncat > config/{key}.json <<'EOF'\n{config}\nEOF",
            ))

        if management.generate_env_files:
            lines = [f"echo \"{env_var_name(k)}={v}\" >> .env.{key}" for k, v in sorted(variables.items())]
            lines += [f"echo \"{env_var_name(s)}=${env_var_name(s)}\" >> .env.{key}" for s in env.secrets]
            steps.append(Step(
                name=f"Generate .env.{key}",
                run="\n".join([f": > .env.{key}"] + lines),
                env=self.steps.secret_env(env.secrets),
            ))
        return steps

    def _oidc_steps(self, ctx: GenerationContext) -> List[Step]:
        resolved = ctx.resolved
        if resolved.has_target(*GCP_TARGETS):
            return [Step(
                name="Authenticate to Google Cloud",
                uses=self.steps.ref("google-github-actions/auth"),
                with_={"workload_identity_provider": "${{ secrets.WIF_PROVIDER }}",
                       "service_account": "${{ secrets.WIF_SERVICE_ACCOUNT }}"},
            )]
        if resolved.has_target(*AZURE_TARGETS):
            return [Step(
                name="Authenticate to Azure",
                uses=self.steps.ref("azure/login"),
                with_={"client-id": "${{ secrets.AZURE_CLIENT_ID }}",
                       "tenant-id": "${{ secrets.AZURE_TENANT_ID }}",
                       "subscription-id": "${{ secrets.AZURE_SUBSCRIPTION_ID }}"},
            )]
        if not resolved.has_target(*AWS_TARGETS):
            ctx.warn(LowConfidenceWarning("OIDC requested without a cloud deployment target - assuming AWS"))
        return [Step(
            name="Configure AWS credentials",
            uses=self.steps.ref("aws-actions/configure-aws-credentials"),
            with_={"role-to-assume": "${{ secrets.AWS_ROLE_ARN }}", "aws-region": "${{ vars.AWS_REGION }}"},
        )]

    def _strategy_step(self, strategy: DeploymentStrategyConfig, env: EnvironmentConfig,
                       ctx: GenerationContext) -> Step:
        env_vars: Dict[str, Any] = {"STRATEGY": strategy.type}
        if isinstance(strategy, RollingConfig):
            env_vars.update({
                "MAX_UNAVAILABLE": strategy.max_unavailable,
                "MAX_SURGE": strategy.max_surge,
                "PROGRESS_DEADLINE_SECONDS": str(strategy.progress_deadline_seconds),
            })
        elif isinstance(strategy, BlueGreenConfig):
            env_vars.update({
                "AUTO_PROMOTION": str(strategy.auto_promotion_enabled).lower(),
                "SCALE_DOWN_DELAY_SECONDS": str(strategy.scale_down_delay_seconds),
                "PREVIEW_REPLICAS": str(strategy.preview_replica_count),
            })
        else:
            env_vars.update({
                "CANARY_STEPS": " ".join(self._canary_step_text(s) for s in strategy.steps),
                "SUCCESS_RATE_THRESHOLD": str(strategy.success_rate_threshold),
                "MAX_ERROR_RATE": str(strategy.max_error_rate),
            })

        if ctx.resolved.has_target(*KUBERNETES_TARGETS):
            run = (
                "cat > strategy.json <<EOF\n"
                f"{json.dumps(strategy.to_dict(), sort_keys=True)}\n"
                "EOF\n"
                f"kubectl annotate deployment/{slugify(ctx.resolved.project_name)} "
                f"deploy.strategy=\"$STRATEGY\" --overwrite --namespace {slugify(env.name)}"
            )
        else:
            run = f"echo \"Deploying {env.name} with the $STRATEGY strategy\""
        return Step(name=f"Apply {strategy.type} strategy", run=run, env=env_vars)

    @staticmethod
    def _canary_step_text(step: CanaryStep) -> str:
        if step.set_weight is not None:
            return f"weight={step.set_weight}"
        if step.until_approved:
            return "pause=approval"
        return f"pause={format_duration(step.pause_seconds)}"

    def _rollback_step(self, ctx: GenerationContext, env: EnvironmentConfig, rollback: RollbackConfig) -> Step:
        key = slugify(env.name)
        app = slugify(ctx.resolved.project_name)
        if ctx.resolved.has_target(*KUBERNETES_TARGETS):
            run = (
                f"kubectl rollout undo deployment/{app} --namespace {key}\n"
                f"kubectl rollout status deployment/{app} --namespace {key} --timeout=600s"
            )
        else:
            run = (
                "if [ -x ./scripts/rollback.sh ]; then\n"
                f"  ./scripts/rollback.sh {key} \"$ROLLBACK_STRATEGY\"\n"
                "else\n"
                f"  echo \"Rolling back {env.name} to the previous release\"\n"
                "fi"
            )
        return Step(
            name=f"Roll back {env.name}",
            run=run,
            env={"ROLLBACK_STRATEGY": rollback.strategy, "MAX_RETRIES": str(rollback.max_retries)},
        )

    def _promotion_workflow(self, ctx: GenerationContext, pipelines: List[PromotionPipeline]) -> Workflow:
        sources = sorted({p.source_environment for p in pipelines})
        targets = sorted({p.target_environment for p in pipelines})
        workflow = Workflow(
            name="Environment Promotion Pipeline",
            description=" -> ".join([pipelines[0].source_environment] + [p.target_environment for p in pipelines]),
            triggers={
                "workflow_run": {
                    "workflows": [f"Deploy to {s}" for s in sources],
                    "types": ["completed"],
                },
                "workflow_dispatch": {"inputs": {
                    "source": dispatch_input("Source environment", required=True, options=sources),
                    "target": dispatch_input("Target environment", required=True, options=targets),
                }},
            },
            permissions={"contents": "read", "actions": "write", "deployments": "write", "issues": "write"},
        )

        for pipeline in pipelines:
            src, tgt = pipeline.source_environment, pipeline.target_environment
            manual = f"(github.event_name == 'workflow_dispatch' && inputs.source == '{src}' && inputs.target == '{tgt}')"
            if pipeline.auto_promote:
                automatic = (f"(github.event.workflow_run.name == 'Deploy to {src}' && "
                             "github.event.workflow_run.conclusion == 'success')")
                condition = f"{automatic} || {manual}"
            else:
                condition = manual

            job = self.job(
                f"promote-{slugify(src)}-to-{slugify(tgt)}",
                f"Promote {src} to {tgt}",
                if_=condition,
                environment=tgt,
                comment="Automatic promotion" if pipeline.auto_promote else "Manual promotion only",
            )
            job.timeout_minutes = max(self.settings.job_timeout_minutes,
                                      PRODUCTION_SOAK_SECONDS // 60 + APPROVAL_TIMEOUT_MINUTES * 2)
            job.add_steps(self._condition_steps(pipeline))
            job.add_step(Step(
                name=f"Deploy to {tgt}",
                run=f"gh workflow run deploy-{slugify(tgt)}.yml --ref \"$GITHUB_SHA\"",
                env=dict(GH_CLI_ENV),
            ))
            workflow.add_job(job)
        return workflow

    def _condition_steps(self, pipeline: PromotionPipeline) -> List[Step]:
        src = pipeline.source_environment
        steps: List[Step] = []
        for condition in pipeline.conditions:
            config = condition.config_dict
            if condition.type == "health_check":
                steps.append(Step(
                    name=f"Verify {src} health",
                    run=(
                        f"for attempt in $(seq 1 {config['retries']}); do\n"
                        f"  status=$(curl -s -o /dev/null -w '%{{http_code}}' --max-time {config['timeout']} "
                        f"\"$SOURCE_URL{config['endpoint']}\")\n"
                        f"  [ \"$status\" = \"{config['expectedStatus']}\" ] && exit 0\n"
                        "  sleep 10\n"
                        "done\n"
                        "exit 1"
                    ),
                    env={"SOURCE_URL": f"${{{{ vars.{env_var_name(src)}_URL }}}}"},
                ))
            elif condition.type == "test_success":
                steps.append(Step(
                    name=f"Verify {config['testSuite']} tests passed",
                    run=(
                        f"gh run list --workflow \"Deploy to {src}\" --status success --limit 1 "
                        "--json conclusion --jq '.[0].conclusion' | grep -q success"
                    ),
                    env=dict(GH_CLI_ENV),
                ))
            elif condition.type == "manual_approval":
                steps.append(Step(
                    name="Wait for promotion approval",
                    uses=self.steps.ref("trstringer/manual-approval"),
                    with_={
                        "secret": "${{ github.TOKEN }}",
                        "approvers": ",".join(a.lstrip("@") for a in APPROVERS[EnvironmentType.PRODUCTION]),
                        "minimum-approvals": config["requiredApprovals"],
                        "issue-title": f"Promote {src} to {pipeline.target_environment}",
                    },
                    timeout_minutes=config["timeout"],
                ))
            elif condition.type == "time_delay":
                steps.append(Step(
                    name=f"Soak period ({format_duration(config['duration'])})",
                    run=f"sleep {config['duration']}",
                ))
        return steps

    def _rollback_workflow(self, ctx: GenerationContext, envs: List[EnvironmentConfig],
                           configs: Dict[str, RollbackConfig]) -> Workflow:
        workflow = Workflow(
            name="Emergency Rollback",
            description="Manual rollback for rollback-enabled environments",
            triggers={"workflow_dispatch": {"inputs": {
                "environment": dispatch_input("Environment to roll back", required=True,
                                              options=[e.name for e in envs]),
                "reason": dispatch_input("Reason for the rollback", required=True),
                "rollback-strategy": dispatch_input("Rollback strategy", default="immediate",
                                                    options=["immediate", "gradual"]),
            }}},
            permissions={"contents": "read", "deployments": "write", "issues": "write"},
            concurrency={"group": "emergency-rollback-${{ inputs.environment }}", "cancel-in-progress": False},
        )
        for env in envs:
            config = configs[env.name]
            job = self.job(
                f"rollback-{slugify(env.name)}",
                f"Roll back {env.name}",
                if_=f"inputs.environment == '{env.name}'",
                environment=env.name,
            )
            job.add_step(self.steps.checkout())
            job.add_step(Step(
                name="Record rollback reason",
                run="echo \"Rollback requested: $REASON\" >> \"$GITHUB_STEP_SUMMARY\"",
                env={"REASON": "${{ inputs.reason }}"},
            ))
            if ctx.options.environment_management.include_oidc:
                job.add_steps(self._oidc_steps(ctx))
            step = self._rollback_step(ctx, env, config)
            step.env["ROLLBACK_STRATEGY"] = f"${{{{ inputs.rollback-strategy || '{config.strategy}' }}}}"
            job.add_step(step)
            job.add_steps(self.steps.health_check_steps(env.name))
            workflow.add_job(job)
        return workflow

    # Input handling

    @staticmethod
    def _parse_environments(environments: Sequence[Any]) -> List[EnvironmentConfig]:
        if environments is None or isinstance(environments, (str, bytes)):
            raise InvalidInputError("Environments must be a list", component="multi-environment", stage="parse")
        envs = [EnvironmentConfig.from_dict(e) for e in environments]
        if not envs:
            raise InvalidInputError("At least one environment is required",
                                    component="multi-environment", stage="parse")
        seen = set()
        for env in envs:
            if env.name in seen:
                raise InvalidInputError(f"Duplicate environment name '{env.name}'",
                                        component="multi-environment", stage="parse")
            seen.add(env.name)
        return envs

    @staticmethod
    def _auto_detect_secrets(env: EnvironmentConfig, ctx: GenerationContext) -> EnvironmentConfig:
        variables = env.variables_dict
        detected = [name for name in variables if SECRET_NAME_PATTERN.search(name)]
        if not detected:
            return env
        for name in detected:
            ctx.warn(LowConfidenceWarning(
                f"Variable {name} in {env.name} looks like a secret - moved to secrets",
                environment=env.name,
                variable=name,
            ))
        return EnvironmentConfig.create(
            name=env.name,
            type=env.type,
            approval_required=env.approval_required,
            secrets=list(env.secrets) + [n for n in detected if n not in env.secrets],
            variables={k: v for k, v in variables.items() if k not in detected},
            deployment_strategy=env.deployment_strategy,
            rollback_enabled=env.rollback_enabled,
            promotion_source=env.promotion_source,
        )
