"""
CD Generator - builds the continuous deployment workflow.
"""

from ..core.errors import DegenerateInputWarning
from ..models.options import WorkflowType
from ..models.workflow import Step, Workflow, dispatch_input
from .base_generator import GenerationContext, WorkflowGenerator
from .step_library import CONTAINER_TARGETS, MIGRATION_COMMANDS, STATIC_FRAMEWORKS


class CDGenerator(WorkflowGenerator):
    """Generates cd.yml: build once, deploy to an environment, verify."""

    workflow_type = WorkflowType.CD
    filename = "cd.yml"

    def __init__(self, **kwargs):
        super().__init__(name="CDGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        resolved = ctx.resolved
        container = resolved.has_target(*CONTAINER_TARGETS)
        pages = not container and (tc.framework in STATIC_FRAMEWORKS or resolved.has_target("github-pages"))

        if not resolved.deployment_targets:
            ctx.warn(DegenerateInputWarning("No deployment targets detected - using generic deploy steps"))

        permissions = {"contents": "read", "deployments": "write", "id-token": "write"}
        if container:
            permissions["packages"] = "write"
        if pages:
            permissions["pages"] = "write"

        workflow = Workflow(
            name="Continuous Deployment",
            description=f"Deployment pipeline for {resolved.project_name}",
            triggers={
                "push": {"branches": self.branches(), "tags": ["v*"]},
                "workflow_dispatch": {"inputs": {
                    "environment": dispatch_input("Target environment", default="production",
                                                  options=["staging", "production"]),
                }},
            },
            permissions=permissions,
            concurrency={"group": "cd-${{ github.ref }}", "cancel-in-progress": False},
        )

        build = self.job("build", f"Build {tc.display_name}", comment="Build once and hand the artifact to deploy")
        if tc.is_generic:
            build.add_step(self.steps.checkout())
            build.add_step(Step(name="Build", run="if [ -f Makefile ]; then make build; fi"))
        else:
            build.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            build.add_step(self.steps.build_step(tc))
            build.add_step(self.steps.test_step(tc))
        if not container:
            build.add_step(self.steps.upload_artifact_step(tc, retention_days=1))
        workflow.add_job(build)

        environment = "${{ inputs.environment || 'production' }}"
        deploy = self.job(
            "deploy",
            "Deploy",
            needs=["build"],
            environment={"name": environment, "url": "${{ vars.DEPLOYMENT_URL }}"},
            outputs={"deployment-url": "${{ vars.DEPLOYMENT_URL }}"},
        )
        deploy.add_step(self.steps.checkout())
        if tc.framework in MIGRATION_COMMANDS and not tc.is_generic:
            deploy.add_steps(self.steps.setup_steps(tc))
            deploy.add_step(self.steps.install_step(tc))
        if not container:
            deploy.add_step(Step(
                name="Download build artifacts",
                uses=self.steps.ref("actions/download-artifact", tc),
                with_={"name": "build-output", "path": self.steps.artifact_path(tc)},
            ))
        if resolved.has_target("aws", "s3"):
            deploy.add_step(self._aws_login())
        deploy.add_steps(self.steps.deploy_steps(tc, resolved, "production", production=True))
        deploy.add_steps(self.steps.health_check_steps("production"))
        workflow.add_job(deploy)

        verify = self.job("verify", "Post-deploy verification", needs=["deploy"])
        verify.add_step(self.steps.checkout())
        verify.add_step(self.steps.smoke_test_step(tc, "production"))
        workflow.add_job(verify)

        if container:
            ctx.optimize("Container layers cached with the GitHub Actions cache backend")
        else:
            ctx.optimize("Build artifact reused by the deploy job")
        return workflow

    def _aws_login(self) -> Step:
        return Step(
            name="Configure AWS credentials",
            uses=self.steps.ref("aws-actions/configure-aws-credentials"),
            with_={"role-to-assume": "${{ secrets.AWS_ROLE_ARN }}", "aws-region": "${{ vars.AWS_REGION }}"},
        )
