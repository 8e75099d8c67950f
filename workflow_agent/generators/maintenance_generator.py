"""
Maintenance Generator - scheduled dependency updates and repository hygiene.
"""

from ..models.options import WorkflowType
from ..models.workflow import Step, Workflow, dispatch_input
from .base_generator import GenerationContext, WorkflowGenerator

UPDATE_COMMANDS = {
    "npm": "npx npm-check-updates -u --target minor\nnpm install",
    "yarn": "yarn upgrade",
    "pnpm": "pnpm update",
    "pip": "pip install pip-tools\npip-compile --upgrade --output-file requirements.txt requirements.in || true",
    "poetry": "poetry update",
    "pipenv": "pipenv update",
    "maven": "mvn -B versions:use-latest-releases -DgenerateBackupPoms=false",
    "gradle": "./gradlew dependencyUpdates",
    "cargo": "cargo update",
    "go": "go get -u ./...\ngo mod tidy",
    "bundler": "bundle update",
    "composer": "composer update",
}

CLEANUP_SCRIPT = """\
const cutoff = Date.now() - Number(process.env.RETENTION_DAYS) * 24 * 60 * 60 * 1000;
const artifacts = await github.paginate(github.rest.actions.listArtifactsForRepo, context.repo);
for (const artifact of artifacts) {
  if (new Date(artifact.created_at).getTime() < cutoff) {
    await github.rest.actions.deleteArtifact({...context.repo, artifact_id: artifact.id});
  }
}
"""


class MaintenanceGenerator(WorkflowGenerator):
    """Generates maintenance.yml."""

    workflow_type = WorkflowType.MAINTENANCE
    filename = "maintenance.yml"

    def __init__(self, **kwargs):
        super().__init__(name="MaintenanceGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        workflow = Workflow(
            name="Maintenance",
            description="Scheduled dependency updates and repository hygiene",
            triggers={
                "schedule": [{"cron": "0 2 * * 1"}],
                "workflow_dispatch": {"inputs": {
                    "task": dispatch_input("Maintenance task", default="all",
                                           options=["all", "dependencies", "cleanup", "health"]),
                }},
            },
            permissions={"contents": "write", "pull-requests": "write", "actions": "write", "issues": "write"},
        )

        update_command = UPDATE_COMMANDS.get(tc.package_manager or "")
        if update_command and not tc.is_generic:
            deps = self.job("dependency-updates", "Update dependencies",
                            if_="github.event_name == 'schedule' || inputs.task == 'all' || inputs.task == 'dependencies'")
            deps.add_step(self.steps.checkout())
            deps.add_steps(self.steps.setup_steps(tc))
            deps.add_step(Step(name="Update dependencies", run=update_command))
            deps.add_step(self.steps.test_step(tc))
            deps.add_step(Step(
                name="Open pull request",
                uses=self.steps.ref("peter-evans/create-pull-request", tc),
                with_={
                    "branch": "maintenance/dependency-updates",
                    "title": "chore: update dependencies",
                    "commit-message": "chore: update dependencies",
                    "labels": "dependencies",
                    "delete-branch": True,
                },
            ))
            workflow.add_job(deps)
            ctx.optimize("Dependency updates batched into a single weekly pull request")

        cleanup = self.job("cleanup-artifacts", "Clean up old artifacts",
                           if_="github.event_name == 'schedule' || inputs.task == 'all' || inputs.task == 'cleanup'")
        cleanup.add_step(Step(
            name="Delete expired artifacts",
            uses=self.steps.ref("actions/github-script"),
            with_={"script": CLEANUP_SCRIPT},
            env={"RETENTION_DAYS": "30"},
        ))
        cleanup.add_step(Step(
            name="Close stale issues and pull requests",
            uses=self.steps.ref("actions/stale"),
            with_={"days-before-stale": 60, "days-before-close": 14,
                   "stale-issue-label": "stale", "stale-pr-label": "stale"},
        ))
        workflow.add_job(cleanup)

        health = self.job("repository-health", "Repository health",
                          if_="github.event_name == 'schedule' || inputs.task == 'all' || inputs.task == 'health'")
        health.add_step(self.steps.checkout())
        health.add_step(Step(
            name="Check repository files",
            run=(
                "missing=0\n"
                "for file in README.md LICENSE .gitignore; do\n"
                "  if [ ! -f \"$file\" ]; then\n"
                "    echo \"::warning::$file is missing\"\n"
                "    missing=$((missing + 1))\n"
                "  fi\n"
                "done\n"
                "echo \"missing_files=$missing\" >> \"$GITHUB_STEP_SUMMARY\""
            ),
        ))
        workflow.add_job(health)
        return workflow
