"""
Agent Hooks Generator - automation workflows that react to repository events.

Generates four workflows: webhook response, dependency updates, performance
optimization, and retry/recovery. The configured webhook URL is written into
the workflows; nothing is called at generation time.
"""

from typing import Dict, List

from ..core.conflict_resolver import ResolvedDetection
from ..models.options import GenerationOptions, WorkflowType
from ..models.workflow import Step, Workflow, WorkflowOutput, dispatch_input
from .base_generator import BaseGenerator, GenerationContext
from .maintenance_generator import UPDATE_COMMANDS
from .step_library import GH_CLI_ENV

DISPATCH_EVENTS = [
    "readme-updated",
    "performance-regression",
    "security-alert",
    "workflow-failure",
    "optimization-opportunity",
]

WATCHED_WORKFLOWS = ["Continuous Integration", "Continuous Deployment"]

OUTDATED_COMMANDS = {
    "npm": "npm outdated --json > outdated.json || true",
    "yarn": "yarn outdated --json > outdated.json || true",
    "pnpm": "pnpm outdated --format json > outdated.json || true",
    "pip": "pip list --outdated --format=json > outdated.json",
    "poetry": "poetry show --outdated > outdated.txt || true",
    "cargo": "cargo install cargo-outdated && cargo outdated --format json > outdated.json || true",
    "go": "go list -u -m -json all > outdated.json",
    "maven": "mvn -B versions:display-dependency-updates > outdated.txt",
    "gradle": "./gradlew dependencyUpdates > outdated.txt || true",
    "bundler": "bundle outdated --parseable > outdated.txt || true",
    "composer": "composer outdated --format=json > outdated.json || true",
}

OPEN_ISSUE_SCRIPT = """\
const title = process.env.ISSUE_TITLE;
const labels = process.env.ISSUE_LABELS.split(',');
const open = await github.rest.issues.listForRepo({...context.repo, state: 'open', labels: labels[0]});
if (!open.data.some(issue => issue.title === title)) {
  await github.rest.issues.create({...context.repo, title, body: process.env.ISSUE_BODY, labels});
}
"""

README_ANALYSIS_SCRIPT = """\
const base = context.payload.before || 'HEAD~1';
const diff = await github.rest.repos.compareCommits({...context.repo, base, head: context.sha});
const readme = (diff.data.files || []).find(f => f.filename === 'README.md');
core.setOutput('changed', readme ? 'true' : String(context.eventName === 'repository_dispatch'));
"""

TRIAGE_SCRIPT = """\
const issue = context.payload.issue;
const text = `${issue.title}\\n${issue.body || ''}`.toLowerCase();
const rules = {
  'ci/cd': ['workflow', 'pipeline', 'github actions', 'ci', 'deploy'],
  'performance': ['slow', 'performance', 'timeout', 'memory'],
  'security': ['vulnerability', 'cve', 'security', 'secret'],
  'dependencies': ['dependency', 'upgrade', 'package', 'version'],
};
const labels = Object.entries(rules)
  .filter(([, words]) => words.some(word => text.includes(word)))
  .map(([label]) => label);
if (labels.length > 0) {
  await github.rest.issues.addLabels({...context.repo, issue_number: issue.number, labels});
}
"""

PERFORMANCE_ANALYSIS_SCRIPT = """\
const runs = await github.paginate(github.rest.actions.listWorkflowRunsForRepo,
  {...context.repo, per_page: 100, created: `>${new Date(Date.now() - 7 * 864e5).toISOString()}`});
const completed = runs.filter(run => run.status === 'completed');
const minutes = run => (new Date(run.updated_at) - new Date(run.run_started_at)) / 60000;
const byName = {};
for (const run of completed) {
  (byName[run.name] = byName[run.name] || []).push(run);
}
const limits = {
  build: Number(process.env.BUILD_TIME_THRESHOLD),
  test: Number(process.env.TEST_TIME_THRESHOLD),
  deploy: Number(process.env.DEPLOY_TIME_THRESHOLD),
};
const findings = [];
for (const [name, items] of Object.entries(byName)) {
  const average = items.reduce((sum, run) => sum + minutes(run), 0) / items.length;
  const failures = items.filter(run => run.conclusion === 'failure').length;
  const failureRate = (failures / items.length) * 100;
  const kind = /deploy/i.test(name) ? 'deploy' : /test/i.test(name) ? 'test' : 'build';
  if (average > limits[kind]) {
    findings.push(`${name}: average ${average.toFixed(1)} min exceeds ${limits[kind]} min`);
  }
  if (failureRate > Number(process.env.FAILURE_RATE_THRESHOLD)) {
    findings.push(`${name}: failure rate ${failureRate.toFixed(1)}%`);
  }
}
core.setOutput('needs-optimization', String(findings.length > 0));
core.setOutput('findings', findings.join('\\n'));
"""

FAILURE_ANALYSIS_SCRIPT = """\
const run = context.payload.workflow_run;
if (!run) {
  core.setOutput('retryable', 'true');
  core.setOutput('run-id', process.env.FAILED_WORKFLOW);
  return;
}
const jobs = await github.paginate(github.rest.actions.listJobsForWorkflowRun,
  {...context.repo, run_id: run.id});
const failed = jobs.filter(job => job.conclusion === 'failure');
const transient = /(timed? ?out|ETIMEDOUT|ECONNRESET|rate limit|503|502|network|runner .* lost)/i;
const retryable = failed.length > 0 && failed.every(job =>
  job.steps.some(step => step.conclusion === 'failure' && transient.test(step.name)) ||
  transient.test(job.name));
core.setOutput('retryable', String(retryable || run.run_attempt === 1));
core.setOutput('run-id', String(run.id));
core.setOutput('attempt', String(run.run_attempt));
core.setOutput('failed-jobs', failed.map(job => job.name).join(', '));
"""


class AgentHooksGenerator(BaseGenerator):
    """Generates the four agent-hooks automation workflows."""

    workflow_type = WorkflowType.AGENT_HOOKS
    filename = "agent-hooks-webhook-response.yml"

    def __init__(self, **kwargs):
        super().__init__(name="AgentHooksGenerator", **kwargs)
        self.hooks = self.config.agent_hooks

    def generate(self, resolved: ResolvedDetection, options: GenerationOptions, *args) -> List[WorkflowOutput]:
        ctx = self.create_context(resolved, options)
        self.log_step(f"Generating agent hooks workflows ({self.hooks.automation_level})")
        built = [
            ("agent-hooks-webhook-response.yml", self.webhook_response_workflow(ctx)),
            ("agent-hooks-dependency-updates.yml", self.dependency_update_workflow(ctx)),
            ("agent-hooks-performance-optimization.yml", self.performance_optimization_workflow(ctx)),
            ("agent-hooks-retry-recovery.yml", self.retry_recovery_workflow(ctx)),
        ]
        outputs = [self.render(workflow, ctx, filename=filename) for filename, workflow in built]
        self.log_success(f"Generated {len(outputs)} agent hooks workflows")
        return outputs

    @property
    def automation_env(self) -> Dict[str, str]:
        return {
            "AGENT_HOOKS_WEBHOOK_URL": self.hooks.webhook_url or "${{ secrets.AGENT_HOOKS_WEBHOOK_URL }}",
            "AUTOMATION_LEVEL": self.hooks.automation_level,
        }

    def _notify_step(self, event: str, status: str = "${{ job.status }}") -> Step:
        return Step(
            name="Notify agent webhook",
            if_="always() && env.AGENT_HOOKS_WEBHOOK_URL != ''",
            run=(
                "curl -fsS -X POST \"$AGENT_HOOKS_WEBHOOK_URL\" \\\n"
                "  -H 'Content-Type: application/json' \\\n"
                f"  -d \"{{\\\"event\\\": \\\"{event}\\\", \\\"status\\\": \\\"$STATUS\\\", "
                "\\\"repository\\\": \\\"$GITHUB_REPOSITORY\\\", \\\"run_id\\\": \\\"$GITHUB_RUN_ID\\\"}\""
            ),
            env={"STATUS": status},
            continue_on_error=True,
        )

    def _issue_step(self, name: str, title: str, body: str, labels: str, if_: str = None) -> Step:
        return Step(
            name=name,
            if_=if_,
            uses=self.steps.ref("actions/github-script"),
            with_={"script": OPEN_ISSUE_SCRIPT},
            env={"ISSUE_TITLE": title, "ISSUE_BODY": body, "ISSUE_LABELS": labels},
        )

    # Webhook response

    def webhook_response_workflow(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        workflow = Workflow(
            name="Agent Hooks - Webhook Response",
            description="Responds to repository events raised by the automation agent",
            triggers={
                "repository_dispatch": {"types": list(DISPATCH_EVENTS)},
                "issues": {"types": ["opened", "labeled"]},
                "pull_request": {"types": ["opened", "synchronize", "closed"], "branches": self.branches("develop")},
                "push": {
                    "branches": self.branches(),
                    "paths": ["README.md", ".github/workflows/**", "package.json", "requirements.txt",
                              "Cargo.toml", "go.mod"],
                },
            },
            permissions={"contents": "read", "actions": "write", "issues": "write"},
            env=self.automation_env,
        )

        readme = self.job(
            "readme-update-response",
            "Respond to README updates",
            if_="github.event.action == 'readme-updated' || github.event_name == 'push'",
        )
        readme.add_step(self.steps.checkout(fetch_depth=2))
        readme.add_step(Step(name="Analyze README changes", id="readme",
                             uses=self.steps.ref("actions/github-script"),
                             with_={"script": README_ANALYSIS_SCRIPT}))
        readme.add_step(self._issue_step(
            "Request workflow regeneration",
            "README changed: regenerate CI/CD workflows",
            "The project README changed. Re-run workflow generation to pick up new frameworks or targets.",
            "automation,ci/cd",
            if_="steps.readme.outputs.changed == 'true'",
        ))
        readme.add_step(self._notify_step("readme-updated"))
        workflow.add_job(readme)

        regression = self.job("performance-regression-response", "Respond to performance regressions",
                              if_="github.event.action == 'performance-regression'")
        regression.add_step(self._issue_step(
            "Open performance issue",
            "Performance regression detected",
            "${{ toJSON(github.event.client_payload) }}",
            "performance,automation",
        ))
        if self.hooks.automation_level != "minimal":
            regression.add_step(Step(
                name="Trigger optimization workflow",
                run="gh workflow run agent-hooks-performance-optimization.yml -f optimization-type=all",
                env=dict(GH_CLI_ENV),
            ))
        regression.add_step(self._notify_step("performance-regression"))
        workflow.add_job(regression)

        security = self.job("security-alert-response", "Respond to security alerts",
                            if_="github.event.action == 'security-alert'")
        security.add_step(self.steps.checkout())
        if self.hooks.automation_level != "minimal" and not tc.is_generic:
            security.add_steps(self.steps.setup_steps(tc))
            audit = self.steps.audit_step(tc)
            audit.continue_on_error = True
            security.add_step(audit)
        security.add_step(self._issue_step(
            "Open security issue",
            "Security alert: ${{ github.event.client_payload.package || 'dependency' }}",
            "${{ toJSON(github.event.client_payload) }}",
            "security,automation",
        ))
        security.add_step(self._notify_step("security-alert"))
        workflow.add_job(security)

        failure = self.job("workflow-failure-response", "Respond to workflow failures",
                           if_="github.event.action == 'workflow-failure'")
        failure.add_step(Step(
            name="Dispatch retry and recovery",
            run=("gh workflow run agent-hooks-retry-recovery.yml "
                 "-f failed-workflow=\"${{ github.event.client_payload.run_id }}\""),
            env=dict(GH_CLI_ENV),
        ))
        failure.add_step(self._notify_step("workflow-failure"))
        workflow.add_job(failure)

        optimization = self.job("optimization-response", "Record optimization opportunities",
                                if_="github.event.action == 'optimization-opportunity'")
        optimization.add_step(self._issue_step(
            "Open optimization issue",
            "Pipeline optimization opportunity",
            "${{ toJSON(github.event.client_payload) }}",
            "optimization,automation",
        ))
        workflow.add_job(optimization)

        triage = self.job("issue-triage", "Triage new issues", if_="github.event_name == 'issues'")
        triage.add_step(Step(name="Apply labels", uses=self.steps.ref("actions/github-script"),
                             with_={"script": TRIAGE_SCRIPT}))
        workflow.add_job(triage)
        return workflow

    # Dependency updates

    def dependency_update_workflow(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        workflow = Workflow(
            name="Agent Hooks - Intelligent Dependency Updates",
            description="Risk-assessed dependency updates",
            triggers={
                "schedule": [{"cron": "0 2 * * 1"}, {"cron": "0 14 * * *"}],
                "repository_dispatch": {"types": ["security-alert", "dependency-vulnerability"]},
                "workflow_dispatch": {"inputs": {
                    "update-type": dispatch_input("Type of dependency update", required=True, default="all",
                                                  options=["security", "patch", "minor", "major", "all"]),
                    "risk-level": dispatch_input("Risk tolerance for updates", default="moderate",
                                                 options=["conservative", "moderate", "aggressive"]),
                }},
            },
            permissions={"contents": "write", "pull-requests": "write", "actions": "write", "issues": "write"},
            concurrency={"group": "agent-hooks-dependencies", "cancel-in-progress": False},
            env=self.automation_env,
        )

        analysis = self.job("dependency-analysis", "Analyze dependencies",
                            outputs={"has-updates": "${{ steps.outdated.outputs.has-updates }}"})
        if tc.is_generic:
            analysis.add_step(self.steps.checkout())
        else:
            analysis.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
        outdated = OUTDATED_COMMANDS.get(tc.package_manager or "", "echo '[]' > outdated.json")
        analysis.add_step(Step(
            name="Identify update candidates",
            id="outdated",
            run=(
                f"{outdated}\n"
                "if [ -s outdated.json ] && [ \"$(cat outdated.json)\" != \"{}\" ] && "
                "[ \"$(cat outdated.json)\" != \"[]\" ] || [ -s outdated.txt ]; then\n"
                "  echo \"has-updates=true\" >> \"$GITHUB_OUTPUT\"\n"
                "else\n"
                "  echo \"has-updates=false\" >> \"$GITHUB_OUTPUT\"\n"
                "fi"
            ),
        ))
        analysis.add_step(self.steps.upload_artifact_step(tc, name="dependency-analysis",
                                                          path="outdated.*", retention_days=7))
        workflow.add_job(analysis)

        risk = self.job(
            "risk-assessment",
            "Assess update risk",
            needs=[analysis.id],
            if_=f"needs.{analysis.id}.outputs.has-updates == 'true'",
            outputs={"update-scope": "${{ steps.scope.outputs.scope }}"},
        )
        risk.add_step(Step(
            name="Choose update scope",
            id="scope",
            run=(
                "case \"${RISK_LEVEL:-moderate}\" in\n"
                "  conservative) scope=patch ;;\n"
                "  aggressive) scope=major ;;\n"
                "  *) scope=minor ;;\n"
                "esac\n"
                "if [ \"$GITHUB_EVENT_NAME\" = \"repository_dispatch\" ]; then scope=security; fi\n"
                "echo \"scope=${UPDATE_TYPE:-$scope}\" >> \"$GITHUB_OUTPUT\""
            ),
            env={"RISK_LEVEL": "${{ inputs.risk-level }}", "UPDATE_TYPE": "${{ inputs.update-type }}"},
        ))
        workflow.add_job(risk)

        update = self.job("automated-update", "Apply updates", needs=[risk.id],
                          outputs={"pull-request": "${{ steps.pr.outputs.pull-request-number }}"})
        update_command = UPDATE_COMMANDS.get(tc.package_manager or "")
        if tc.is_generic or not update_command:
            update.add_step(self.steps.checkout())
            update.add_step(Step(name="Apply updates",
                                 run="echo \"No package manager detected; dependency updates skipped\""))
        else:
            update.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            update.add_step(Step(name="Apply updates", run=update_command,
                                 env={"UPDATE_SCOPE": f"${{{{ needs.{risk.id}.outputs.update-scope }}}}"}))
            update.add_step(self.steps.test_step(tc))
        update.add_step(Step(
            name="Create update pull request",
            id="pr",
            uses=self.steps.ref("peter-evans/create-pull-request", tc),
            with_={
                "branch": "agent-hooks/dependency-updates",
                "title": f"chore(deps): ${{{{ needs.{risk.id}.outputs.update-scope }}}} dependency updates",
                "commit-message": "chore(deps): update dependencies",
                "labels": "dependencies,automation",
                "delete-branch": True,
            },
        ))
        update.add_step(self._notify_step("dependency-updates"))
        workflow.add_job(update)

        if self.hooks.automation_level == "full":
            merge = self.job(
                "update-validation",
                "Auto-merge safe updates",
                needs=[risk.id, update.id],
                if_=(f"needs.{update.id}.outputs.pull-request != '' && "
                     f"needs.{risk.id}.outputs.update-scope != 'major'"),
            )
            merge.add_step(Step(
                name="Enable auto-merge",
                run=f"gh pr merge --auto --squash \"${{{{ needs.{update.id}.outputs.pull-request }}}}\"",
                env=dict(GH_CLI_ENV),
            ))
            workflow.add_job(merge)
        return workflow

    # Performance optimization

    def performance_optimization_workflow(self, ctx: GenerationContext) -> Workflow:
        workflow = Workflow(
            name="Agent Hooks - Performance Optimization",
            description="Weekly pipeline performance review against configured thresholds",
            triggers={
                "schedule": [{"cron": "0 6 * * 0"}],
                "repository_dispatch": {"types": ["performance-regression", "workflow-slow", "resource-usage-high"]},
                "workflow_dispatch": {"inputs": {
                    "optimization-type": dispatch_input(
                        "Type of optimization to perform", required=True, default="all",
                        options=["build-time", "test-time", "resource-usage", "cache-optimization", "all"],
                    ),
                }},
            },
            permissions={"contents": "read", "actions": "write", "issues": "write"},
            env=self.automation_env,
        )

        analysis = self.job(
            "performance-analysis",
            "Analyze pipeline performance",
            outputs={
                "needs-optimization": "${{ steps.analyze.outputs.needs-optimization }}",
                "findings": "${{ steps.analyze.outputs.findings }}",
            },
        )
        analysis.add_step(Step(
            name="Analyze workflow runs",
            id="analyze",
            uses=self.steps.ref("actions/github-script"),
            with_={"script": PERFORMANCE_ANALYSIS_SCRIPT},
            env={
                "BUILD_TIME_THRESHOLD": str(self.hooks.build_time_threshold_minutes),
                "TEST_TIME_THRESHOLD": str(self.hooks.test_time_threshold_minutes),
                "DEPLOY_TIME_THRESHOLD": str(self.hooks.deploy_time_threshold_minutes),
                "FAILURE_RATE_THRESHOLD": str(self.hooks.failure_rate_threshold),
                "RESOURCE_USAGE_THRESHOLD": str(self.hooks.resource_usage_threshold),
            },
        ))
        workflow.add_job(analysis)

        report = self.job(
            "optimization-report",
            "Report optimization opportunities",
            needs=[analysis.id],
            if_=f"needs.{analysis.id}.outputs.needs-optimization == 'true'",
        )
        report.add_step(self._issue_step(
            "Open optimization issue",
            "Pipeline performance below thresholds",
            f"${{{{ needs.{analysis.id}.outputs.findings }}}}",
            "optimization,automation",
        ))
        if self.hooks.automation_level != "minimal":
            report.add_step(Step(
                name="Raise optimization event",
                run=("gh api repos/${{ github.repository }}/dispatches "
                     "-f event_type=optimization-opportunity"),
                env=dict(GH_CLI_ENV),
            ))
        report.add_step(self._notify_step("optimization-opportunity"))
        workflow.add_job(report)
        return workflow

    # Retry and recovery

    def retry_recovery_workflow(self, ctx: GenerationContext) -> Workflow:
        workflow = Workflow(
            name="Agent Hooks - Intelligent Retry & Recovery",
            description="Retries transient failures and escalates the rest",
            triggers={
                "workflow_run": {"workflows": list(WATCHED_WORKFLOWS), "types": ["completed"]},
                "repository_dispatch": {"types": ["workflow-failure", "test-failure", "deployment-failure"]},
                "workflow_dispatch": {"inputs": {
                    "failed-workflow": dispatch_input("Failed workflow run id to retry", required=True),
                    "retry-strategy": dispatch_input(
                        "Retry strategy to use", default="exponential-backoff",
                        options=["immediate", "exponential-backoff", "fixed-delay", "intelligent"],
                    ),
                }},
            },
            permissions={"contents": "read", "actions": "write", "issues": "write"},
            env=self.automation_env,
        )

        analysis = self.job(
            "failure-analysis",
            "Analyze failure",
            if_="github.event_name != 'workflow_run' || github.event.workflow_run.conclusion == 'failure'",
            outputs={
                "retryable": "${{ steps.analyze.outputs.retryable }}",
                "run-id": "${{ steps.analyze.outputs.run-id }}",
                "attempt": "${{ steps.analyze.outputs.attempt }}",
                "failed-jobs": "${{ steps.analyze.outputs.failed-jobs }}",
            },
        )
        analysis.add_step(Step(
            name="Classify failure",
            id="analyze",
            uses=self.steps.ref("actions/github-script"),
            with_={"script": FAILURE_ANALYSIS_SCRIPT},
            env={"FAILED_WORKFLOW": "${{ inputs.failed-workflow || github.event.client_payload.run_id }}"},
        ))
        workflow.add_job(analysis)

        retry = self.job(
            "intelligent-retry",
            "Retry failed jobs",
            needs=[analysis.id],
            if_=(f"needs.{analysis.id}.outputs.retryable == 'true' && "
                 f"(needs.{analysis.id}.outputs.attempt == '' || needs.{analysis.id}.outputs.attempt < 3)"),
        )
        retry.add_step(Step(
            name="Back off before retrying",
            run=(
                "case \"${RETRY_STRATEGY:-exponential-backoff}\" in\n"
                "  immediate) delay=0 ;;\n"
                "  fixed-delay) delay=60 ;;\n"
                "  *) delay=$(( 30 * (2 ** ${ATTEMPT:-1}) )) ;;\n"
                "esac\n"
                "sleep \"$delay\""
            ),
            env={"RETRY_STRATEGY": "${{ inputs.retry-strategy }}",
                 "ATTEMPT": f"${{{{ needs.{analysis.id}.outputs.attempt }}}}"},
        ))
        retry.add_step(Step(
            name="Re-run failed jobs",
            run=f"gh run rerun \"${{{{ needs.{analysis.id}.outputs.run-id }}}}\" --failed",
            env=dict(GH_CLI_ENV),
        ))
        workflow.add_job(retry)

        recovery = self.job(
            "recovery-implementation",
            "Escalate persistent failures",
            needs=[analysis.id],
            if_=f"needs.{analysis.id}.outputs.retryable == 'false'",
        )
        recovery.add_step(self._issue_step(
            "Open failure analysis issue",
            "Persistent workflow failure",
            (f"Run ${{{{ needs.{analysis.id}.outputs.run-id }}}} failed in: "
             f"${{{{ needs.{analysis.id}.outputs.failed-jobs }}}}"),
            "bug,automation",
        ))
        recovery.add_step(self._notify_step("workflow-failure", status="escalated"))
        workflow.add_job(recovery)

        ctx.optimize("Transient failures retried with backoff before escalation")
        return workflow
