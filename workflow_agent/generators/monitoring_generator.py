"""
Monitoring Generator - scheduled health checks, pipeline metrics and alerting.
"""

from ..models.options import WorkflowType
from ..models.workflow import Step, Workflow
from .base_generator import GenerationContext, WorkflowGenerator

COLLECT_METRICS_SCRIPT = """\
const run = context.payload.workflow_run;
const started = new Date(run.run_started_at);
const finished = new Date(run.updated_at);
const minutes = ((finished - started) / 60000).toFixed(1);
core.summary
  .addHeading(`Pipeline metrics: ${run.name}`)
  .addTable([
    [{data: 'Conclusion', header: true}, {data: 'Duration (min)', header: true}, {data: 'Attempt', header: true}],
    [run.conclusion, minutes, String(run.run_attempt)],
  ]);
await core.summary.write();
core.setOutput('duration-minutes', minutes);
core.setOutput('conclusion', run.conclusion);
"""

OPEN_ISSUE_SCRIPT = """\
const title = `Monitoring alert: ${process.env.ALERT_SOURCE}`;
const body = `Run ${context.runId} reported a failure.\\n\\n${context.serverUrl}/${context.repo.owner}/${context.repo.repo}/actions/runs/${context.runId}`;
const open = await github.rest.issues.listForRepo({...context.repo, state: 'open', labels: 'monitoring'});
if (!open.data.some(issue => issue.title === title)) {
  await github.rest.issues.create({...context.repo, title, body, labels: ['monitoring']});
}
"""


class MonitoringGenerator(WorkflowGenerator):
    """Generates monitoring.yml."""

    workflow_type = WorkflowType.MONITORING
    filename = "monitoring.yml"

    def __init__(self, **kwargs):
        super().__init__(name="MonitoringGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        workflow = Workflow(
            name="Monitoring and Observability",
            description="Scheduled health checks, pipeline metrics and alerting",
            triggers={
                "schedule": [{"cron": "*/15 * * * *"}],
                "workflow_run": {
                    "workflows": ["Continuous Integration", "Continuous Deployment"],
                    "types": ["completed"],
                },
                "workflow_dispatch": {},
            },
            permissions={"contents": "read", "actions": "read", "issues": "write"},
        )

        health = self.job("health-check", "Service health check", if_="github.event_name != 'workflow_run'")
        health.add_steps(self.steps.health_check_steps("production", url_expression="${{ vars.DEPLOYMENT_URL }}"))
        health.steps[0].run = health.steps[0].run.replace("sleep 30\n", "", 1)
        health.add_step(Step(
            name="Record response time",
            run=(
                "curl -o /dev/null -s -w 'response_time=%{time_total}\\n' \"$HEALTH_URL\" "
                ">> \"$GITHUB_STEP_SUMMARY\""
            ),
            env={"HEALTH_URL": "${{ vars.DEPLOYMENT_URL }}"},
        ))
        workflow.add_job(health)

        metrics = self.job(
            "workflow-metrics",
            "Collect pipeline metrics",
            if_="github.event_name == 'workflow_run'",
            outputs={"conclusion": "${{ steps.metrics.outputs.conclusion }}"},
        )
        metrics.add_step(Step(name="Collect run metrics", id="metrics",
                              uses=self.steps.ref("actions/github-script"),
                              with_={"script": COLLECT_METRICS_SCRIPT}))
        workflow.add_job(metrics)

        alert = self.job(
            "alert",
            "Raise alerts",
            needs=["health-check", "workflow-metrics"],
            if_=("always() && (needs.health-check.result == 'failure' || "
                 "needs.workflow-metrics.outputs.conclusion == 'failure')"),
        )
        alert.add_step(Step(
            name="Notify Slack",
            if_="env.SLACK_WEBHOOK_URL != ''",
            uses=self.steps.ref("slackapi/slack-github-action"),
            with_={"payload": '{"text": "Monitoring alert for ${{ github.repository }}"}'},
            env={"SLACK_WEBHOOK_URL": "${{ secrets.SLACK_WEBHOOK_URL }}",
                 "SLACK_WEBHOOK_TYPE": "INCOMING_WEBHOOK"},
        ))
        alert.add_step(Step(
            name="Open tracking issue",
            uses=self.steps.ref("actions/github-script"),
            with_={"script": OPEN_ISSUE_SCRIPT},
            env={"ALERT_SOURCE": "${{ github.event.workflow_run.name || 'health-check' }}"},
        ))
        alert.env = {"SLACK_WEBHOOK_URL": "${{ secrets.SLACK_WEBHOOK_URL }}"}
        workflow.add_job(alert)

        ctx.optimize("Alerts deduplicated through a single open monitoring issue")
        return workflow
