"""
Security Generator - dependency, code and secret scanning workflow.
"""

from ..core.errors import TemplateFallbackWarning
from ..models.options import WorkflowType
from ..models.workflow import Step, Workflow
from .base_generator import GenerationContext, WorkflowGenerator
from .ci_generator import CODEQL_LANGUAGES
from .step_library import CONTAINER_TARGETS

# CodeQL needs an explicit build for compiled languages
COMPILED_LANGUAGES = ("java", "csharp", "go")


class SecurityGenerator(WorkflowGenerator):
    """Generates security.yml."""

    workflow_type = WorkflowType.SECURITY
    filename = "security.yml"

    def __init__(self, **kwargs):
        super().__init__(name="SecurityGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        enterprise = ctx.options.enterprise
        workflow = Workflow(
            name="Security Scanning",
            description="Dependency, code and secret scanning",
            triggers={
                "push": {"branches": self.branches()},
                "pull_request": {"branches": self.branches()},
                "schedule": [{"cron": "0 3 * * 1"}],
                "workflow_dispatch": {},
            },
            permissions={"contents": "read", "security-events": "write", "pull-requests": "read"},
        )

        audit = self.job("dependency-audit", "Dependency audit")
        if tc.is_generic:
            audit.add_step(self.steps.checkout())
        else:
            audit.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
        audit.add_step(self.steps.audit_step(tc))
        workflow.add_job(audit)

        review = self.job("dependency-review", "Dependency review", if_="github.event_name == 'pull_request'")
        review.add_step(self.steps.checkout())
        review.add_step(Step(
            name="Review dependency changes",
            uses=self.steps.ref("actions/dependency-review-action"),
            with_={"fail-on-severity": "moderate" if enterprise else "high"},
        ))
        workflow.add_job(review)

        codeql_language = CODEQL_LANGUAGES.get(tc.language or "")
        if codeql_language:
            codeql = self.job("codeql", "CodeQL analysis", permissions={
                "contents": "read", "security-events": "write", "actions": "read",
            })
            codeql.add_step(self.steps.checkout())
            codeql.add_step(Step(
                name="Initialize CodeQL",
                uses=self.steps.ref("github/codeql-action/init"),
                with_={"languages": codeql_language,
                       "queries": "security-extended" if enterprise else "security-and-quality"},
            ))
            if tc.language in COMPILED_LANGUAGES:
                codeql.add_steps(self.steps.setup_steps(tc))
                codeql.add_step(self.steps.install_step(tc))
                codeql.add_step(self.steps.build_step(tc))
            codeql.add_step(Step(
                name="Perform CodeQL analysis",
                uses=self.steps.ref("github/codeql-action/analyze"),
                with_={"category": f"/language:{codeql_language}"},
            ))
            workflow.add_job(codeql)
        else:
            ctx.warn(TemplateFallbackWarning(
                f"CodeQL does not support '{tc.language or 'unknown'}' - code scanning skipped"
            ))

        secrets = self.job("secret-scan", "Secret scanning")
        secrets.add_step(self.steps.checkout(fetch_depth=0))
        secrets.add_step(Step(
            name="Scan for leaked secrets",
            uses=self.steps.ref("gitleaks/gitleaks-action"),
            env={"GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}"},
        ))
        workflow.add_job(secrets)

        if enterprise:
            self._add_enterprise_jobs(workflow, ctx)
        return workflow

    def _add_enterprise_jobs(self, workflow: Workflow, ctx: GenerationContext) -> None:
        sast = self.job("sast", "Static application security testing")
        sast.add_step(self.steps.checkout())
        sast.add_step(Step(
            name="Run Semgrep",
            run="pip install semgrep\nsemgrep ci --sarif --output semgrep.sarif",
            env={"SEMGREP_APP_TOKEN": "${{ secrets.SEMGREP_APP_TOKEN }}"},
        ))
        sast.add_step(Step(
            name="Upload SARIF results",
            if_="always()",
            uses=self.steps.ref("github/codeql-action/upload-sarif"),
            with_={"sarif_file": "semgrep.sarif"},
        ))
        workflow.add_job(sast)

        licenses = self.job("license-compliance", "License compliance")
        licenses.add_step(self.steps.checkout())
        licenses.add_step(Step(
            name="Check dependency licenses",
            uses=self.steps.ref("fossa-contrib/fossa-action"),
            with_={"api-key": "${{ secrets.FOSSA_API_KEY }}"},
        ))
        workflow.add_job(licenses)

        if ctx.resolved.has_target(*CONTAINER_TARGETS):
            image = self.job("container-scan", "Container image scan")
            image.add_step(self.steps.checkout())
            image.add_step(Step(
                name="Scan container image",
                run=(
                    "docker build -t app:scan .\n"
                    "docker run --rm -v /var/run/docker.sock:/var/run/docker.sock "
                    "aquasec/trivy:latest image --exit-code 1 --severity HIGH,CRITICAL app:scan"
                ),
            ))
            workflow.add_job(image)

        ctx.optimize("Enterprise scanning adds SAST and license compliance")
