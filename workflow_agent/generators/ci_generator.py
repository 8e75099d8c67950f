"""
CI Generator - builds the continuous integration workflow.
"""

from ..core.errors import TemplateFallbackWarning
from ..models.options import OptimizationLevel, WorkflowType
from ..models.workflow import Job, Step, Workflow
from .base_generator import GenerationContext, WorkflowGenerator
from .step_library import VERSION_INPUTS

CODEQL_LANGUAGES = {
    "javascript": "javascript-typescript",
    "python": "python",
    "go": "go",
    "java": "java-kotlin",
    "ruby": "ruby",
    "csharp": "csharp",
}


class CIGenerator(WorkflowGenerator):
    """Generates ci.yml: lint, build, test and optional security scanning."""

    workflow_type = WorkflowType.CI
    filename = "ci.yml"

    def __init__(self, **kwargs):
        super().__init__(name="CIGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        branches = self.branches("develop")
        paths_ignore = ["docs/**", "**.md"]
        workflow = Workflow(
            name="Continuous Integration",
            description=f"Build and test pipeline for {ctx.resolved.project_name}",
            triggers={
                "push": {"branches": branches, "paths-ignore": paths_ignore},
                "pull_request": {"branches": branches, "paths-ignore": paths_ignore},
                "workflow_dispatch": {},
            },
            concurrency={"group": "ci-${{ github.ref }}", "cancel-in-progress": True},
            permissions=self.least_privilege(ctx),
        )
        ctx.optimize("Concurrency group cancels superseded runs")
        ctx.optimize("Documentation-only changes skip CI")

        if ctx.toolchain.is_generic or not self.steps.setup_steps(ctx.toolchain):
            workflow.add_job(self._generic_job(ctx))
            return workflow

        lint = self._lint_job(ctx)
        if lint:
            workflow.add_job(lint)
        workflow.add_job(self._build_job(ctx, needs=[lint.id] if lint else []))

        if ctx.options.enterprise:
            codeql = self._codeql_job(ctx)
            if codeql:
                workflow.add_job(codeql)
        return workflow

    def _lint_job(self, ctx: GenerationContext):
        if ctx.options.optimization_level is OptimizationLevel.BASIC:
            return None
        lint = self.steps.lint_step(ctx.toolchain)
        if lint is None:
            return None
        job = self.job("lint", "Lint", comment="Static analysis runs before the build")
        job.add_steps(self.steps.prepare_steps(ctx.toolchain, caching=ctx.options.caching_enabled))
        job.add_step(lint)
        return job

    def _build_job(self, ctx: GenerationContext, needs) -> Job:
        tc = ctx.toolchain
        job = self.job("build-and-test", f"Build and test {tc.display_name}", needs=needs,
                       comment="Install, build and test the project")
        version = None

        if ctx.options.use_matrix:
            versions = self.steps.matrix_versions(tc)
            if len(versions) > 1:
                key = VERSION_INPUTS[tc.language]
                job.strategy = {"fail-fast": False, "matrix": {key: versions}}
                version = f"${{{{ matrix.{key} }}}}"
                job.name = f"Build and test {tc.display_name} ({key} ${{{{ matrix.{key} }}}})"
                ctx.optimize(f"Matrix build across {len(versions)} {tc.language} versions")

        job.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled, version=version))
        if ctx.options.caching_enabled and self.steps.cache_step(tc):
            ctx.optimize("Dependency caching keyed by lockfile hash")

        job.add_step(self.steps.build_step(tc))
        job.add_step(self.steps.test_step(tc))

        # Enterprise makes the audit mandatory; otherwise it's skipped on basic
        if ctx.options.enterprise or ctx.options.optimization_level is not OptimizationLevel.BASIC:
            job.add_step(self.steps.audit_step(tc))

        if ctx.options.caching_enabled:
            upload = self.steps.upload_artifact_step(tc)
            if job.strategy:
                key = next(iter(job.strategy["matrix"]))
                upload.if_ = f"matrix.{key} == '{job.strategy['matrix'][key][-1]}'"
            job.add_step(upload)
        return job

    def _codeql_job(self, ctx: GenerationContext):
        language = CODEQL_LANGUAGES.get(ctx.toolchain.language or "")
        if language is None:
            return None
        job = self.job(
            "codeql",
            "CodeQL analysis",
            permissions={"contents": "read", "security-events": "write", "actions": "read"},
        )
        job.add_step(self.steps.checkout())
        job.add_step(Step(name="Initialize CodeQL", uses=self.steps.ref("github/codeql-action/init"),
                          with_={"languages": language}))
        job.add_step(Step(name="Perform CodeQL analysis", uses=self.steps.ref("github/codeql-action/analyze"),
                          with_={"category": f"/language:{language}"}))
        ctx.optimize("CodeQL static analysis for enterprise security level")
        return job

    def _generic_job(self, ctx: GenerationContext) -> Job:
        ctx.warn(TemplateFallbackWarning("Generic CI template used - no supported language detected"))
        job = self.job("build", "Build", comment="Generic build; replace with project-specific steps")
        job.add_step(self.steps.checkout())
        job.add_step(Step(
            name="Build",
            run=(
                "if [ -f Makefile ]; then\n"
                "  make build\n"
                "else\n"
                "  echo \"No build system detected\"\n"
                "fi"
            ),
        ))
        job.add_step(Step(
            name="Run tests",
            run=(
                "if [ -f Makefile ]; then\n"
                "  make test\n"
                "else\n"
                "  echo \"No test command configured\"\n"
                "fi"
            ),
        ))
        if ctx.options.enterprise:
            job.add_step(self.steps.audit_step(ctx.toolchain))
        return job
