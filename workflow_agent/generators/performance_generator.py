"""
Performance Generator - benchmarks, load testing and frontend audits.
"""

from ..models.options import WorkflowType
from ..models.workflow import Step, Workflow, dispatch_input
from .base_generator import GenerationContext, WorkflowGenerator
from .step_library import STATIC_FRAMEWORKS

BENCHMARK_COMMANDS = {
    "javascript": ("{run} benchmark --if-present", "benchmarkjs", "benchmark.txt"),
    "python": (
        "pip install pytest-benchmark\npytest --benchmark-only --benchmark-json=benchmark.json",
        "pytest",
        "benchmark.json",
    ),
    "go": ("go test -bench=. -benchmem -run='^$' ./... | tee benchmark.txt", "go", "benchmark.txt"),
    "rust": ("cargo bench | tee benchmark.txt", "cargo", "benchmark.txt"),
    "java": ("{build} -B verify -Pbenchmark -DskipTests", "jmh", "target/jmh-result.json"),
}

FRONTEND_FRAMEWORKS = STATIC_FRAMEWORKS + ("next.js", "nextjs", "nuxt")
SERVER_FRAMEWORKS = ("express", "nestjs", "django", "flask", "fastapi", "spring", "spring boot",
                     "gin", "echo", "actix", "rocket", "rails", "laravel")


class PerformanceGenerator(WorkflowGenerator):
    """Generates performance.yml."""

    workflow_type = WorkflowType.PERFORMANCE
    filename = "performance.yml"

    def __init__(self, **kwargs):
        super().__init__(name="PerformanceGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        workflow = Workflow(
            name="Performance Testing",
            description="Benchmarks with regression tracking, load tests and frontend audits",
            triggers={
                "push": {"branches": self.branches()},
                "pull_request": {"branches": self.branches()},
                "schedule": [{"cron": "0 4 * * *"}],
                "workflow_dispatch": {"inputs": {
                    "duration": dispatch_input("Load test duration", default="2m"),
                    "virtual-users": dispatch_input("Concurrent virtual users", default="20"),
                }},
            },
            permissions={"contents": "write", "deployments": "write", "pull-requests": "write"},
            concurrency={"group": "performance-${{ github.ref }}", "cancel-in-progress": True},
        )

        bench = self.job("benchmarks", f"Benchmark {tc.display_name}")
        benchmark = BENCHMARK_COMMANDS.get(tc.language or "")
        if benchmark is None:
            bench.add_step(self.steps.checkout())
            bench.add_step(Step(
                name="Run benchmarks",
                run="if [ -f Makefile ]; then make benchmark; else echo \"No benchmark suite configured\"; fi",
            ))
        else:
            command, tool, output = benchmark
            bench.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            bench.add_step(Step(name="Run benchmarks", run=tc.fill(command)))
            bench.add_step(Step(
                name="Track benchmark regressions",
                uses=self.steps.ref("benchmark-action/github-action-benchmark", tc),
                with_={
                    "tool": tool,
                    "output-file-path": output,
                    "github-token": "${{ secrets.GITHUB_TOKEN }}",
                    "auto-push": "${{ github.event_name == 'push' }}",
                    "alert-threshold": "150%",
                    "comment-on-alert": True,
                    "fail-on-alert": ctx.options.enterprise,
                },
            ))
            ctx.optimize("Benchmark results tracked across commits")
        workflow.add_job(bench)

        if tc.framework in SERVER_FRAMEWORKS or (not tc.is_generic and tc.framework not in FRONTEND_FRAMEWORKS):
            load = self.job("load-test", "Load test", if_="github.event_name != 'pull_request'")
            load.add_step(self.steps.checkout())
            load.add_step(Step(name="Set up k6", uses=self.steps.ref("grafana/setup-k6-action", tc)))
            load.add_step(Step(
                name="Run load test",
                run=(
                    "if [ -f tests/load/script.js ]; then\n"
                    "  k6 run --vus \"$VUS\" --duration \"$DURATION\" tests/load/script.js\n"
                    "else\n"
                    "  echo \"No k6 script found at tests/load/script.js\"\n"
                    "fi"
                ),
                env={
                    "VUS": "${{ inputs.virtual-users || '20' }}",
                    "DURATION": "${{ inputs.duration || '2m' }}",
                    "BASE_URL": "${{ vars.PERFORMANCE_TARGET_URL }}",
                },
            ))
            workflow.add_job(load)

        if tc.framework in FRONTEND_FRAMEWORKS:
            lighthouse = self.job("lighthouse", "Lighthouse audit", needs=["benchmarks"])
            lighthouse.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            lighthouse.add_step(self.steps.build_step(tc))
            lighthouse.add_step(Step(
                name="Run Lighthouse CI",
                uses=self.steps.ref("treosh/lighthouse-ci-action", tc),
                with_={"configPath": "./lighthouserc.json", "uploadArtifacts": True,
                       "temporaryPublicStorage": True},
            ))
            workflow.add_job(lighthouse)
            ctx.optimize("Lighthouse audits frontend performance budgets")
        return workflow
