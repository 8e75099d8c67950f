"""Tests for the dependency graph, template cache, renderer and helpers."""

import threading

import pytest
import yaml

from workflow_agent.core.errors import CyclicDependencyError


class TestDependencyGraph:
    """Test topological ordering and cycle detection."""

    def test_dependencies_come_first(self):
        """Test every node follows its dependencies."""
        from workflow_agent.core.graph import DependencyGraph

        graph = DependencyGraph()
        graph.add_dependency("web", "ui-kit")
        graph.add_dependency("web", "api-client")
        graph.add_dependency("api-client", "schema")

        order = graph.topological_order()

        assert order.index("ui-kit") < order.index("web")
        assert order.index("schema") < order.index("api-client") < order.index("web")

    def test_priority_breaks_ties(self):
        """Test the priority list orders independent nodes."""
        from workflow_agent.core.graph import DependencyGraph

        graph = DependencyGraph()
        for name in ("a", "b", "c"):
            graph.add_node(name)

        assert graph.topological_order(["c", "a"]) == ["c", "a", "b"]

    def test_cycle_raises_with_path(self):
        """Test a cycle is reported with the offending path."""
        from workflow_agent.core.graph import DependencyGraph

        graph = DependencyGraph(component="monorepo")
        graph.add_dependency("a", "b")
        graph.add_dependency("b", "c")
        graph.add_dependency("c", "a")

        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.topological_order()

        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}
        assert "Cyclic dependency detected" in exc_info.value.message

    def test_levels(self):
        """Test nodes are grouped by dependency depth."""
        from workflow_agent.core.graph import DependencyGraph

        graph = DependencyGraph()
        graph.add_dependency("app", "lib")
        graph.add_dependency("lib", "core")
        graph.add_node("docs")

        assert graph.levels() == [["core", "docs"], ["lib"], ["app"]]

    def test_dependents_are_transitive(self):
        """Test dependents include indirect ones."""
        from workflow_agent.core.graph import DependencyGraph

        graph = DependencyGraph()
        graph.add_dependency("lib", "core")
        graph.add_dependency("app", "lib")

        assert sorted(graph.dependents("core")) == ["app", "lib"]
        assert graph.dependencies("app") == ["lib"]


class TestTemplateCache:
    """Test action reference caching."""

    def test_setup_action_per_language(self):
        """Test known languages resolve to their setup action."""
        from workflow_agent.core.template_cache import TemplateCache

        cache = TemplateCache()

        assert cache.setup_action("python").ref == "actions/setup-python@v5"
        assert cache.setup_action("typescript").ref == "actions/setup-node@v4"
        assert cache.setup_action("cobol") is None

    def test_hits_and_misses(self):
        """Test repeated lookups are served from the cache."""
        from workflow_agent.core.template_cache import TemplateCache

        cache = TemplateCache()
        first = cache.resolve("javascript", "react", "actions/cache")
        second = cache.resolve("javascript", "react", "actions/cache")

        assert first is second
        assert cache.misses == 1
        assert cache.hits == 1
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_unknown_action_is_pinned(self):
        """Test an unknown action still gets a major version."""
        from workflow_agent.core.template_cache import TemplateCache

        ref = TemplateCache().resolve(None, None, "acme/deploy-action")

        assert ref.ref == "acme/deploy-action@v1"
        assert ref.fallback

    def test_concurrent_resolution(self):
        """Test concurrent lookups agree on the reference."""
        from workflow_agent.core.template_cache import TemplateCache

        cache = TemplateCache()
        refs = []

        def lookup():
            refs.append(cache.ref("actions/checkout", "go"))

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert set(refs) == {"actions/checkout@v4"}
        assert len(cache) == 1

    def test_counters_account_for_every_lookup(self):
        """Test hit and miss counters stay consistent under concurrent lookups."""
        from workflow_agent.core.template_cache import TemplateCache

        cache = TemplateCache()

        def lookup():
            for _ in range(200):
                cache.ref("actions/checkout", "go")

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.hits + cache.misses == 1600
        assert cache.misses >= 1

    def test_rust_setup_is_version_pinned(self):
        """Test the Rust setup action is pinned to a release tag."""
        from workflow_agent.core.template_cache import TemplateCache

        assert TemplateCache().setup_action("rust").ref == "actions-rust-lang/setup-rust-toolchain@v1"


class TestRenderer:
    """Test YAML rendering."""

    @pytest.fixture
    def workflow(self):
        from workflow_agent.models.workflow import Job, Step, Workflow

        workflow = Workflow(
            name="Build",
            description="Build pipeline",
            triggers={"push": {"branches": ["main"]}},
        )
        job = Job(id="build", name="Build", comment="Compile everything")
        job.add_step(Step(name="Checkout", uses="actions/checkout@v4"))
        job.add_step(Step(name="Compile", run="make\nmake install"))
        workflow.add_job(job)
        return workflow

    def test_on_key_is_unquoted(self, workflow):
        """Test the trigger key renders as a bare `on`."""
        from workflow_agent.core.renderer import render_workflow

        text = render_workflow(workflow)

        assert "\non:\n" in text
        assert "'on':" not in text

    def test_multiline_run_uses_literal_block(self, workflow):
        """Test multi-line commands render as literal blocks."""
        from workflow_agent.core.renderer import render_workflow

        text = render_workflow(workflow)

        assert "run: |" in text
        assert yaml.safe_load(text)["jobs"]["build"]["steps"][1]["run"] == "make\nmake install"

    def test_header_and_job_comments(self, workflow):
        """Test comments are added only when requested."""
        from workflow_agent.core.renderer import render_workflow

        with_comments = render_workflow(workflow, generator_version="2.1.0")
        without = render_workflow(workflow, include_comments=False)

        assert with_comments.startswith("# Build\n# Build pipeline\n")
        assert "workflow-agent 2.1.0" in with_comments
        assert "  # Compile everything" in with_comments
        assert "#" not in without.split("\n")[0]
        assert "Compile everything" not in without

    def test_rendering_is_deterministic(self, workflow):
        """Test rendering the same workflow twice yields identical text."""
        from workflow_agent.core.renderer import render_workflow

        assert render_workflow(workflow) == render_workflow(workflow)

    def test_key_order_preserved(self, workflow):
        """Test top-level keys keep GitHub's conventional order."""
        from workflow_agent.core.renderer import render_workflow

        lines = [l for l in render_workflow(workflow, include_comments=False).splitlines()
                 if l and not l.startswith((" ", "#"))]

        assert lines[:3] == ["name: Build", "on:", "jobs:"]


class TestHelpers:
    """Test helper utilities."""

    def test_slugify(self):
        """Test names become job-id safe slugs."""
        from workflow_agent.utils.helpers import slugify

        assert slugify("Production EU") == "production-eu"
        assert slugify("@scope/ui_kit") == "scope-ui-kit"
        assert slugify("!!!") == "unnamed"

    def test_env_var_name(self):
        """Test names become environment variable names."""
        from workflow_agent.utils.helpers import env_var_name

        assert env_var_name("api-gateway") == "API_GATEWAY"
        assert env_var_name("3d-render") == "_3D_RENDER"

    def test_parse_duration(self):
        """Test duration strings are converted to seconds."""
        from workflow_agent.utils.helpers import parse_duration

        assert parse_duration("30s") == 30
        assert parse_duration("5m") == 300
        assert parse_duration(45) == 45
        assert parse_duration(None, default=60) == 60
        with pytest.raises(ValueError):
            parse_duration("soon")

    def test_format_duration(self):
        """Test durations format compactly."""
        from workflow_agent.utils.helpers import format_duration, minutes_ceil

        assert format_duration(90) == "1m30s"
        assert format_duration(1800) == "30m"
        assert format_duration(3600) == "1h"
        assert minutes_ceil(61) == 2
        assert minutes_ceil(0) == 1
