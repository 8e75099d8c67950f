"""
Workflow Agent - Main Entry Point
CLI interface for the workflow generation engine.

Commands read a detection result JSON file (as produced by a project
analyzer) and write GitHub Actions workflows.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from workflow_agent.config import get_config
from workflow_agent.core.errors import WorkflowEngineError
from workflow_agent.core.file_manager import FileManager
from workflow_agent.core.logger import setup_logging
from workflow_agent.generators.yaml_generator import YAMLGenerator
from workflow_agent.models.options import GenerationOptions
from workflow_agent.models.workflow import WorkflowOutput

# CLI app
app = typer.Typer(
    name="workflow-agent",
    help="⚙️ Workflow Generation Engine - detection results in, GitHub Actions workflows out",
    add_completion=False,
)

console = Console()

DETECTION_HELP = "Detection result JSON file"
OUTPUT_DIR_OPTION = typer.Option(None, "--output-dir", "-o", help="Directory to write workflows to")
DRY_RUN_OPTION = typer.Option(False, "--dry-run", help="Print workflows instead of writing them")
FORMAT_OPTION = typer.Option("yaml", "--format", "-f", help="Output format: yaml or json")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose output")


def print_header():
    """Print the application header."""
    console.print(Panel.fit(
        "[bold blue]Workflow Generation Engine[/bold blue]\n"
        "[dim]GitHub Actions from project detection results[/dim]",
        border_style="blue",
    ))


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in ("yaml", "json"):
        console.print(f"[red]Error:[/red] Unsupported format '{fmt}' (use yaml or json)")
        raise typer.Exit(2)
    return fmt


def _report_config_issues() -> None:
    issues = get_config().validate()
    if issues:
        console.print("[yellow]Configuration warnings:[/yellow]")
        for issue in issues:
            console.print(f"  • {issue}")
        console.print()


def _build_options(
    workflow_type: str = "ci",
    optimization: str = "standard",
    security: str = "standard",
    comments: bool = True,
    agent_hooks: bool = False,
    environment_management: Optional[dict] = None,
) -> GenerationOptions:
    builder = (
        GenerationOptions.builder()
        .workflow_type(workflow_type)
        .optimization_level(optimization)
        .security_level(security)
        .include_comments(comments)
        .agent_hooks_enabled(agent_hooks)
    )
    if environment_management:
        builder.environment_management(environment_management)
    return builder.build()


async def _emit(
    outputs: List[WorkflowOutput],
    output_dir: Optional[Path],
    dry_run: bool,
    fmt: str,
) -> None:
    """Write workflows, or print them on a dry run."""
    if dry_run:
        for output in outputs:
            if fmt == "json":
                typer.echo(json.dumps(output.to_dict(), indent=2))
            else:
                typer.echo(f"# --- {output.filename} ---")
                typer.echo(output.content)
        _print_outputs(outputs, written=None)
        return

    target = output_dir or get_config().output_dir
    written = await FileManager().write_workflows(outputs, target, fmt=fmt)
    _print_outputs(outputs, written=written)


def _run(coro: Any, verbose: bool) -> Any:
    """Run a command coroutine, turning engine errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except WorkflowEngineError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        if verbose and e.details:
            console.print(f"[dim]{json.dumps(e.details, default=str)}[/dim]")
        raise typer.Exit(1)
    except (OSError, json.JSONDecodeError) as e:
        if verbose:
            console.print_exception()
        else:
            console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def generate(
    detection_file: Path = typer.Argument(..., help=DETECTION_HELP, exists=True, dir_okay=False),
    workflow_type: str = typer.Option("ci", "--type", "-t", help="Workflow type (ci, cd, security, ...)"),
    optimization: str = typer.Option("standard", "--optimization", help="basic, standard or aggressive"),
    security: str = typer.Option("standard", "--security", help="standard or enterprise"),
    comments: bool = typer.Option(True, "--comments/--no-comments", help="Include header comments"),
    output_dir: Optional[Path] = OUTPUT_DIR_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    fmt: str = FORMAT_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    📄 Generate a single workflow.

    Example:
        workflow-agent generate detection.json --type ci
        workflow-agent generate detection.json --type security --security enterprise --dry-run
        workflow-agent generate detection.json --type release --output-dir .github/workflows
    """
    setup_logging(verbose)
    fmt = _check_format(fmt)

    async def run():
        options = _build_options(workflow_type, optimization, security, comments)
        detection = await FileManager().read_json(detection_file)
        output = await YAMLGenerator().generate_workflow(detection, options)
        await _emit([output], output_dir, dry_run, fmt)

    _run(run(), verbose)


@app.command()
def suite(
    detection_file: Path = typer.Argument(..., help=DETECTION_HELP, exists=True, dir_okay=False),
    optimization: str = typer.Option("standard", "--optimization", help="basic, standard or aggressive"),
    security: str = typer.Option("standard", "--security", help="standard or enterprise"),
    agent_hooks: bool = typer.Option(False, "--agent-hooks", help="Also generate agent hooks workflows"),
    output_dir: Optional[Path] = OUTPUT_DIR_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    fmt: str = FORMAT_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    📦 Generate the complete workflow suite.

    Generates CI, CD, security, performance, testing, monitoring and
    maintenance workflows (plus agent hooks with --agent-hooks). A failing
    generator is reported without stopping the others.
    """
    print_header()
    setup_logging(verbose)
    _report_config_issues()
    fmt = _check_format(fmt)

    async def run():
        options = _build_options(optimization=optimization, security=security, agent_hooks=agent_hooks)
        detection = await FileManager().read_json(detection_file)
        result = await YAMLGenerator().generate_complete_workflow_suite(detection, options)
        await _emit(result.outputs, output_dir, dry_run, fmt)
        return result

    result = _run(run(), verbose)
    if result.failures:
        console.print("\n[bold red]Failed generators:[/bold red]")
        for failure in result.failures:
            console.print(f"  ❌ {failure.workflow_type.value}: {failure.message}")
        raise typer.Exit(1)


@app.command()
def environments(
    detection_file: Path = typer.Argument(..., help=DETECTION_HELP, exists=True, dir_okay=False),
    environments_file: Path = typer.Argument(..., help="JSON list of environment configs", exists=True,
                                             dir_okay=False),
    secret_validation: bool = typer.Option(False, "--secret-validation", help="Check required secrets exist"),
    oidc: bool = typer.Option(False, "--oidc", help="Authenticate to the cloud with OIDC"),
    config_generation: bool = typer.Option(False, "--config-generation", help="Write a JSON config file"),
    env_files: bool = typer.Option(False, "--env-files", help="Write .env.{environment} files"),
    auto_detect_secrets: bool = typer.Option(False, "--auto-detect-secrets",
                                             help="Treat secret-looking variables as secrets"),
    output_dir: Optional[Path] = OUTPUT_DIR_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    fmt: str = FORMAT_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    🌍 Generate deploy, promotion and rollback workflows for environments.

    Example:
        workflow-agent environments detection.json environments.json --oidc
    """
    print_header()
    setup_logging(verbose)
    fmt = _check_format(fmt)

    async def run():
        options = _build_options(environment_management={
            "includeSecretValidation": secret_validation,
            "includeOIDC": oidc,
            "includeConfigGeneration": config_generation,
            "generateEnvFiles": env_files,
            "autoDetectSecrets": auto_detect_secrets,
        })
        files = FileManager()
        detection = await files.read_json(detection_file)
        envs = await files.read_json(environments_file)
        result = await YAMLGenerator().generate_multi_environment_workflows(detection, envs, options)
        await _emit(result.workflows, output_dir, dry_run, fmt)
        return result

    result = _run(run(), verbose)
    _print_environments(result)


@app.command()
def pattern(
    detection_file: Path = typer.Argument(..., help=DETECTION_HELP, exists=True, dir_okay=False),
    pattern_file: Path = typer.Argument(..., help="Pattern config JSON (monorepo, canary, ...)", exists=True,
                                        dir_okay=False),
    output_dir: Optional[Path] = OUTPUT_DIR_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    fmt: str = FORMAT_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    🧩 Generate workflows for an advanced pattern.

    Supported types: monorepo, microservices, canary, blue-green, feature-flags, orchestration.
    """
    print_header()
    setup_logging(verbose)
    fmt = _check_format(fmt)

    async def run():
        files = FileManager()
        detection = await files.read_json(detection_file)
        config = await files.read_json(pattern_file)
        outputs = await YAMLGenerator().generate_advanced_pattern_workflows(detection, config)
        await _emit(outputs, output_dir, dry_run, fmt)

    _run(run(), verbose)


@app.command()
def validate(
    workflow_files: List[Path] = typer.Argument(..., help="Workflow YAML files", exists=True, dir_okay=False),
    output_json: bool = typer.Option(False, "--json", help="Output results as JSON"),
    verbose: bool = VERBOSE_OPTION,
):
    """
    ✅ Validate workflow files and score their best practices.
    """
    setup_logging(verbose)
    generator = YAMLGenerator()
    failed = False

    for path in workflow_files:
        try:
            result = generator.validate_workflow(path.read_text(encoding="utf-8"))
        except WorkflowEngineError as e:
            console.print(f"[red]✗ {path}:[/red] {e.message}")
            failed = True
            continue

        failed = failed or not result.is_valid
        if output_json:
            typer.echo(json.dumps({"file": str(path), **result.to_dict()}, indent=2))
        else:
            _print_validation(path, result)

    if failed:
        raise typer.Exit(1)


def _print_outputs(outputs: List[WorkflowOutput], written: Optional[List[Path]]):
    """Print a summary table of generated workflows."""
    table = Table(title="Generated Workflows" if written is not None else "Generated Workflows (dry run)")
    table.add_column("File", style="cyan")
    table.add_column("Type")
    table.add_column("Jobs")
    table.add_column("Warnings", style="yellow")

    for output in outputs:
        jobs = len(output.workflow.jobs) if output.workflow else "-"
        table.add_row(output.filename, output.type.value, str(jobs), str(len(output.metadata.warnings)))

    console.print(table)

    warnings = []
    for output in outputs:
        for warning in output.metadata.warnings:
            if warning not in warnings:
                warnings.append(warning)
    if warnings:
        console.print("\n[bold]Warnings:[/bold]")
        for warning in warnings:
            console.print(f"  ⚠️ {warning}")

    if written:
        console.print(f"\n[bold green]Wrote {len(written)} files to {written[0].parent}[/bold green]")


def _print_environments(result):
    """Print derived environment configuration."""
    table = Table(title="Environments")
    table.add_column("Environment", style="cyan")
    table.add_column("Strategy")
    table.add_column("Approvals")
    table.add_column("Rollback")

    gates = {g.environment: g for g in result.approval_gates}
    for env in result.environments:
        gate = gates.get(env.name)
        rollback = result.rollback_configs.get(env.name)
        table.add_row(
            env.name,
            env.deployment_strategy.value,
            str(gate.required_approvals) if gate else "-",
            rollback.strategy if rollback else "disabled",
        )
    console.print(table)

    for pipeline in result.promotion_pipelines:
        mode = "auto" if pipeline.auto_promote else "manual"
        console.print(f"  ➡️ {pipeline.source_environment} → {pipeline.target_environment} ({mode})")


def _print_validation(path: Path, result):
    """Print a validation result."""
    color = "green" if result.is_valid else "red"
    status = "VALID" if result.is_valid else "INVALID"
    console.print(Panel(
        f"[bold {color}]{status}[/bold {color}]\n"
        f"Best-practices score: {result.score:.2f}",
        title=str(path),
        border_style=color,
    ))
    for error in result.errors:
        console.print(f"  ❌ {error}")
    for warning in result.warnings:
        console.print(f"  ⚠️ {warning}")
    for suggestion in result.suggestions:
        console.print(f"  💡 {suggestion}")


if __name__ == "__main__":
    app()
