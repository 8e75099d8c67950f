"""
Base Generator class for workflow generation.
All workflow generators inherit from this base.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..config import Config, get_config
from ..core.conflict_resolver import ResolvedDetection
from ..core.errors import GenerationWarning, TemplateFallbackWarning
from ..core.logger import GeneratorLogger
from ..core.renderer import render_workflow
from ..models.options import GenerationOptions, WorkflowType
from ..models.workflow import Job, Workflow, WorkflowMetadata, WorkflowOutput
from .step_library import StepLibrary, Toolchain


@dataclass
class GenerationContext:
    """Per-call state; never shared between calls."""
    resolved: ResolvedDetection
    options: GenerationOptions
    toolchain: Toolchain
    warnings: List[str] = field(default_factory=list)
    optimizations: List[str] = field(default_factory=list)

    def warn(self, warning: Union[GenerationWarning, str]) -> None:
        text = str(warning)
        if text not in self.warnings:
            self.warnings.append(text)

    def optimize(self, note: str) -> None:
        if note not in self.optimizations:
            self.optimizations.append(note)


class BaseGenerator(ABC):
    """
    Abstract base class for workflow generators.
    Provides logging, rendering and job helpers.
    """

    workflow_type: WorkflowType = WorkflowType.CI
    filename: str = "workflow.yml"

    def __init__(
        self,
        name: str,
        steps: Optional[StepLibrary] = None,
        config: Optional[Config] = None,
    ):
        self.name = name
        self.config = config or get_config()
        self.settings = self.config.generator
        self.logger = GeneratorLogger(name, quiet=not self.config.verbose,
                                      workflow_type=self.workflow_type.value)
        self.steps = steps or StepLibrary()

    @abstractmethod
    def generate(self, resolved: ResolvedDetection, options: GenerationOptions, *args: Any) -> Any:
        """Produce this generator's output."""
        pass

    def create_context(self, resolved: ResolvedDetection, options: GenerationOptions) -> GenerationContext:
        toolchain = Toolchain.from_resolved(resolved)
        ctx = GenerationContext(resolved=resolved, options=options, toolchain=toolchain)
        for warning in resolved.warnings:
            ctx.warn(warning)
        if resolved.language and self.steps.cache.setup_action(toolchain.language) is None:
            warning = TemplateFallbackWarning(
                f"No setup template for language '{resolved.language}' - using generic steps",
                language=resolved.language,
            )
            self.logger.generation_warning(warning)
            ctx.warn(warning)
        return ctx

    def render(
        self,
        workflow: Workflow,
        ctx: GenerationContext,
        filename: Optional[str] = None,
        workflow_type: Optional[WorkflowType] = None,
    ) -> WorkflowOutput:
        content = render_workflow(
            workflow,
            include_comments=ctx.options.include_comments,
            generator_version=self.settings.generator_version,
        )
        metadata = WorkflowMetadata(
            generator_version=self.settings.generator_version,
            detection_summary=ctx.resolved.summary,
            optimizations=list(ctx.optimizations),
            warnings=list(ctx.warnings),
        )
        return WorkflowOutput(
            filename=filename or self.filename,
            content=content,
            type=workflow_type or self.workflow_type,
            metadata=metadata,
            workflow=workflow,
        )

    def job(self, job_id: str, name: Optional[str] = None, **kwargs) -> Job:
        """Create a job with the configured runner and timeout."""
        kwargs.setdefault("runs_on", self.settings.runner)
        kwargs.setdefault("timeout_minutes", self.settings.job_timeout_minutes)
        return Job(id=job_id, name=name, **kwargs)

    def branches(self, *extra: str) -> List[str]:
        branches = [self.settings.default_branch]
        for branch in extra:
            if branch not in branches:
                branches.append(branch)
        return branches

    @staticmethod
    def least_privilege(ctx: GenerationContext, **scopes: str) -> Optional[Dict[str, str]]:
        """Explicit permissions for enterprise workflows, or the given scopes when required."""
        permissions = {"contents": "read"}
        permissions.update({k.replace("_", "-"): v for k, v in scopes.items()})
        if ctx.options.enterprise or scopes:
            return permissions
        return None

    def log_step(self, message: str, step: int = None) -> None:
        self.logger.step(message, step)

    def log_success(self, message: str) -> None:
        self.logger.success(message)


class WorkflowGenerator(BaseGenerator):
    """Base for generators that emit exactly one workflow file."""

    @abstractmethod
    def build(self, ctx: GenerationContext) -> Workflow:
        """Assemble the workflow for this generator."""
        pass

    def generate(self, resolved: ResolvedDetection, options: GenerationOptions, *args: Any) -> WorkflowOutput:
        """Generate this generator's workflow file."""
        ctx = self.create_context(resolved, options)
        self.log_step(f"Generating {self.filename}")
        workflow = self.build(ctx)
        output = self.render(workflow, ctx)
        self.logger.debug("workflow_generated", filename=output.filename,
                          jobs=workflow.job_ids, warnings=len(ctx.warnings))
        return output
