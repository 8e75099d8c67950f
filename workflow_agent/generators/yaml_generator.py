"""
YAML Generator - entry point that coordinates every workflow generator.

Each call:
1. Parses the detection result and options
2. Resolves conflicting detection signals once
3. Runs the requested generators in worker threads, in parallel
4. Collects outputs, isolating per-generator failures
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from ..config import Config, get_config
from ..core.conflict_resolver import ResolvedDetection, resolve_conflicts
from ..core.errors import WorkflowEngineError, WorkflowGenerationError
from ..core.logger import GeneratorLogger, get_logger
from ..core.template_cache import TemplateCache
from ..models.detection import DetectionResult
from ..models.environment import MultiEnvironmentResult
from ..models.options import GenerationOptions, WorkflowType, parse_enum
from ..models.patterns import PatternConfig
from ..models.validation import ValidationResult
from ..models.workflow import WorkflowOutput
from ..validators.workflow_validator import WorkflowValidator
from .advanced_pattern_generator import AdvancedPatternGenerator
from .agent_hooks_generator import AgentHooksGenerator
from .base_generator import BaseGenerator
from .cd_generator import CDGenerator
from .ci_generator import CIGenerator
from .maintenance_generator import MaintenanceGenerator
from .monitoring_generator import MonitoringGenerator
from .multi_environment_generator import MultiEnvironmentGenerator
from .performance_generator import PerformanceGenerator
from .release_generator import ReleaseGenerator
from .security_generator import SecurityGenerator
from .step_library import StepLibrary
from .testing_generator import TestingStrategyGenerator

logger = get_logger(__name__)

# Base generators, in suite order
GENERATORS = {
    WorkflowType.CI: CIGenerator,
    WorkflowType.CD: CDGenerator,
    WorkflowType.SECURITY: SecurityGenerator,
    WorkflowType.PERFORMANCE: PerformanceGenerator,
    WorkflowType.TESTING: TestingStrategyGenerator,
    WorkflowType.MONITORING: MonitoringGenerator,
    WorkflowType.MAINTENANCE: MaintenanceGenerator,
    WorkflowType.RELEASE: ReleaseGenerator,
}

# Release publishes packages, so it is only generated when requested
SUITE_TYPES = tuple(t for t in GENERATORS if t is not WorkflowType.RELEASE)


@dataclass
class GenerationFailure:
    """A generator that failed or timed out inside a multi-workflow call."""
    workflow_type: WorkflowType
    error: WorkflowGenerationError

    @property
    def message(self) -> str:
        return self.error.message

    def to_dict(self) -> Dict[str, Any]:
        return {"workflowType": self.workflow_type.value, **self.error.to_dict()}


@dataclass
class WorkflowSuite:
    """Outputs of a multi-workflow call plus the generators that failed."""
    outputs: List[WorkflowOutput] = field(default_factory=list)
    failures: List[GenerationFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def filenames(self) -> List[str]:
        return [o.filename for o in self.outputs]

    def get(self, filename: str) -> Optional[WorkflowOutput]:
        return next((o for o in self.outputs if o.filename == filename), None)

    def __iter__(self) -> Iterator[WorkflowOutput]:
        return iter(self.outputs)

    def __len__(self) -> int:
        return len(self.outputs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflows": [o.to_dict() for o in self.outputs],
            "failures": [f.to_dict() for f in self.failures],
        }


class YAMLGenerator:
    """
    Coordinates the workflow generators.

    Generators are stateless apart from the shared template cache, so one
    YAMLGenerator can serve concurrent calls.
    """

    def __init__(self, config: Optional[Config] = None, cache: Optional[TemplateCache] = None):
        self.config = config or get_config()
        self.settings = self.config.generator
        self.cache = cache or TemplateCache()
        self.steps = StepLibrary(self.cache)
        self.logger = GeneratorLogger("YAMLGenerator", quiet=not self.config.verbose)
        self.validator = WorkflowValidator()

        shared = {"steps": self.steps, "config": self.config}
        self.generators: Dict[WorkflowType, BaseGenerator] = {
            workflow_type: generator_cls(**shared) for workflow_type, generator_cls in GENERATORS.items()
        }
        self.multi_environment = MultiEnvironmentGenerator(**shared)
        self.advanced = AdvancedPatternGenerator(**shared)
        self.agent_hooks = AgentHooksGenerator(**shared)

    # Public API

    async def generate_workflow(self, detection: Any, options: Any = None) -> WorkflowOutput:
        """
        Generate one workflow of the type named by the options.

        Args:
            detection: DetectionResult or its dict form
            options: GenerationOptions or its dict form (defaults apply)

        Returns:
            The rendered WorkflowOutput

        Raises:
            InvalidInputError: Null or malformed detection/options
            WorkflowGenerationError: The generator failed or timed out
        """
        opts = GenerationOptions.coerce(options)
        resolved = self._resolve(detection)
        if opts.workflow_type is WorkflowType.AGENT_HOOKS:
            raise WorkflowGenerationError(
                opts.workflow_type.value,
                "produces several workflows; use generate_multiple_workflows",
            )
        generator = self._base_generator(opts.workflow_type)
        self.logger.info(f"Generating {opts.workflow_type.value} workflow")
        return await self._run(opts.workflow_type, generator.generate, resolved, opts)

    async def generate_multiple_workflows(
        self,
        detection: Any,
        types: Iterable[Union[WorkflowType, str]],
        options: Any = None,
        all_or_nothing: bool = False,
    ) -> WorkflowSuite:
        """
        Generate several workflow types in parallel.

        A failing generator does not affect the others: its error is
        reported in WorkflowSuite.failures. With all_or_nothing=True the
        first failure is raised instead.

        Args:
            detection: DetectionResult or its dict form
            types: Workflow types to generate; agent-hooks is accepted too
            options: Shared options; workflow_type is overridden per type
            all_or_nothing: Raise on any failure instead of isolating it
        """
        opts = GenerationOptions.coerce(options)
        requested = self._parse_types(types)
        resolved = self._resolve(detection)
        return await self._gather(resolved, opts, requested, all_or_nothing)

    async def generate_complete_workflow_suite(self, detection: Any, options: Any = None) -> WorkflowSuite:
        """
        Generate every base workflow, plus agent hooks when enabled.

        Failures are isolated per generator.
        """
        opts = GenerationOptions.coerce(options)
        resolved = self._resolve(detection)
        types = list(SUITE_TYPES)
        if opts.agent_hooks_enabled:
            types.append(WorkflowType.AGENT_HOOKS)

        self.logger.step(f"Generating complete workflow suite ({len(types)} generators)")
        suite = await self._gather(resolved, opts, types, all_or_nothing=False)
        if suite.failures:
            self.logger.warning(f"{len(suite.failures)} generators failed; "
                                f"returning {len(suite.outputs)} workflows")
        else:
            self.logger.success(f"Generated {len(suite.outputs)} workflows")
        return suite

    async def generate_advanced_pattern_workflows(
        self,
        detection: Any,
        pattern_config: Union[PatternConfig, Dict[str, Any]],
        options: Any = None,
    ) -> List[WorkflowOutput]:
        """
        Generate the workflows for one advanced pattern.

        Raises:
            UnsupportedPatternError: Unknown pattern type
            CyclicDependencyError: Cycle among packages, services or child workflows
            InvalidInputError: Malformed detection or pattern settings
        """
        opts = GenerationOptions.coerce(options)
        resolved = self._resolve(detection)
        return await self._run(WorkflowType.ADVANCED, self.advanced.generate, resolved, opts, pattern_config)

    async def generate_multi_environment_workflows(
        self,
        detection: Any,
        environments: Sequence[Any],
        options: Any = None,
    ) -> MultiEnvironmentResult:
        """Generate deploy, promotion and rollback workflows for ordered environments."""
        opts = GenerationOptions.coerce(options)
        resolved = self._resolve(detection)
        return await self._run(WorkflowType.DEPLOYMENT, self.multi_environment.generate,
                               resolved, opts, environments)

    def validate_workflow(self, yaml_text: str) -> ValidationResult:
        """
        Validate workflow YAML.

        Raises:
            WorkflowSyntaxError: If the text is not parseable YAML
        """
        return self.validator.validate(yaml_text)

    # Internals

    def _resolve(self, detection: Any) -> ResolvedDetection:
        parsed = DetectionResult.coerce(detection)
        resolved = resolve_conflicts(
            parsed,
            min_relevance=self.settings.min_relevance,
            low_confidence_threshold=self.settings.low_confidence_threshold,
        )
        logger.debug("detection_resolved", summary=resolved.summary, warnings=len(resolved.warnings))
        for warning in resolved.warnings:
            self.logger.generation_warning(warning)
        return resolved

    def _base_generator(self, workflow_type: WorkflowType) -> BaseGenerator:
        if workflow_type is WorkflowType.AGENT_HOOKS:
            return self.agent_hooks
        generator = self.generators.get(workflow_type)
        if generator is None:
            raise WorkflowGenerationError(workflow_type.value, "no base generator for this workflow type")
        return generator

    @staticmethod
    def _parse_types(types: Iterable[Union[WorkflowType, str]]) -> List[WorkflowType]:
        if types is None or isinstance(types, str):
            types = [types] if isinstance(types, str) else []
        requested: List[WorkflowType] = []
        for value in types:
            workflow_type = parse_enum(WorkflowType, value, "workflowType")
            if workflow_type not in requested:
                requested.append(workflow_type)
        return requested

    async def _run(self, workflow_type: WorkflowType, func: Callable[..., Any], *args: Any) -> Any:
        """Run a generator call in a worker thread under the configured timeout."""
        timeout = self.settings.timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise WorkflowGenerationError(workflow_type.value, f"timed out after {timeout:g}s", cause=e) from e

    async def _run_type(self, workflow_type: WorkflowType, resolved: ResolvedDetection,
                        options: GenerationOptions) -> List[WorkflowOutput]:
        generator = self._base_generator(workflow_type)
        if workflow_type in GENERATORS:
            options = options.with_type(workflow_type)
        try:
            result = await self._run(workflow_type, generator.generate, resolved, options)
        except WorkflowGenerationError:
            raise
        except WorkflowEngineError as e:
            raise WorkflowGenerationError(workflow_type.value, e.message, cause=e) from e
        except Exception as e:
            raise WorkflowGenerationError(workflow_type.value, str(e) or type(e).__name__, cause=e) from e
        return list(result) if isinstance(result, list) else [result]

    async def _gather(self, resolved: ResolvedDetection, options: GenerationOptions,
                      types: Sequence[WorkflowType], all_or_nothing: bool) -> WorkflowSuite:
        results = await asyncio.gather(
            *(self._run_type(t, resolved, options) for t in types),
            return_exceptions=True,
        )

        suite = WorkflowSuite()
        for workflow_type, result in zip(types, results):
            if isinstance(result, WorkflowGenerationError):
                self.logger.error(f"{workflow_type.value} generator failed: {result.message}")
                if all_or_nothing:
                    raise result
                suite.failures.append(GenerationFailure(workflow_type, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                suite.outputs.extend(result)

        logger.info("workflows_generated", types=[t.value for t in types],
                    outputs=len(suite.outputs), failures=len(suite.failures))
        return suite
