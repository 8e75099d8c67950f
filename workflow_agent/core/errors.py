"""
Error taxonomy for the workflow generation engine.

Fatal errors derive from WorkflowEngineError and abort the generation call
that raised them. Recoverable issues are GenerationWarning values that end up
as strings in WorkflowOutput.metadata.warnings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class WorkflowEngineError(Exception):
    """Base class for fatal engine errors."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.component = component
        self.stage = stage
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "component": self.component,
            "stage": self.stage,
            "details": self.details,
        }


class InvalidInputError(WorkflowEngineError):
    """Raised when detection input or options are null or malformed."""
    pass


class UnsupportedPatternError(WorkflowEngineError):
    """Raised for an advanced pattern type the engine does not know."""
    pass


class CyclicDependencyError(WorkflowEngineError):
    """Raised when a package or service dependency graph contains a cycle."""

    def __init__(self, cycle: List[str], component: Optional[str] = None):
        path = " -> ".join(cycle)
        super().__init__(
            f"Cyclic dependency detected: {path}",
            component=component,
            stage="dependency-resolution",
            details={"cycle": list(cycle)},
        )
        self.cycle = list(cycle)


class WorkflowSyntaxError(WorkflowEngineError):
    """Raised when workflow text is not parseable YAML."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(
            f"{message}{location}",
            component="validator",
            stage="parse",
            details={"line": line, "column": column},
        )
        self.line = line
        self.column = column


class WorkflowGenerationError(WorkflowEngineError):
    """Raised when a single generator fails or times out."""

    def __init__(self, workflow_type: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"{workflow_type} generation failed: {message}",
            component=f"{workflow_type}-generator",
            stage="generate",
        )
        self.workflow_type = workflow_type
        self.cause = cause


class WarningKind(Enum):
    """Kinds of recoverable generation issues."""
    TEMPLATE_FALLBACK = "template-fallback"
    LOW_CONFIDENCE = "low-confidence"
    CONFLICT = "conflict"
    DEGENERATE_INPUT = "degenerate-input"
    STAGE_ORDER = "stage-order"


@dataclass(frozen=True)
class GenerationWarning:
    """A recoverable issue recorded instead of aborting generation."""
    kind: WarningKind
    message: str
    context: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        return self.message


def TemplateFallbackWarning(message: str, **context: Any) -> GenerationWarning:
    return GenerationWarning(WarningKind.TEMPLATE_FALLBACK, message, context)


def LowConfidenceWarning(message: str, **context: Any) -> GenerationWarning:
    return GenerationWarning(WarningKind.LOW_CONFIDENCE, message, context)


def ConflictWarning(message: str, **context: Any) -> GenerationWarning:
    return GenerationWarning(WarningKind.CONFLICT, message, context)


def DegenerateInputWarning(message: str, **context: Any) -> GenerationWarning:
    return GenerationWarning(WarningKind.DEGENERATE_INPUT, message, context)


def StageOrderWarning(message: str, **context: Any) -> GenerationWarning:
    return GenerationWarning(WarningKind.STAGE_ORDER, message, context)
