"""
Workflow Generation Engine.

Turns a project detection result into GitHub Actions workflows.
"""

from .core.errors import (
    CyclicDependencyError,
    InvalidInputError,
    UnsupportedPatternError,
    WorkflowEngineError,
    WorkflowGenerationError,
    WorkflowSyntaxError,
)
from .generators.yaml_generator import GenerationFailure, WorkflowSuite, YAMLGenerator
from .models.detection import DetectionResult
from .models.options import GenerationOptions, OptimizationLevel, SecurityLevel, WorkflowType
from .models.validation import ValidationResult
from .models.workflow import WorkflowOutput

__version__ = "1.0.0"

__all__ = [
    "YAMLGenerator",
    "WorkflowSuite",
    "GenerationFailure",
    "DetectionResult",
    "GenerationOptions",
    "OptimizationLevel",
    "SecurityLevel",
    "WorkflowType",
    "WorkflowOutput",
    "ValidationResult",
    "WorkflowEngineError",
    "InvalidInputError",
    "UnsupportedPatternError",
    "CyclicDependencyError",
    "WorkflowSyntaxError",
    "WorkflowGenerationError",
]
