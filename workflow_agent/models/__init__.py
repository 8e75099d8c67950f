"""Data models for the workflow generation engine."""

from .detection import DetectionResult, FrameworkInfo, LanguageInfo, ToolInfo, DeploymentTarget
from .options import GenerationOptions, WorkflowType, OptimizationLevel, SecurityLevel
from .workflow import Step, Job, Workflow, WorkflowOutput, WorkflowMetadata
from .environment import EnvironmentConfig, EnvironmentType, DeploymentStrategy, MultiEnvironmentResult
from .patterns import PatternType, parse_pattern_config
from .validation import ValidationResult

__all__ = [
    "DetectionResult",
    "FrameworkInfo",
    "LanguageInfo",
    "ToolInfo",
    "DeploymentTarget",
    "GenerationOptions",
    "WorkflowType",
    "OptimizationLevel",
    "SecurityLevel",
    "Step",
    "Job",
    "Workflow",
    "WorkflowOutput",
    "WorkflowMetadata",
    "EnvironmentConfig",
    "EnvironmentType",
    "DeploymentStrategy",
    "MultiEnvironmentResult",
    "PatternType",
    "parse_pattern_config",
    "ValidationResult",
]
