"""Core module initialization."""

from .errors import (
    WorkflowEngineError,
    InvalidInputError,
    UnsupportedPatternError,
    CyclicDependencyError,
    WorkflowSyntaxError,
    WorkflowGenerationError,
    GenerationWarning,
    WarningKind,
)
from .graph import DependencyGraph
from .logger import GeneratorLogger, get_logger, setup_logging
from .template_cache import TemplateCache
from .file_manager import FileManager

__all__ = [
    "WorkflowEngineError",
    "InvalidInputError",
    "UnsupportedPatternError",
    "CyclicDependencyError",
    "WorkflowSyntaxError",
    "WorkflowGenerationError",
    "GenerationWarning",
    "WarningKind",
    "DependencyGraph",
    "GeneratorLogger",
    "get_logger",
    "setup_logging",
    "TemplateCache",
    "FileManager",
]
