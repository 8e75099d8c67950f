"""Workflow generators."""

from .base_generator import BaseGenerator, WorkflowGenerator, GenerationContext
from .ci_generator import CIGenerator
from .cd_generator import CDGenerator
from .security_generator import SecurityGenerator
from .performance_generator import PerformanceGenerator
from .testing_generator import TestingStrategyGenerator
from .monitoring_generator import MonitoringGenerator
from .maintenance_generator import MaintenanceGenerator
from .multi_environment_generator import MultiEnvironmentGenerator
from .advanced_pattern_generator import AdvancedPatternGenerator
from .agent_hooks_generator import AgentHooksGenerator
from .yaml_generator import YAMLGenerator, WorkflowSuite, GenerationFailure

__all__ = [
    "BaseGenerator",
    "WorkflowGenerator",
    "GenerationContext",
    "CIGenerator",
    "CDGenerator",
    "SecurityGenerator",
    "PerformanceGenerator",
    "TestingStrategyGenerator",
    "MonitoringGenerator",
    "MaintenanceGenerator",
    "MultiEnvironmentGenerator",
    "AdvancedPatternGenerator",
    "AgentHooksGenerator",
    "YAMLGenerator",
    "WorkflowSuite",
    "GenerationFailure",
]
