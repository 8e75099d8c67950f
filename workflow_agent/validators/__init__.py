"""Workflow validation and best-practices scoring."""

from .workflow_validator import WorkflowValidator, validate_workflow, parse_workflow
from .best_practices import score_workflow, ScoreBreakdown

__all__ = [
    "WorkflowValidator",
    "validate_workflow",
    "parse_workflow",
    "score_workflow",
    "ScoreBreakdown",
]
