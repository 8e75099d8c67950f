"""
Workflow Validator - syntax, structure and best-practice checks.

Validation runs in two phases:
1. YAML parse; a failure raises WorkflowSyntaxError with line/column
2. Structural checks on the parsed document, collected into a ValidationResult
"""

import re
from typing import Any, List, Mapping, Optional

import yaml

from ..core.errors import CyclicDependencyError, WorkflowSyntaxError
from ..core.graph import DependencyGraph
from ..core.logger import get_logger
from ..models.validation import ValidationResult
from .best_practices import MOVING_REFS, best_practice_suggestions, iter_steps, score_workflow, split_action

logger = get_logger(__name__)

JOB_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def parse_workflow(text: str) -> Any:
    """
    Parse workflow YAML.

    Raises:
        WorkflowSyntaxError: With 1-based line/column when the text is not YAML
    """
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        column = mark.column + 1 if mark is not None else None
        problem = getattr(e, "problem", None) or str(e)
        raise WorkflowSyntaxError(f"Invalid YAML: {problem}", line=line, column=column) from e


def job_needs(job: Mapping[str, Any]) -> Optional[List[str]]:
    """The job ids a job needs, or None when `needs` is neither a string nor a list of strings."""
    needs = job.get("needs")
    if needs is None:
        return []
    if isinstance(needs, str):
        return [needs]
    if isinstance(needs, list) and all(isinstance(dep, str) for dep in needs):
        return list(needs)
    return None


def get_triggers(document: Mapping[str, Any]) -> Optional[Any]:
    """The `on` section; YAML 1.1 loaders read an unquoted `on` key as True."""
    if "on" in document:
        return document["on"]
    return document.get(True)


class WorkflowValidator:
    """Validates GitHub Actions workflow documents."""

    def __init__(self):
        self.logger = logger

    def validate(self, yaml_text: str) -> ValidationResult:
        """
        Validate workflow YAML text.

        Args:
            yaml_text: The workflow document

        Returns:
            ValidationResult with errors, warnings, suggestions and a 0-1 score

        Raises:
            WorkflowSyntaxError: If the text cannot be parsed as YAML
        """
        document = parse_workflow(yaml_text)
        return self.validate_document(document)

    def validate_document(self, document: Any) -> ValidationResult:
        """Validate an already parsed workflow document."""
        result = ValidationResult()
        if not isinstance(document, Mapping):
            result.add_error("Workflow must be a YAML mapping")
            return result

        self._check_top_level(document, result)
        jobs = document.get("jobs")
        if isinstance(jobs, Mapping) and jobs:
            for job_id, job in jobs.items():
                self._check_job(str(job_id), job, jobs, result)
            self._check_needs_cycles(jobs, result)
        self._check_actions(document, result)

        for suggestion in best_practice_suggestions(document):
            result.add_suggestion(suggestion)
        result.score = score_workflow(document).score

        self.logger.debug("workflow_validated", valid=result.is_valid, errors=len(result.errors),
                          warnings=len(result.warnings), score=result.score)
        return result

    def _check_top_level(self, document: Mapping[str, Any], result: ValidationResult) -> None:
        name = document.get("name")
        if not name:
            result.add_error("Missing required field 'name'")
        elif not isinstance(name, str):
            result.add_error("Field 'name' must be a string")

        triggers = get_triggers(document)
        if triggers is None:
            result.add_error("Missing required field 'on'")
        elif not isinstance(triggers, (str, list, Mapping)):
            result.add_error("Field 'on' must be an event name, list or mapping")

        jobs = document.get("jobs")
        if jobs is None:
            result.add_error("Missing required field 'jobs'")
        elif not isinstance(jobs, Mapping):
            result.add_error("Field 'jobs' must be a mapping")
        elif not jobs:
            result.add_error("Workflow must define at least one job")

        if document.get("permissions") == "write-all":
            result.add_warning("Top-level permissions are write-all; grant only the scopes jobs need")

    def _check_job(self, job_id: str, job: Any, jobs: Mapping[str, Any], result: ValidationResult) -> None:
        if not JOB_ID.match(job_id):
            result.add_error(f"Job id '{job_id}' must start with a letter or '_' and contain only "
                             "alphanumerics, '-' or '_'")
        if not isinstance(job, Mapping):
            result.add_error(f"Job '{job_id}' must be a mapping")
            return

        needs = job_needs(job)
        if needs is None:
            result.add_error(f"Job '{job_id}' has invalid 'needs'; expected a job id or a list of job ids")
        else:
            for dep in needs:
                if dep == job_id:
                    result.add_error(f"Job '{job_id}' cannot depend on itself")
                elif dep not in jobs:
                    result.add_error(f"Job '{job_id}' needs unknown job '{dep}'")

        # Reusable workflow calls have no runner or steps of their own
        if "uses" in job:
            return
        if "runs-on" not in job:
            result.add_error(f"Job '{job_id}' is missing 'runs-on'")

        steps = job.get("steps")
        if not isinstance(steps, list) or not steps:
            result.add_error(f"Job '{job_id}' must have a non-empty 'steps' list")
            return
        for index, step in enumerate(steps, start=1):
            label = f"Step {index} in job '{job_id}'"
            if not isinstance(step, Mapping):
                result.add_error(f"{label} must be a mapping")
                continue
            has_uses, has_run = "uses" in step, "run" in step
            if not has_uses and not has_run:
                result.add_error(f"{label} must define 'uses' or 'run'")
            elif has_uses and has_run:
                result.add_error(f"{label} cannot define both 'uses' and 'run'")

    def _check_needs_cycles(self, jobs: Mapping[str, Any], result: ValidationResult) -> None:
        graph = DependencyGraph(component="validator")
        for job_id, job in jobs.items():
            graph.add_node(str(job_id))
            if not isinstance(job, Mapping):
                continue
            for dep in job_needs(job) or ():
                if dep in jobs and dep != job_id:
                    graph.add_dependency(str(job_id), str(dep))
        try:
            graph.topological_order()
        except CyclicDependencyError as e:
            result.add_error(f"Job dependencies form a cycle: {' -> '.join(e.cycle)}")

    def _check_actions(self, document: Mapping[str, Any], result: ValidationResult) -> None:
        for job_id, step in iter_steps(document):
            uses = step.get("uses")
            if not isinstance(uses, str):
                continue
            name, ref = split_action(uses)
            if ref == "local":
                continue
            if not ref:
                result.add_warning(f"Action '{name}' in job '{job_id}' is not pinned to a version")
            elif ref in MOVING_REFS:
                result.add_warning(f"Action '{name}@{ref}' in job '{job_id}' tracks a moving branch; "
                                   "pin a release tag or commit")


def validate_workflow(yaml_text: str) -> ValidationResult:
    """Validate workflow YAML text with a default validator."""
    return WorkflowValidator().validate(yaml_text)
