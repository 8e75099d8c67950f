"""
Structured workflow representation.

Generators assemble Workflow/Job/Step objects and the renderer turns them
into YAML as the last step, so validation and tests can reason over
structure instead of text.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from .options import WorkflowType


@dataclass
class Step:
    """A single workflow step. Exactly one of `uses` or `run` is set."""
    name: str
    uses: Optional[str] = None
    run: Optional[str] = None
    id: Optional[str] = None
    with_: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)
    if_: Optional[str] = None
    shell: Optional[str] = None
    working_directory: Optional[str] = None
    continue_on_error: Optional[bool] = None
    timeout_minutes: Optional[int] = None

    def __post_init__(self):
        if (self.uses is None) == (self.run is None):
            raise ValueError(f"Step '{self.name}' must define exactly one of 'uses' or 'run'")

    @property
    def action(self) -> Optional[str]:
        """Action name without the version suffix."""
        if self.uses is None:
            return None
        return self.uses.split("@", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.id:
            data["id"] = self.id
        if self.if_:
            data["if"] = self.if_
        if self.uses:
            data["uses"] = self.uses
        if self.with_:
            data["with"] = dict(self.with_)
        if self.run is not None:
            data["run"] = self.run
        if self.shell:
            data["shell"] = self.shell
        if self.working_directory:
            data["working-directory"] = self.working_directory
        if self.env:
            data["env"] = dict(self.env)
        if self.continue_on_error is not None:
            data["continue-on-error"] = self.continue_on_error
        if self.timeout_minutes is not None:
            data["timeout-minutes"] = self.timeout_minutes
        return data


@dataclass
class Job:
    """A workflow job keyed by `id` in the rendered document."""
    id: str
    name: Optional[str] = None
    runs_on: str = "ubuntu-latest"
    steps: List[Step] = field(default_factory=list)
    needs: List[str] = field(default_factory=list)
    if_: Optional[str] = None
    environment: Optional[Union[str, Dict[str, str]]] = None
    permissions: Dict[str, str] = field(default_factory=dict)
    strategy: Optional[Dict[str, Any]] = None
    services: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)
    timeout_minutes: Optional[int] = None
    continue_on_error: Optional[bool] = None
    comment: Optional[str] = None

    def add_step(self, step: Optional[Step]) -> "Job":
        if step is not None:
            self.steps.append(step)
        return self

    def add_steps(self, steps: List[Step]) -> "Job":
        for step in steps:
            self.add_step(step)
        return self

    def uses_action(self, action: str) -> bool:
        return any(step.action == action for step in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.name:
            data["name"] = self.name
        data["runs-on"] = self.runs_on
        if self.needs:
            data["needs"] = list(self.needs)
        if self.if_:
            data["if"] = self.if_
        if self.environment:
            data["environment"] = self.environment
        if self.permissions:
            data["permissions"] = dict(self.permissions)
        if self.timeout_minutes is not None:
            data["timeout-minutes"] = self.timeout_minutes
        if self.continue_on_error is not None:
            data["continue-on-error"] = self.continue_on_error
        if self.strategy:
            data["strategy"] = self.strategy
        if self.services:
            data["services"] = self.services
        if self.env:
            data["env"] = dict(self.env)
        if self.outputs:
            data["outputs"] = dict(self.outputs)
        data["steps"] = [step.to_dict() for step in self.steps]
        return data


@dataclass
class Workflow:
    """A complete workflow document."""
    name: str
    triggers: Dict[str, Any]
    jobs: List[Job] = field(default_factory=list)
    permissions: Union[str, Dict[str, str], None] = None
    concurrency: Optional[Dict[str, Any]] = None
    env: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def add_job(self, job: Job) -> Job:
        if any(existing.id == job.id for existing in self.jobs):
            raise ValueError(f"Duplicate job id '{job.id}' in workflow '{self.name}'")
        self.jobs.append(job)
        return job

    def job(self, job_id: str) -> Job:
        for job in self.jobs:
            if job.id == job_id:
                return job
        raise KeyError(job_id)

    @property
    def job_ids(self) -> List[str]:
        return [job.id for job in self.jobs]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "on": self.triggers}
        if self.permissions:
            data["permissions"] = self.permissions
        if self.concurrency:
            data["concurrency"] = self.concurrency
        if self.env:
            data["env"] = dict(self.env)
        data["jobs"] = {job.id: job.to_dict() for job in self.jobs}
        return data


def checkout_step(fetch_depth: Optional[int] = None) -> Step:
    with_ = {"fetch-depth": fetch_depth} if fetch_depth is not None else {}
    return Step(name="Checkout code", uses="actions/checkout@v4", with_=with_)


def dispatch_input(description: str, default: Any = None, required: bool = False,
                   type_: str = "string", options: Optional[List[str]] = None) -> Dict[str, Any]:
    """Build a workflow_dispatch input definition."""
    data: Dict[str, Any] = {"description": description, "required": required, "type": type_}
    if options:
        data["type"] = "choice"
        data["options"] = list(options)
    if default is not None:
        data["default"] = default
    return data


@dataclass
class WorkflowMetadata:
    """Metadata attached to every generated workflow."""
    generator_version: str
    detection_summary: str
    optimizations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "generatorVersion": self.generator_version,
            "detectionSummary": self.detection_summary,
            "optimizations": list(self.optimizations),
            "warnings": list(self.warnings),
        }


@dataclass
class WorkflowOutput:
    """A rendered workflow file."""
    filename: str
    content: str
    type: WorkflowType
    metadata: WorkflowMetadata
    workflow: Optional[Workflow] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "content": self.content,
            "type": self.type.value,
            "metadata": self.metadata.to_dict(),
        }
