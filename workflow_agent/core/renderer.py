"""
YAML rendering for workflow documents.

The Workflow IR is converted to plain dicts and dumped with PyYAML. Output is
deterministic (insertion-ordered keys, no timestamps) so regenerating a
workflow from the same input yields identical text.
"""

import re
from typing import Any, Dict

import yaml
from jinja2 import Environment, BaseLoader

from ..models.workflow import Workflow

HEADER_TEMPLATE = """\
# {{ name }}
{% if description %}
# {{ description }}
{% endif %}
# Generated by workflow-agent {{ version }}. Regenerate instead of editing by hand.
"""

_jinja_env = Environment(loader=BaseLoader(), trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)


def render_template(template: str, context: Dict[str, Any]) -> str:
    """Render a Jinja2 template string."""
    return _jinja_env.from_string(template).render(**context)


class WorkflowDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences under their parent key."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


WorkflowDumper.add_representer(str, _represent_str)

# PyYAML quotes the `on` key because YAML 1.1 reads it as a boolean
_QUOTED_ON = re.compile(r"^(['\"])on\1:", re.MULTILINE)
_JOB_KEY = re.compile(r"^  ([A-Za-z0-9_-]+):\s*$")


def dump_yaml(data: Dict[str, Any]) -> str:
    text = yaml.dump(
        data,
        Dumper=WorkflowDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )
    return _QUOTED_ON.sub("on:", text)


def render_workflow(workflow: Workflow, include_comments: bool = True,
                    generator_version: str = "1.0.0") -> str:
    """
    Serialize a workflow to YAML text.

    Args:
        workflow: The workflow to render
        include_comments: Add a header comment and per-job comments
        generator_version: Version stamped into the header comment

    Returns:
        YAML document text ending with a newline
    """
    body = dump_yaml(workflow.to_dict())
    comments = {job.id: job.comment for job in workflow.jobs if job.comment} if include_comments else {}

    lines = []
    in_jobs = False
    for line in body.splitlines():
        if line == "jobs:":
            lines.append("")
            in_jobs = True
        elif in_jobs:
            match = _JOB_KEY.match(line)
            if match:
                if lines and lines[-1] != "jobs:":
                    lines.append("")
                comment = comments.get(match.group(1))
                if comment:
                    lines.extend(f"  # {part}" for part in comment.splitlines())
        lines.append(line)
    text = "\n".join(lines) + "\n"

    if include_comments:
        header = render_template(HEADER_TEMPLATE, {
            "name": workflow.name,
            "description": workflow.description,
            "version": generator_version,
        })
        text = header + "\n" + text
    return text
