"""
Structured logging for the workflow generation engine.

structlog carries the machine-readable events; rich prints the short
human-facing lines when a component is not quiet. Console output goes to
stderr so generated YAML can be piped from stdout.
"""

import sys
from typing import Any, Optional

import structlog
from rich.console import Console
from rich.theme import Theme

from .errors import GenerationWarning

custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "step": "bold magenta",
})

console = Console(theme=custom_theme, stderr=True)

# style name -> console marker
MARKERS = {
    "step": "[→]",
    "success": "✓",
    "warning": "⚠",
    "error": "✗",
    "info": "ℹ",
}


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False) -> None:
    """Configure structlog: colored console lines when verbose, JSON lines otherwise."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True) if verbose else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(10 if verbose else 20),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class GeneratorLogger:
    """
    Logger for one engine component.

    Every call emits a structlog event bound to the component name; the
    rich console line is skipped when quiet.
    """

    def __init__(self, component: str, quiet: bool = False, **context: Any):
        self.component = component
        self.quiet = quiet
        self.logger = get_logger(component).bind(component=component, **context)

    def _print(self, style: str, message: str, marker: Optional[str] = None) -> None:
        if not self.quiet:
            console.print(f"[{style}]{marker or MARKERS[style]}[/{style}] [{self.component}] {message}")

    def step(self, message: str, step_num: int = None) -> None:
        self._print("step", message, f"[Step {step_num}]" if step_num else None)
        self.logger.info(message, step=step_num)

    def success(self, message: str) -> None:
        self._print("success", message)
        self.logger.info(message, status="success")

    def info(self, message: str, **kwargs: Any) -> None:
        self._print("info", message)
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._print("warning", message)
        self.logger.warning(message, **kwargs)

    def generation_warning(self, warning: GenerationWarning) -> None:
        """Log a recoverable generation issue with its kind and context."""
        self._print("warning", warning.message)
        self.logger.warning("generation_warning", kind=warning.kind.value, message=warning.message,
                            **warning.context)

    def error(self, message: str, exc: Exception = None) -> None:
        self._print("error", message)
        self.logger.error(message, exc_info=exc)

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, **kwargs)
