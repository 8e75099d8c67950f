"""Helper utilities."""

import re
from typing import Any, Optional


def slugify(text: str, max_length: int = 63) -> str:
    """
    Convert text to a job-id/file-name safe slug.

    Args:
        text: Text to convert
        max_length: Maximum length of the slug

    Returns:
        Slugified text
    """
    slug = text.lower()

    # Replace separators with hyphens
    slug = slug.replace(" ", "-").replace("_", "-").replace("/", "-").replace(".", "-")

    # Remove non-alphanumeric characters (except hyphens)
    slug = re.sub(r'[^a-z0-9-]', '', slug)

    # Remove consecutive hyphens
    slug = re.sub(r'-+', '-', slug)

    slug = slug.strip('-')

    if len(slug) > max_length:
        slug = slug[:max_length].rstrip('-')

    return slug or "unnamed"


def env_var_name(text: str) -> str:
    """Convert text to an UPPER_SNAKE environment variable name."""
    name = re.sub(r'[^A-Za-z0-9]+', '_', text).strip('_').upper()
    if not name:
        return "VALUE"
    if name[0].isdigit():
        name = f"_{name}"
    return name


_DURATION_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$')
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: Any, default: Optional[int] = None) -> int:
    """
    Parse a duration into whole seconds.

    Accepts integers (seconds) or strings like "30s", "5m", "1h".

    Raises:
        ValueError: If the value is not a recognised duration
    """
    if value is None:
        if default is None:
            raise ValueError("Duration is required")
        return default
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    match = _DURATION_PATTERN.match(str(value).lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    return int(float(match.group(1)) * _DURATION_UNITS[match.group(2)])


def format_duration(seconds: float) -> str:
    """Format duration as a compact GitHub-friendly string (e.g. 90 -> 1m30s)."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    minutes, rest = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m{rest}s" if rest else f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes}m" if minutes else f"{hours}h"


def minutes_ceil(seconds: int) -> int:
    """Whole minutes needed to cover `seconds`, at least one."""
    return max(1, -(-int(seconds) // 60))
