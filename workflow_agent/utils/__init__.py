"""Utility functions."""

from .helpers import slugify, env_var_name, parse_duration, format_duration

__all__ = ["slugify", "env_var_name", "parse_duration", "format_duration"]
