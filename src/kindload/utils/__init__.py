"""Shared utility functions for kindload.

Small, self-contained helpers that are used across multiple modules.
Keeping them here avoids circular imports and reduces duplication.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from kindload.errors import ConfigError


def format_command(command: str, args: list[str] | tuple[str, ...] = ()) -> str:
    """Join a command and its arguments into one space-separated string.

    This is the form recorded in logs and error messages, e.g.
    ``ctr --namespace=k8s.io images import -``.
    """
    return " ".join([command, *args])


def quote_command(argv: list[str]) -> str:
    """Render *argv* as a shell-safe string for a remote shell."""
    return " ".join(shlex.quote(a) for a in argv)


def load_yaml(path) -> dict:
    """Load a YAML config file as a mapping.

    An empty file yields ``{}``.

    Raises:
        ConfigError: If the file cannot be read or parsed, or its top
            level is not a mapping.
    """
    import yaml
    try:
        with Path(path).open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError("could not read config file %s: %s" % (path, e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config file %s must hold a mapping, got %s" % (path, type(data).__name__))
    return data
