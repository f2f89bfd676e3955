"""Configuration for kindload.

Values are resolved in three layers, later layers winning:

1. Built-in defaults (a kind cluster named ``kind``, ``ctr`` in the
   ``k8s.io`` namespace).
2. A YAML file: ``$KINDLOAD_CONFIG`` or ``~/.config/kindload/config.yaml``.
3. Environment variables (``KIND_CLUSTER_NAME``, ``KINDLOAD_*``).

Example file::

    cluster_name: dev
    provider: hosts
    ssh_user: ubuntu
    clusters:
      dev:
        - 10.0.0.11
        - 10.0.0.12
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from kindload.errors import ConfigError
from kindload.utils import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "kindload" / "config.yaml"
DEFAULT_CLUSTER_NAME = "kind"
DEFAULT_CTR_BINARY = "ctr"
DEFAULT_CTR_NAMESPACE = "k8s.io"
MAX_WORKERS_CAP = 16

PROVIDERS = ("kind", "hosts")

# config key -> environment variable
ENV_VARS = {
    "cluster_name": "KIND_CLUSTER_NAME",
    "provider": "KINDLOAD_PROVIDER",
    "container_runtime": "KIND_EXPERIMENTAL_PROVIDER",
    "ctr_binary": "KINDLOAD_CTR",
    "ctr_namespace": "KINDLOAD_NAMESPACE",
    "max_workers": "KINDLOAD_MAX_WORKERS",
    "timeout": "KINDLOAD_TIMEOUT",
    "ssh_user": "KINDLOAD_SSH_USER",
    "ssh_key": "KINDLOAD_SSH_KEY",
}


def _number(key: str, value, kind: type):
    """Convert a numeric setting with *kind*, or raise ConfigError."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError("%s must be a number, got %r" % (key, value))
    try:
        converted = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError("%s must be a number, got %r" % (key, value)) from e
    if kind is int and isinstance(value, float) and value != converted:
        raise ConfigError("%s must be a whole number, got %r" % (key, value))
    return converted


@dataclass
class KindloadConfig:
    """Resolved kindload settings."""

    cluster_name: str = DEFAULT_CLUSTER_NAME
    provider: str = "kind"
    container_runtime: str = "docker"
    ctr_binary: str = DEFAULT_CTR_BINARY
    ctr_namespace: str = DEFAULT_CTR_NAMESPACE
    max_workers: int | None = None
    timeout: float | None = None
    ssh_user: str | None = None
    ssh_key: str | None = None
    clusters: dict[str, list[str]] = field(default_factory=dict)

    def __post_init__(self):
        if self.provider not in PROVIDERS:
            raise ConfigError(
                "unknown provider %r (expected one of: %s)" % (self.provider, ", ".join(PROVIDERS))
            )
        self.max_workers = _number("max_workers", self.max_workers, int)
        self.timeout = _number("timeout", self.timeout, float)
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1, got %r" % self.max_workers)
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be positive, got %r" % self.timeout)
        if not isinstance(self.clusters, dict):
            raise ConfigError("clusters must be a mapping of cluster name to host list")
        self.clusters = {str(k): [str(h) for h in (v or [])] for k, v in self.clusters.items()}

    def workers_for(self, node_count: int) -> int:
        """Number of worker threads to use for *node_count* nodes."""
        if self.max_workers is not None:
            return max(1, min(int(self.max_workers), node_count))
        return max(1, min(node_count, MAX_WORKERS_CAP))


def resolve_config_path(path: str | os.PathLike | None = None, environ=None) -> Path:
    """Return the config file path: explicit *path*, ``$KINDLOAD_CONFIG``, or the default."""
    if path:
        return Path(path).expanduser()
    environ = os.environ if environ is None else environ
    env_path = environ.get("KINDLOAD_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _env_overrides(environ) -> dict:
    overrides = {}
    for key, var in ENV_VARS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        overrides[key] = raw
    return overrides


def load_config(path: str | os.PathLike | None = None, environ=None) -> KindloadConfig:
    """Load configuration from defaults, the YAML file, and the environment.

    Args:
        path: Explicit config file. When given it must exist.
        environ: Mapping used instead of ``os.environ`` (for tests).

    Returns:
        The resolved :class:`KindloadConfig`.

    Raises:
        ConfigError: If the file cannot be read, holds unknown keys, or a
            value has the wrong type.
    """
    environ = os.environ if environ is None else environ
    config_path = resolve_config_path(path, environ)

    values: dict = {}
    if config_path.is_file():
        logger.debug("Loading config from %s", config_path)
        values.update(load_yaml(config_path))
    elif path:
        raise ConfigError("config file not found: %s" % config_path)

    known = {f.name for f in fields(KindloadConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError("unknown config key(s) in %s: %s" % (config_path, ", ".join(unknown)))

    values.update(_env_overrides(environ))
    return KindloadConfig(**values)
