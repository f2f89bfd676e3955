"""Built-in node providers."""

from __future__ import annotations

from kindload.config import KindloadConfig
from kindload.errors import ConfigError


def get_provider(config: KindloadConfig):
    """Build the provider named by ``config.provider``."""
    if config.provider == "kind":
        from kindload.providers.kind import KindProvider
        return KindProvider(runtime=config.container_runtime)
    if config.provider == "hosts":
        from kindload.providers.hosts import HostsProvider
        return HostsProvider(
            config.clusters, ssh_user=config.ssh_user, ssh_key=config.ssh_key,
        )
    raise ConfigError("unknown provider: %r" % config.provider)
