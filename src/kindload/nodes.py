"""Cluster nodes and the providers that enumerate them.

A *provider* turns a cluster name into the list of nodes that belong to
it; a *node* can run a command with a stream attached to its stdin.  The
provider in use is chosen through a :class:`NodeSource`, which callers
pass to :class:`~kindload.publish.Publisher` to substitute another
provider (a test double, or SSH hosts instead of kind containers).
"""

from __future__ import annotations

import logging
import threading
from typing import BinaryIO, Callable, Protocol, runtime_checkable

from kindload.config import KindloadConfig, load_config
from kindload.errors import ListNodesError

logger = logging.getLogger(__name__)


@runtime_checkable
class Node(Protocol):
    """One member of a cluster."""

    @property
    def name(self) -> str:
        """Display name used in logs and error messages."""
        ...

    def run_with_stdin(
        self,
        command: str,
        args: list[str],
        stdin: BinaryIO | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Run *command* with *args* on the node, raising on failure."""
        ...


@runtime_checkable
class Provider(Protocol):
    """Enumerates the nodes of a named cluster."""

    def list_nodes(self, cluster_name: str) -> list[Node]:
        ...


ProviderFactory = Callable[[], Provider]


def default_provider_factory(config: KindloadConfig) -> ProviderFactory:
    """Return a factory building the provider named in *config*."""
    def factory() -> Provider:
        from kindload.providers import get_provider
        return get_provider(config)
    return factory


class NodeSource:
    """Late-bound access to the active provider.

    The factory is called on every :meth:`list_nodes`, so swapping it with
    :meth:`use` takes effect for the next operation without rebuilding
    anything that holds this source.
    """

    def __init__(self, factory: ProviderFactory):
        self._factory = factory

    @classmethod
    def from_provider(cls, provider: Provider) -> "NodeSource":
        return cls(lambda: provider)

    def use(self, factory: ProviderFactory) -> None:
        """Replace the provider factory."""
        self._factory = factory

    def provider(self) -> Provider:
        return self._factory()

    def list_nodes(self, cluster_name: str) -> list[Node]:
        provider = self.provider()
        try:
            nodes = provider.list_nodes(cluster_name)
        except ListNodesError:
            raise
        except Exception as e:
            raise ListNodesError(cluster_name, str(e)) from e
        return list(nodes or [])


def list_nodes(
    cluster_name: str | None = None,
    node_source: NodeSource | None = None,
    config: KindloadConfig | None = None,
) -> list[Node]:
    """Resolve a cluster name to its nodes.

    Args:
        cluster_name: Cluster to list.  Defaults to ``config.cluster_name``.
        node_source: Provider seam.  Defaults to the provider named in
            *config*.
        config: Settings.  Defaults to :func:`~kindload.config.load_config`.

    Returns:
        The cluster's nodes, possibly empty.  An empty list is not an
        error here; publish and retag reject it.

    Raises:
        ListNodesError: If the provider could not enumerate the cluster.
    """
    if config is None:
        config = load_config()
    if node_source is None:
        node_source = NodeSource(default_provider_factory(config))
    name = cluster_name or config.cluster_name

    nodes = node_source.list_nodes(name)
    logger.debug("Cluster %r has %d node(s): %s", name, len(nodes), [n.name for n in nodes])
    return nodes
