"""Publish images into, and retag images on, every node of a cluster.

Both operations resolve the cluster's nodes, refuse to continue when
there are none, and then run one ``ctr`` command per node through
:func:`~kindload.orchestration.fanout.run_on_all`.  The call succeeds
only if every node succeeded; otherwise an
:class:`~kindload.errors.AggregateError` names each failing node.

Nodes that finished before a sibling failed keep the new image or tag.
"""

from __future__ import annotations

import io
import logging
import threading

from kindload.config import KindloadConfig, load_config
from kindload.ctr import import_command, tag_command
from kindload.errors import NoNodesError
from kindload.images import Image, export_tarball
from kindload.nodes import Node, NodeSource, default_provider_factory, list_nodes
from kindload.orchestration.fanout import run_on_all
from kindload.utils import format_command

logger = logging.getLogger(__name__)


class Publisher:
    """Pushes images to the nodes of a cluster.

    Args:
        config: Settings.  Defaults to :func:`~kindload.config.load_config`.
        node_source: Where nodes come from.  Defaults to the provider
            named in *config*.
    """

    def __init__(
        self,
        config: KindloadConfig | None = None,
        node_source: NodeSource | None = None,
    ):
        self.config = config if config is not None else load_config()
        self.node_source = node_source or NodeSource(default_provider_factory(self.config))

    def nodes(self, cluster_name: str | None = None) -> list[Node]:
        """Resolve the cluster's nodes, raising :class:`NoNodesError` if there are none."""
        name = cluster_name or self.config.cluster_name
        nodes = list_nodes(name, self.node_source, self.config)
        if not nodes:
            raise NoNodesError(name)
        return nodes

    def _run(
        self,
        nodes: list[Node],
        command: str,
        args: list[str],
        stream_for=None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if timeout is None:
            timeout = self.config.timeout

        def action(node: Node) -> None:
            stdin = stream_for(node) if stream_for is not None else None
            logger.debug("[%s] %s", node.name, format_command(command, args))
            node.run_with_stdin(command, args, stdin=stdin, timeout=timeout, cancel_event=cancel_event)

        run_on_all(nodes, action, max_workers=self.config.workers_for(len(nodes)))

    def write(
        self,
        target_ref: str,
        image: Image,
        cluster_name: str | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        dry_run: bool = False,
    ) -> None:
        """Import *image* as *target_ref* on every node of the cluster.

        The image is exported once; each node reads its own copy of the
        tarball from stdin.

        Args:
            target_ref: Reference the image is imported as.
            image: Source of the image tarball.
            cluster_name: Cluster to publish to.  Defaults to the
                configured cluster.
            timeout: Per-node command timeout in seconds.
            cancel_event: When set, in-flight node commands are killed.
            dry_run: If True, log what would be done without executing.

        Raises:
            NoNodesError: If the cluster has no nodes.
            ListNodesError: If the nodes could not be listed.
            ImageExportError: If the image could not be exported.
            AggregateError: If the import failed on one or more nodes.
        """
        nodes = self.nodes(cluster_name)
        command, args = import_command(self.config.ctr_binary, self.config.ctr_namespace)

        if dry_run:
            logger.info("[dry-run] Would import %s as %s on %d node(s): %s",
                        image, target_ref, len(nodes), ", ".join(n.name for n in nodes))
            logger.info("[dry-run] Command: %s", format_command(command, args))
            return

        data = export_tarball(image, str(target_ref))
        logger.info("Importing %s (%d bytes) on %d node(s)", target_ref, len(data), len(nodes))
        self._run(
            nodes, command, args,
            stream_for=lambda node: io.BytesIO(data),
            timeout=timeout, cancel_event=cancel_event,
        )
        logger.info("Imported %s on all %d node(s)", target_ref, len(nodes))

    def tag(
        self,
        old_ref: str,
        new_ref: str,
        cluster_name: str | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        dry_run: bool = False,
    ) -> None:
        """Tag *old_ref* as *new_ref* on every node of the cluster.

        An existing *new_ref* on a node is overwritten.

        Raises:
            NoNodesError: If the cluster has no nodes.
            ListNodesError: If the nodes could not be listed.
            AggregateError: If tagging failed on one or more nodes.
        """
        nodes = self.nodes(cluster_name)
        command, args = tag_command(
            old_ref, new_ref, self.config.ctr_binary, self.config.ctr_namespace,
        )

        if dry_run:
            logger.info("[dry-run] Would run on %d node(s): %s",
                        len(nodes), format_command(command, args))
            return

        logger.info("Tagging %s as %s on %d node(s)", old_ref, new_ref, len(nodes))
        self._run(nodes, command, args, timeout=timeout, cancel_event=cancel_event)
        logger.info("Tagged %s on all %d node(s)", new_ref, len(nodes))


def write(target_ref: str, image: Image, node_source: NodeSource | None = None,
          config: KindloadConfig | None = None, **kwargs) -> None:
    """Shortcut for :meth:`Publisher.write` with a default publisher."""
    Publisher(config, node_source).write(target_ref, image, **kwargs)


def tag(old_ref: str, new_ref: str, node_source: NodeSource | None = None,
        config: KindloadConfig | None = None, **kwargs) -> None:
    """Shortcut for :meth:`Publisher.tag` with a default publisher."""
    Publisher(config, node_source).tag(old_ref, new_ref, **kwargs)
