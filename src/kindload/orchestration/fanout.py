"""Run one action against every node of a cluster and aggregate failures."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from kindload.config import MAX_WORKERS_CAP
from kindload.errors import AggregateError, NodeError
from kindload.nodes import Node

logger = logging.getLogger(__name__)


def run_on_all(
    nodes: Sequence[Node],
    action: Callable[[Node], None],
    max_workers: int | None = None,
) -> None:
    """Invoke *action* once for each node, in parallel.

    Every node is attempted: a failure on one node never stops the
    action from running on the others.  Zero nodes is a successful no-op;
    callers that need at least one node must check for that themselves.

    Args:
        nodes: Nodes to run against.
        action: Callable taking a node; it signals failure by raising.
        max_workers: Upper bound on concurrent actions.  Defaults to one
            worker per node, capped at ``MAX_WORKERS_CAP``.

    Raises:
        AggregateError: If any action raised.  Holds one
            :class:`~kindload.errors.NodeError` per failing node, in the
            order of *nodes*.
    """
    if not nodes:
        return

    workers = max_workers or min(len(nodes), MAX_WORKERS_CAP)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kindload") as pool:
        futures = [pool.submit(action, node) for node in nodes]

    failures: list[NodeError] = []
    for node, future in zip(nodes, futures):
        exc = future.exception()
        if exc is None:
            continue
        logger.warning("Node %s failed: %s", node.name, exc)
        failures.append(NodeError(node.name, exc))

    if failures:
        raise AggregateError(failures, total=len(nodes))
