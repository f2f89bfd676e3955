"""Exception hierarchy for kindload.

Per-node failures are never dropped: :func:`~kindload.orchestration.fanout.run_on_all`
wraps each one in a :class:`NodeError` and raises them together as an
:class:`AggregateError`, which can be asked whether a given underlying error
is among its causes.
"""

from __future__ import annotations


class KindloadError(Exception):
    """Base class for all kindload errors."""


class ConfigError(KindloadError):
    """Invalid or unreadable configuration."""


class ListNodesError(KindloadError):
    """The provider failed to enumerate the nodes of a cluster."""

    def __init__(self, cluster_name: str, message: str):
        self.cluster_name = cluster_name
        super().__init__("failed to list nodes for cluster %r: %s" % (cluster_name, message))


class NoNodesError(KindloadError):
    """The cluster resolved to zero nodes."""

    def __init__(self, cluster_name: str):
        self.cluster_name = cluster_name
        super().__init__("no nodes available for cluster %r" % cluster_name)


class ImageExportError(KindloadError):
    """The image could not be rendered into a tarball."""


class NodeCommandError(KindloadError):
    """A command exited unsuccessfully on a node."""

    def __init__(
        self,
        node: str,
        argv: list[str],
        returncode: int | None = None,
        stderr: str = "",
        message: str | None = None,
    ):
        self.node = node
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = "command %r exited with status %s" % (" ".join(self.argv), returncode)
        detail = stderr.strip()
        if detail:
            message = "%s: %s" % (message, detail)
        super().__init__(message)


class CommandTimeoutError(NodeCommandError):
    """A node command ran past its timeout and was killed."""


class CommandCancelledError(NodeCommandError):
    """A node command was killed because the caller cancelled the operation."""


class NodeError(KindloadError):
    """One node's failure inside an :class:`AggregateError`."""

    def __init__(self, node: str, cause: BaseException):
        self.node = node
        self.cause = cause
        self.__cause__ = cause
        super().__init__("%s: %s" % (node, cause))


def _chain(exc: BaseException):
    """Yield *exc* followed by its ``__cause__``/``__context__`` chain."""
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def _matches(exc: BaseException, target) -> bool:
    if isinstance(target, type):
        return isinstance(exc, target)
    if exc is target:
        return True
    try:
        return exc == target
    except Exception:
        return False


class AggregateError(KindloadError):
    """Failures collected from a fan-out across several nodes.

    Attributes:
        errors: One :class:`NodeError` per failing node, in node order.
        total: Number of nodes that were attempted.
    """

    def __init__(self, errors: list[NodeError], total: int | None = None):
        self.errors = list(errors)
        self.total = total if total is not None else len(self.errors)
        lines = ["%d of %d node(s) failed:" % (len(self.errors), self.total)]
        lines.extend("  %s" % e for e in self.errors)
        super().__init__("\n".join(lines))

    @property
    def nodes(self) -> list[str]:
        """Names of the failing nodes."""
        return [e.node for e in self.errors]

    @property
    def causes(self) -> list[BaseException]:
        return [e.cause for e in self.errors]

    def contains(self, target) -> bool:
        """Return True if *target* appears among the per-node causes.

        *target* may be an exception instance (matched by identity or
        equality) or an exception class (matched with ``isinstance``).
        Each cause's ``__cause__``/``__context__`` chain is searched too.
        """
        for cause in self.causes:
            for exc in _chain(cause):
                if _matches(exc, target):
                    return True
        return False

    def __contains__(self, target) -> bool:
        return self.contains(target)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)
