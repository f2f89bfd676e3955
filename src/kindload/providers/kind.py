"""kind clusters: nodes are local containers run by docker or podman.

kind labels every node container with the cluster it belongs to and the
role it plays.  Internal nodes are every role except the external load
balancer, which runs haproxy and has no container runtime.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import BinaryIO

from kindload.errors import ListNodesError
from kindload.orchestration.process import run_streaming

logger = logging.getLogger(__name__)

CLUSTER_LABEL = "io.x-k8s.kind.cluster"
ROLE_LABEL = "io.x-k8s.kind.role"
EXTERNAL_LOAD_BALANCER = "external-load-balancer"


class ContainerNode:
    """A kind node container, reached with ``<runtime> exec -i``."""

    def __init__(self, container: str, role: str = "", runtime: str = "docker"):
        self.container = container
        self.role = role
        self.runtime = runtime

    @property
    def name(self) -> str:
        return self.container

    def __repr__(self) -> str:
        return "ContainerNode(%r, role=%r)" % (self.container, self.role)

    def exec_argv(self, command: str, args: list[str]) -> list[str]:
        return [self.runtime, "exec", "-i", self.container, command, *args]

    def run_with_stdin(
        self,
        command: str,
        args: list[str],
        stdin: BinaryIO | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        run_streaming(
            self.exec_argv(command, args), stdin=stdin, node=self.name,
            timeout=timeout, cancel_event=cancel_event,
        )


class KindProvider:
    """Lists the node containers of a kind cluster."""

    def __init__(self, runtime: str = "docker"):
        self.runtime = runtime

    def _ps(self, cluster_name: str) -> str:
        argv = [
            self.runtime, "ps", "-a",
            "--filter", "label=%s=%s" % (CLUSTER_LABEL, cluster_name),
            "--format", '{{.Names}}\t{{.Label "%s"}}' % ROLE_LABEL,
        ]
        logger.debug("Listing kind nodes: %s", " ".join(argv))
        try:
            result = subprocess.run(argv, capture_output=True, text=True, timeout=60)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ListNodesError(cluster_name, str(e)) from e
        if result.returncode != 0:
            raise ListNodesError(
                cluster_name,
                "%s ps exited with status %d: %s" % (self.runtime, result.returncode, result.stderr.strip()),
            )
        return result.stdout

    def list_nodes(self, cluster_name: str) -> list[ContainerNode]:
        """Return the internal nodes of *cluster_name*, sorted by container name."""
        nodes = []
        for line in self._ps(cluster_name).splitlines():
            line = line.strip()
            if not line:
                continue
            container, _, role = line.partition("\t")
            if role == EXTERNAL_LOAD_BALANCER:
                continue
            nodes.append(ContainerNode(container, role=role, runtime=self.runtime))
        nodes.sort(key=lambda n: n.container)
        return nodes
