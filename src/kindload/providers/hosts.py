"""Clusters of SSH hosts declared in configuration."""

from __future__ import annotations

import os
import threading
from typing import BinaryIO

from kindload.errors import ListNodesError
from kindload.orchestration.process import run_streaming
from kindload.utils import quote_command

SSH_OPTIONS = [
    "-o", "BatchMode=yes",
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "ServerAliveInterval=5",
    "-o", "ServerAliveCountMax=3",
    "-o", "ConnectTimeout=30",
]


class SSHNode:
    """A remote host reached over ``ssh``.

    The remote command gets the same stdin as the local ``ssh`` process,
    so an image tarball streams straight into ``ctr images import -``.
    """

    def __init__(self, host: str, ssh_user: str | None = None, ssh_key: str | None = None):
        self.host = host
        self.ssh_user = ssh_user
        self.ssh_key = os.path.expanduser(ssh_key) if ssh_key else None

    @property
    def name(self) -> str:
        return self.host

    def __repr__(self) -> str:
        return "SSHNode(%r)" % self.host

    @property
    def target(self) -> str:
        return "%s@%s" % (self.ssh_user, self.host) if self.ssh_user else self.host

    def ssh_argv(self, command: str, args: list[str]) -> list[str]:
        argv = ["ssh", "-T", *SSH_OPTIONS]
        if self.ssh_key:
            argv.extend(["-i", self.ssh_key])
        argv.extend([self.target, "--", quote_command([command, *args])])
        return argv

    def run_with_stdin(
        self,
        command: str,
        args: list[str],
        stdin: BinaryIO | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        run_streaming(
            self.ssh_argv(command, args), stdin=stdin, node=self.name,
            timeout=timeout, cancel_event=cancel_event,
        )


class HostsProvider:
    """Maps cluster names to the hosts listed under ``clusters`` in the config."""

    def __init__(
        self,
        clusters: dict[str, list[str]],
        ssh_user: str | None = None,
        ssh_key: str | None = None,
    ):
        self.clusters = clusters
        self.ssh_user = ssh_user
        self.ssh_key = ssh_key

    def list_nodes(self, cluster_name: str) -> list[SSHNode]:
        if cluster_name not in self.clusters:
            known = ", ".join(sorted(self.clusters)) or "none"
            raise ListNodesError(cluster_name, "unknown cluster (configured: %s)" % known)
        return [
            SSHNode(host, ssh_user=self.ssh_user, ssh_key=self.ssh_key)
            for host in self.clusters[cluster_name]
        ]
