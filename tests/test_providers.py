"""Tests for the kind and SSH host providers."""

from __future__ import annotations

import subprocess
from unittest import mock

import pytest

from kindload.config import KindloadConfig
from kindload.errors import ListNodesError
from kindload.providers import get_provider
from kindload.providers.hosts import HostsProvider, SSHNode
from kindload.providers.kind import ContainerNode, KindProvider


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestKindProvider:

    def test_lists_internal_nodes_sorted(self):
        ps_output = (
            "dev-worker2\tworker\n"
            "dev-external-load-balancer\texternal-load-balancer\n"
            "dev-control-plane\tcontrol-plane\n"
            "dev-worker\tworker\n"
        )
        with mock.patch("kindload.providers.kind.subprocess.run", return_value=_completed(ps_output)) as run:
            nodes = KindProvider().list_nodes("dev")

        assert [n.name for n in nodes] == ["dev-control-plane", "dev-worker", "dev-worker2"]
        argv = run.call_args[0][0]
        assert argv[:3] == ["docker", "ps", "-a"]
        assert "label=io.x-k8s.kind.cluster=dev" in argv

    def test_no_containers_is_empty(self):
        with mock.patch("kindload.providers.kind.subprocess.run", return_value=_completed("")):
            assert KindProvider().list_nodes("kind") == []

    def test_ps_failure(self):
        result = _completed(returncode=1, stderr="Cannot connect to the Docker daemon")
        with mock.patch("kindload.providers.kind.subprocess.run", return_value=result):
            with pytest.raises(ListNodesError, match="Cannot connect"):
                KindProvider().list_nodes("kind")

    def test_runtime_missing(self):
        with mock.patch("kindload.providers.kind.subprocess.run", side_effect=FileNotFoundError("docker")):
            with pytest.raises(ListNodesError):
                KindProvider().list_nodes("kind")

    def test_node_runs_exec(self):
        node = ContainerNode("kind-control-plane", runtime="podman")
        with mock.patch("kindload.providers.kind.run_streaming") as run:
            node.run_with_stdin("ctr", ["--namespace=k8s.io", "images", "import", "-"], stdin="s", timeout=5)

        run.assert_called_once_with(
            ["podman", "exec", "-i", "kind-control-plane", "ctr", "--namespace=k8s.io", "images", "import", "-"],
            stdin="s", node="kind-control-plane", timeout=5, cancel_event=None,
        )


class TestHostsProvider:

    def test_lists_configured_hosts(self):
        provider = HostsProvider({"dev": ["10.0.0.1", "10.0.0.2"]}, ssh_user="ubuntu")
        nodes = provider.list_nodes("dev")
        assert [n.name for n in nodes] == ["10.0.0.1", "10.0.0.2"]
        assert nodes[0].target == "ubuntu@10.0.0.1"

    def test_unknown_cluster(self):
        with pytest.raises(ListNodesError, match="unknown cluster"):
            HostsProvider({"dev": []}).list_nodes("prod")

    def test_empty_cluster(self):
        assert HostsProvider({"dev": []}).list_nodes("dev") == []

    def test_ssh_argv(self):
        node = SSHNode("10.0.0.1", ssh_user="root", ssh_key="/keys/id")
        argv = node.ssh_argv("ctr", ["--namespace=k8s.io", "images", "tag", "--force", "a:1", "b:2"])
        assert argv[0] == "ssh"
        assert argv[argv.index("-i") + 1] == "/keys/id"
        assert argv[-3:] == ["root@10.0.0.1", "--", "ctr --namespace=k8s.io images tag --force a:1 b:2"]


class TestGetProvider:

    def test_kind(self):
        provider = get_provider(KindloadConfig(container_runtime="podman"))
        assert isinstance(provider, KindProvider)
        assert provider.runtime == "podman"

    def test_hosts(self):
        provider = get_provider(KindloadConfig(provider="hosts", clusters={"a": ["h1"]}))
        assert isinstance(provider, HostsProvider)
        assert provider.clusters == {"a": ["h1"]}
