"""Shared fixtures: fake providers and nodes, and small image tarballs."""

from __future__ import annotations

import io
import json
import tarfile
import threading

import pytest

from kindload.config import KindloadConfig
from kindload.nodes import NodeSource


class FakeCommand:
    """One command a FakeNode was asked to run."""

    def __init__(self, command, args, stdin_bytes):
        self.command = command
        self.args = list(args)
        self.cmd = " ".join([command, *args])
        self.stdin = stdin_bytes


class FakeNode:
    """Records every command and consumes its entire stdin."""

    def __init__(self, name="test", err=None):
        self._name = name
        self.err = err
        self.cmds: list[FakeCommand] = []
        self._lock = threading.Lock()

    @property
    def name(self):
        return self._name

    def run_with_stdin(self, command, args, stdin=None, timeout=None, cancel_event=None):
        data = stdin.read() if stdin is not None else None
        with self._lock:
            self.cmds.append(FakeCommand(command, args, data))
        if self.err is not None:
            raise self.err


class FakeProvider:
    def __init__(self, nodes=None):
        self.nodes = list(nodes or [])
        self.calls: list[str] = []

    def list_nodes(self, cluster_name):
        self.calls.append(cluster_name)
        return self.nodes


def make_image_tarball(repo_tags=("example.com/app:v1",), layers=(b"layer-one", b"layer-two"),
                       with_repositories=True) -> bytes:
    """Build a minimal ``docker save`` style tarball."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        def add(name, data):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

        layer_names = []
        for i, layer in enumerate(layers):
            name = "blobs/sha256/layer%d" % i
            add(name, layer)
            layer_names.append(name)
        add("blobs/sha256/config", b'{"architecture":"amd64"}')
        if with_repositories:
            add("repositories", b'{"example.com/app":{"v1":"layer1"}}')
        manifest = [{
            "Config": "blobs/sha256/config",
            "RepoTags": list(repo_tags),
            "Layers": layer_names,
        }]
        add("manifest.json", json.dumps(manifest).encode())
    return buf.getvalue()


def read_members(data: bytes) -> dict[str, bytes]:
    """Return ``{name: content}`` for every regular file in a tarball."""
    out = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        for member in tar:
            if member.isfile():
                out[member.name] = tar.extractfile(member).read()
    return out


@pytest.fixture
def config():
    return KindloadConfig()


@pytest.fixture
def make_source():
    """Build a NodeSource backed by a FakeProvider holding *nodes*."""
    def _make(nodes):
        return NodeSource.from_provider(FakeProvider(nodes))
    return _make


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the user's config file and environment out of every test."""
    monkeypatch.setenv("KINDLOAD_CONFIG", str(tmp_path / "missing-config.yaml"))
    for var in ("KIND_CLUSTER_NAME", "KINDLOAD_PROVIDER", "KIND_EXPERIMENTAL_PROVIDER",
                "KINDLOAD_CTR", "KINDLOAD_NAMESPACE", "KINDLOAD_MAX_WORKERS",
                "KINDLOAD_TIMEOUT", "KINDLOAD_SSH_USER", "KINDLOAD_SSH_KEY"):
        monkeypatch.delenv(var, raising=False)
