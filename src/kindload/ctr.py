"""containerd ``ctr`` command lines run on each node.

Kubernetes' CRI plugin only sees images in the ``k8s.io`` namespace, so
every command is namespaced there unless configured otherwise.
"""

from __future__ import annotations

from kindload.config import DEFAULT_CTR_BINARY, DEFAULT_CTR_NAMESPACE


def _base(binary: str, namespace: str) -> tuple[str, list[str]]:
    return binary, ["--namespace=%s" % namespace, "images"]


def import_command(
    binary: str = DEFAULT_CTR_BINARY,
    namespace: str = DEFAULT_CTR_NAMESPACE,
) -> tuple[str, list[str]]:
    """Import an image tarball read from stdin.

    The image name comes from the tarball's manifest, so no reference
    is passed on the command line.
    """
    command, args = _base(binary, namespace)
    return command, args + ["import", "-"]


def tag_command(
    old_ref: str,
    new_ref: str,
    binary: str = DEFAULT_CTR_BINARY,
    namespace: str = DEFAULT_CTR_NAMESPACE,
) -> tuple[str, list[str]]:
    """Tag *old_ref* as *new_ref*, replacing any existing *new_ref*."""
    command, args = _base(binary, namespace)
    return command, args + ["tag", "--force", str(old_ref), str(new_ref)]
