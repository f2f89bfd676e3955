"""Image sources and the ``docker save`` tarball exporter.

An :class:`Image` is anything that can produce a fresh readable stream of
a ``docker save``-format tarball on every :meth:`~Image.open` call.
:func:`export_tarball` reads that stream once and returns the bytes with
the target reference written into ``manifest.json``: ``ctr images import``
names the image from the archive itself, not from a command argument.
"""

from __future__ import annotations

import io
import json
import logging
import subprocess
import tarfile
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable

from kindload.errors import ImageExportError

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
INDEX_FILE = "index.json"
REPOSITORIES_FILE = "repositories"
CONTAINERD_NAME_ANNOTATION = "io.containerd.image.name"


@runtime_checkable
class Image(Protocol):
    """A source of ``docker save`` tarballs."""

    def open(self) -> BinaryIO:
        """Return a new stream positioned at the start of the tarball."""
        ...


class _ProcessReader(io.RawIOBase):
    """Readable stdout of a child process; closing it checks the exit status."""

    def __init__(self, proc: subprocess.Popen, description: str):
        super().__init__()
        self._proc = proc
        self._description = description

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        data = self._proc.stdout.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def close(self) -> None:
        if self.closed:
            return
        super().close()
        # Drain so the child is not left blocked on a full pipe.
        for _ in iter(lambda: self._proc.stdout.read(65536), b""):
            pass
        self._proc.stdout.close()
        stderr = self._proc.stderr.read().decode("utf-8", errors="replace")
        self._proc.stderr.close()
        rc = self._proc.wait()
        if rc != 0:
            raise ImageExportError(
                "%s exited with status %d: %s" % (self._description, rc, stderr.strip())
            )


class DockerImage:
    """An image held by the local docker (or podman) daemon."""

    def __init__(self, reference: str, runtime: str = "docker"):
        self.reference = str(reference)
        self.runtime = runtime

    def __str__(self) -> str:
        return self.reference

    def open(self) -> BinaryIO:
        argv = [self.runtime, "save", self.reference]
        logger.debug("Exporting image: %s", " ".join(argv))
        try:
            proc = subprocess.Popen(argv, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ImageExportError("could not run %s: %s" % (self.runtime, e)) from e
        return io.BufferedReader(_ProcessReader(proc, " ".join(argv)))


class TarballImage:
    """A ``docker save`` tarball on disk."""

    def __init__(self, path):
        self.path = Path(path)

    def __str__(self) -> str:
        return str(self.path)

    def open(self) -> BinaryIO:
        try:
            return self.path.open("rb")
        except OSError as e:
            raise ImageExportError("could not open tarball %s: %s" % (self.path, e)) from e


class BytesImage:
    """A tarball already held in memory."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def __str__(self) -> str:
        return "<%d byte tarball>" % len(self.data)

    def open(self) -> BinaryIO:
        return io.BytesIO(self.data)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def _rewrite_manifest(data: bytes, target_ref: str) -> bytes:
    try:
        manifest = json.loads(data)
    except ValueError as e:
        raise ImageExportError("invalid %s: %s" % (MANIFEST_FILE, e)) from e
    if not isinstance(manifest, list) or len(manifest) != 1:
        count = len(manifest) if isinstance(manifest, list) else "?"
        raise ImageExportError(
            "%s must describe exactly one image, found %s" % (MANIFEST_FILE, count)
        )
    if not isinstance(manifest[0], dict):
        raise ImageExportError("%s entry must be an object, got %r" % (MANIFEST_FILE, manifest[0]))
    manifest[0]["RepoTags"] = [target_ref]
    return json.dumps(manifest, separators=(",", ":")).encode()


def _rewrite_index(data: bytes, target_ref: str) -> bytes:
    try:
        index = json.loads(data)
    except ValueError as e:
        raise ImageExportError("invalid %s: %s" % (INDEX_FILE, e)) from e
    if not isinstance(index, dict):
        raise ImageExportError("%s must be an object" % INDEX_FILE)
    manifests = index.get("manifests") or []
    if not isinstance(manifests, list) or not all(isinstance(m, dict) for m in manifests):
        raise ImageExportError("%s manifests must be a list of objects" % INDEX_FILE)
    if len(manifests) == 1:
        annotations = manifests[0].setdefault("annotations", {})
        if not isinstance(annotations, dict):
            raise ImageExportError("%s annotations must be an object" % INDEX_FILE)
        annotations[CONTAINERD_NAME_ANNOTATION] = target_ref
    return json.dumps(index, separators=(",", ":")).encode()


def _read_member(tar: tarfile.TarFile, member: tarfile.TarInfo) -> bytes:
    if not member.isfile():
        raise ImageExportError("%s in image tarball is not a regular file" % member.name)
    return tar.extractfile(member).read()


def _add_bytes(out: tarfile.TarFile, member: tarfile.TarInfo, data: bytes) -> None:
    info = tarfile.TarInfo(member.name)
    info.mode = member.mode
    info.mtime = member.mtime
    info.size = len(data)
    out.addfile(info, io.BytesIO(data))


def export_tarball(image: Image, target_ref: str) -> bytes:
    """Serialize *image* as a tarball that ``ctr images import`` names *target_ref*.

    The source tarball is read in a single streaming pass.  Its
    ``manifest.json`` entry gets ``RepoTags`` set to ``[target_ref]``, the
    legacy ``repositories`` file is dropped, an OCI ``index.json`` naming a
    single manifest gets its containerd name annotation updated, and every
    other member is copied through unchanged.

    Args:
        image: Source of the ``docker save`` tarball.
        target_ref: Reference the image is imported as on every node.

    Returns:
        The complete rewritten tarball.

    Raises:
        ImageExportError: If the source is unreadable, is not a tarball,
            has no ``manifest.json``, or holds more than one image.
    """
    target_ref = str(target_ref)
    buf = io.BytesIO()
    found_manifest = False
    try:
        with image.open() as src, \
                tarfile.open(fileobj=src, mode="r|*") as tar, \
                tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as out:
            for member in tar:
                name = member.name[2:] if member.name.startswith("./") else member.name
                if name == REPOSITORIES_FILE:
                    continue
                if name == MANIFEST_FILE:
                    found_manifest = True
                    _add_bytes(out, member, _rewrite_manifest(_read_member(tar, member), target_ref))
                elif name == INDEX_FILE:
                    _add_bytes(out, member, _rewrite_index(_read_member(tar, member), target_ref))
                elif member.isfile():
                    out.addfile(member, tar.extractfile(member))
                else:
                    out.addfile(member)
    except tarfile.TarError as e:
        raise ImageExportError("could not read image tarball from %s: %s" % (image, e)) from e
    except OSError as e:
        raise ImageExportError("could not read image %s: %s" % (image, e)) from e

    if not found_manifest:
        raise ImageExportError("image tarball from %s has no %s" % (image, MANIFEST_FILE))

    data = buf.getvalue()
    logger.debug("Exported %s as %s (%d bytes)", image, target_ref, len(data))
    return data
