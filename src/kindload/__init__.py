"""kindload - Load container images into every node of a kind (or SSH) cluster."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("kindload")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
