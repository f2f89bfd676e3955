"""Command-line interface for kindload."""

from __future__ import annotations

import logging
import sys

import click

from kindload import __version__
from kindload.config import load_config
from kindload.errors import KindloadError
from kindload.images import DockerImage, TarballImage
from kindload.publish import Publisher

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _publisher(ctx: click.Context) -> Publisher:
    try:
        return Publisher(load_config(ctx.obj.get("config_path")))
    except KindloadError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="kindload")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Config file (default: $KINDLOAD_CONFIG or ~/.config/kindload/config.yaml).")
@click.pass_context
def main(ctx, verbose, config_path):
    """kindload: load container images into every node of a cluster."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.argument("image")
@click.argument("target")
@click.option("--cluster", "cluster_name", default=None, help="Cluster name (default: from config).")
@click.option("--tarball", is_flag=True, help="Treat IMAGE as a path to a docker save tarball.")
@click.option("--timeout", type=float, default=None, help="Per-node timeout in seconds.")
@click.option("--dry-run", is_flag=True, help="Show what would be done without executing.")
@click.pass_context
def push(ctx, image, target, cluster_name, tarball, timeout, dry_run):
    """Import IMAGE into every node as TARGET."""
    publisher = _publisher(ctx)
    if tarball:
        source = TarballImage(image)
    else:
        source = DockerImage(image, runtime=publisher.config.container_runtime)
    try:
        publisher.write(target, source, cluster_name=cluster_name, timeout=timeout, dry_run=dry_run)
    except KindloadError as e:
        raise click.ClickException(str(e)) from e
    if not dry_run:
        click.echo("Loaded %s" % target)


@main.command()
@click.argument("old")
@click.argument("new")
@click.option("--cluster", "cluster_name", default=None, help="Cluster name (default: from config).")
@click.option("--timeout", type=float, default=None, help="Per-node timeout in seconds.")
@click.option("--dry-run", is_flag=True, help="Show what would be done without executing.")
@click.pass_context
def tag(ctx, old, new, cluster_name, timeout, dry_run):
    """Tag OLD as NEW on every node."""
    publisher = _publisher(ctx)
    try:
        publisher.tag(old, new, cluster_name=cluster_name, timeout=timeout, dry_run=dry_run)
    except KindloadError as e:
        raise click.ClickException(str(e)) from e
    if not dry_run:
        click.echo("Tagged %s as %s" % (old, new))


@main.command()
@click.option("--cluster", "cluster_name", default=None, help="Cluster name (default: from config).")
@click.pass_context
def nodes(ctx, cluster_name):
    """List the nodes images would be loaded into."""
    publisher = _publisher(ctx)
    try:
        found = publisher.nodes(cluster_name)
    except KindloadError as e:
        raise click.ClickException(str(e)) from e
    for node in found:
        click.echo(node.name)


if __name__ == "__main__":
    main()
