"""CLI entry point for aumai-ociconv."""

from __future__ import annotations

import logging
import sys

import click

from .errors import ConversionError
from .image import Image
from .layout import convert_layout, read_layout, write_layout
from .media_types import is_image, is_index


@click.group()
@click.version_option()
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    envvar="AUMAI_OCICONV_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity.",
)
def main(log_level: str) -> None:
    """AumAI OCIConv: convert Docker images and manifest lists to OCI."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("convert")
@click.option(
    "--src",
    "src_dir",
    required=True,
    type=click.Path(exists=True, file_okay=False),
    help="OCI image layout holding the Docker images.",
)
@click.option(
    "--dst",
    "dst_dir",
    required=True,
    type=click.Path(file_okay=False),
    help="Directory to write the converted layout to. Must be empty or absent.",
)
def convert_command(src_dir: str, dst_dir: str) -> None:
    """Convert every image and index of an OCI layout to OCI media types."""
    try:
        source = read_layout(src_dir)
        converted = convert_layout(source)
        write_layout(dst_dir, converted)
    except (ConversionError, OSError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Converted layout: {dst_dir}")
    for desc in converted.index_manifest().manifests:
        name = (desc.annotations or {}).get("org.opencontainers.image.ref.name", "")
        click.echo(f"  {desc.media_type:<50}  {desc.digest[:19]}...  {name}")


@main.command("inspect")
@click.option(
    "--layout",
    "layout_dir",
    required=True,
    type=click.Path(exists=True, file_okay=False),
    help="Path to the OCI image layout.",
)
def inspect_command(layout_dir: str) -> None:
    """Inspect the entries of an OCI layout without changing it."""
    try:
        index = read_layout(layout_dir)
        manifests = index.index_manifest().manifests
        click.echo(f"Entries ({len(manifests)}):")
        for desc in manifests:
            platform = f"  [{desc.platform}]" if desc.platform else ""
            click.echo(f"  {desc.media_type or '(no media type)'}  {desc.digest}{platform}")
            if is_image(desc.media_type):
                _echo_image(index.image(desc.digest), indent="    ")
            elif is_index(desc.media_type):
                child = index.image_index(desc.digest)
                for sub in child.index_manifest().manifests:
                    sub_platform = f"  [{sub.platform}]" if sub.platform else ""
                    click.echo(f"    {sub.media_type}  {sub.digest}{sub_platform}")
                    if is_image(sub.media_type):
                        _echo_image(child.image(sub.digest), indent="      ")
    except (ConversionError, ValueError) as exc:
        click.echo(f"Error inspecting layout: {exc}", err=True)
        sys.exit(1)


def _echo_image(image: Image, indent: str) -> None:
    manifest = image.manifest()
    click.echo(f"{indent}config  {manifest.config.media_type}")
    for layer in manifest.layers:
        size_kb = layer.size / 1024
        click.echo(f"{indent}layer   {layer.media_type}  {size_kb:8.1f} KB  {layer.digest[:23]}...")


if __name__ == "__main__":
    main()
