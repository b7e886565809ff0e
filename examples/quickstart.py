"""
aumai-ociconv quickstart: build Docker images in memory, convert them to OCI,
and convert an OCI image layout on disk.

Run directly:

    python examples/quickstart.py

All demos use a temporary directory and clean up after themselves.
"""

from __future__ import annotations

import gzip
import io
import json
import pathlib
import tarfile
import tempfile


def _make_tar(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, data in sorted(files.items()):
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def _make_docker_image(arch: str):
    from aumai_ociconv.image import EMPTY_IMAGE, append_layers, with_config_file
    from aumai_ociconv.layers import layer_from_bytes
    from aumai_ociconv.media_types import MediaType
    from aumai_ociconv.models import ConfigFile

    layer = layer_from_bytes(
        gzip.compress(_make_tar({"hello.txt": f"hello from {arch}\n".encode()}), mtime=0),
        MediaType.DOCKER_LAYER.value,
    )
    image = append_layers(EMPTY_IMAGE, layer)
    config = json.loads(image.raw_config_file())
    config.update(
        architecture=arch,
        os="linux",
        config={
            "Cmd": ["/bin/cat", "/hello.txt"],
            "Healthcheck": {"Test": ["NONE"]},
            "OnBuild": ["RUN echo child"],
        },
    )
    return with_config_file(image, ConfigFile.model_validate(config))


# ---------------------------------------------------------------------------
# Demo 1: Convert a single image
# ---------------------------------------------------------------------------

def demo_convert_image() -> None:
    """Convert one Docker image and compare the two manifests."""
    print("\n=== Demo 1: Convert a Docker image ===")

    from aumai_ociconv.core import convert_image

    docker = _make_docker_image("amd64")
    oci = convert_image(docker)

    print(f"  Docker manifest : {docker.media_type()}  {docker.digest()[:19]}...")
    print(f"  OCI manifest    : {oci.media_type()}  {oci.digest()[:19]}...")
    print(f"  Config type     : {oci.manifest().config.media_type}")
    for old, new in zip(docker.manifest().layers, oci.manifest().layers):
        same = "same digest" if old.digest == new.digest else "NEW DIGEST"
        print(f"  Layer           : {old.media_type} -> {new.media_type} ({same})")
    print(f"  Docker config   : {sorted(docker.config_file().config.model_dump(by_alias=True, exclude_none=True))}")
    print(f"  OCI config      : {sorted(oci.config_file().config.model_dump(by_alias=True, exclude_none=True))}")


# ---------------------------------------------------------------------------
# Demo 2: Convert a manifest list
# ---------------------------------------------------------------------------

def demo_convert_index() -> None:
    """Convert a two-platform manifest list, keeping each entry's platform."""
    print("\n=== Demo 2: Convert a manifest list ===")

    from aumai_ociconv.core import convert_image_index
    from aumai_ociconv.index import (
        EMPTY_INDEX,
        IndexAddendum,
        append_manifests,
        with_index_media_type,
    )
    from aumai_ociconv.media_types import MediaType
    from aumai_ociconv.models import Descriptor, Platform

    index = with_index_media_type(EMPTY_INDEX, MediaType.DOCKER_INDEX.value)
    index = append_manifests(
        index,
        *(
            IndexAddendum(
                add=_make_docker_image(arch),
                descriptor=Descriptor(platform=Platform(os="linux", architecture=arch)),
            )
            for arch in ("amd64", "arm64")
        ),
    )
    converted = convert_image_index(index)

    print(f"  Index type : {index.media_type()} -> {converted.media_type()}")
    for desc in converted.index_manifest().manifests:
        print(f"    {str(desc.platform):<12}  {desc.media_type}  {desc.digest[:19]}...")


# ---------------------------------------------------------------------------
# Demo 3: Convert an image layout on disk
# ---------------------------------------------------------------------------

def demo_convert_layout() -> None:
    """Write a Docker layout, convert it and list the converted blobs."""
    print("\n=== Demo 3: Convert a layout on disk ===")

    from aumai_ociconv.index import EMPTY_INDEX, IndexAddendum, append_manifests
    from aumai_ociconv.layout import convert_layout, read_layout, write_layout
    from aumai_ociconv.models import Descriptor

    with tempfile.TemporaryDirectory() as tmp:
        root = append_manifests(
            EMPTY_INDEX,
            IndexAddendum(
                add=_make_docker_image("amd64"),
                descriptor=Descriptor(
                    annotations={"org.opencontainers.image.ref.name": "hello:latest"}
                ),
            ),
        )
        src = write_layout(pathlib.Path(tmp) / "docker", root)
        dst = write_layout(pathlib.Path(tmp) / "oci", convert_layout(read_layout(src)))

        print(f"  Source layout : {src}")
        print(f"  Output layout : {dst}")
        index = json.loads((dst / "index.json").read_text(encoding="utf-8"))
        for desc in index["manifests"]:
            ref = desc.get("annotations", {}).get("org.opencontainers.image.ref.name", "")
            print(f"    {ref:<14}  {desc['mediaType']}")
        blobs = sorted((dst / "blobs" / "sha256").iterdir())
        print(f"  Blobs ({len(blobs)}):")
        for blob in blobs:
            print(f"    {blob.name[:16]}...  {blob.stat().st_size:6d} bytes")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    print("aumai-ociconv quickstart demo")
    print("=" * 40)

    demo_convert_image()
    demo_convert_index()
    demo_convert_layout()

    print("\n" + "=" * 40)
    print("All demos completed successfully.")


if __name__ == "__main__":
    main()
