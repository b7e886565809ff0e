"""Shared test fixtures for aumai-ociconv."""

from __future__ import annotations

from pathlib import Path

import pytest

from aumai_ociconv.image import Image
from aumai_ociconv.index import EMPTY_INDEX, ImageIndex, IndexAddendum, append_manifests
from aumai_ociconv.layers import BytesLayer, sha256_digest
from aumai_ociconv.layout import write_layout
from aumai_ociconv.models import Descriptor, Platform

from builders import (
    ATTESTATION_MEDIA_TYPE,
    REF_NAME,
    StaticIndex,
    make_docker_image,
    make_docker_index,
    make_docker_layer,
    make_docker_uncompressed_layer,
)


# ---------------------------------------------------------------------------
# Layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def docker_layer() -> BytesLayer:
    return make_docker_layer({"app": b"\x7fELF" + b"\x00" * 512, "etc/motd": b"hello\n"})


@pytest.fixture()
def docker_uncompressed_layer() -> BytesLayer:
    return make_docker_uncompressed_layer({"srv/index.html": b"<html></html>\n"})


# ---------------------------------------------------------------------------
# Image fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def docker_image(docker_layer: BytesLayer) -> Image:
    """Scenario 1: one Docker gzip layer, a config with a Healthcheck."""
    return make_docker_image(
        [docker_layer], annotations={"org.opencontainers.image.source": "https://example.com/app"}
    )


@pytest.fixture()
def two_layer_image(docker_layer: BytesLayer, docker_uncompressed_layer: BytesLayer) -> Image:
    return make_docker_image([docker_layer, docker_uncompressed_layer])


# ---------------------------------------------------------------------------
# Index fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def platform_images() -> dict[str, Image]:
    return {
        arch: make_docker_image(
            [make_docker_layer({"arch": arch.encode()})], architecture=arch
        )
        for arch in ("amd64", "arm64")
    }


@pytest.fixture()
def docker_index(platform_images: dict[str, Image]) -> ImageIndex:
    """Scenario 2: linux/amd64 and linux/arm64, each annotated foo=bar."""
    return make_docker_index(
        *(
            (
                image,
                Descriptor(
                    platform=Platform(os="linux", architecture=arch),
                    annotations={"foo": "bar"},
                ),
            )
            for arch, image in platform_images.items()
        )
    )


@pytest.fixture()
def attestation_blob() -> bytes:
    return b'{"_type":"https://in-toto.io/Statement/v0.1","subject":[]}'


@pytest.fixture()
def mixed_index(docker_image: Image, attestation_blob: bytes) -> StaticIndex:
    """One Docker image entry and one attestation entry."""
    image_desc = docker_image.descriptor().model_copy(
        update={
            "platform": Platform(os="linux", architecture="amd64"),
            "annotations": {"foo": "bar"},
            "urls": ["https://mirror.example.com/app"],
        }
    )
    attestation_desc = Descriptor(
        mediaType=ATTESTATION_MEDIA_TYPE,
        size=len(attestation_blob),
        digest=sha256_digest(attestation_blob),
        annotations={"vnd.docker.reference.type": "attestation-manifest"},
    )
    return StaticIndex(
        manifests=[image_desc, attestation_desc],
        images={docker_image.digest(): docker_image},
        blobs={attestation_desc.digest: attestation_blob},
    )


# ---------------------------------------------------------------------------
# Layout fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def docker_layout(tmp_path: Path, docker_image: Image, docker_index: ImageIndex) -> Path:
    """An OCI layout holding one Docker image and one Docker manifest list."""
    root = append_manifests(
        EMPTY_INDEX,
        IndexAddendum(add=docker_image, descriptor=Descriptor(annotations={REF_NAME: "app:v1"})),
        IndexAddendum(add=docker_index, descriptor=Descriptor(annotations={REF_NAME: "multi:v1"})),
    )
    return write_layout(tmp_path / "docker-layout", root)


@pytest.fixture()
def mixed_layout(tmp_path: Path, mixed_index: StaticIndex) -> Path:
    """An OCI layout whose index.json lists an image and an attestation."""
    return write_layout(tmp_path / "mixed-layout", mixed_index)
