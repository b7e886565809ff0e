"""Known media types and the Docker to OCI mapping."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "DOCKER_TO_OCI",
    "MediaType",
    "classify",
    "is_docker",
    "is_foreign_layer",
    "is_image",
    "is_index",
    "is_layer",
    "is_uncompressed_layer",
    "to_oci",
]


class MediaType(str, Enum):
    """
    Closed set of media types this package understands.

    Anything not listed classifies as ``UNKNOWN``; the raw string stays on
    the descriptor so unknown values are passed through untouched.
    """

    DOCKER_LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
    DOCKER_UNCOMPRESSED_LAYER = "application/vnd.docker.image.rootfs.diff.tar"
    OCI_LAYER = "application/vnd.oci.image.layer.v1.tar+gzip"
    OCI_UNCOMPRESSED_LAYER = "application/vnd.oci.image.layer.v1.tar"
    DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
    OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
    DOCKER_CONFIG = "application/vnd.docker.container.image.v1+json"
    OCI_CONFIG = "application/vnd.oci.image.config.v1+json"
    DOCKER_INDEX = "application/vnd.docker.distribution.manifest.list.v2+json"
    OCI_INDEX = "application/vnd.oci.image.index.v1+json"
    UNKNOWN = ""


DOCKER_TO_OCI: dict[MediaType, MediaType] = {
    MediaType.DOCKER_MANIFEST: MediaType.OCI_MANIFEST,
    MediaType.DOCKER_CONFIG: MediaType.OCI_CONFIG,
    MediaType.DOCKER_LAYER: MediaType.OCI_LAYER,
    MediaType.DOCKER_UNCOMPRESSED_LAYER: MediaType.OCI_UNCOMPRESSED_LAYER,
    MediaType.DOCKER_INDEX: MediaType.OCI_INDEX,
}

_IMAGE_TYPES = frozenset({MediaType.DOCKER_MANIFEST, MediaType.OCI_MANIFEST})
_INDEX_TYPES = frozenset({MediaType.DOCKER_INDEX, MediaType.OCI_INDEX})
_LAYER_TYPES = frozenset(
    {
        MediaType.DOCKER_LAYER,
        MediaType.DOCKER_UNCOMPRESSED_LAYER,
        MediaType.OCI_LAYER,
        MediaType.OCI_UNCOMPRESSED_LAYER,
    }
)
_UNCOMPRESSED_LAYER_TYPES = frozenset(
    {MediaType.DOCKER_UNCOMPRESSED_LAYER, MediaType.OCI_UNCOMPRESSED_LAYER}
)

# Layers that registries serve from their own urls instead of as blobs.
_FOREIGN_LAYER_TYPES = frozenset(
    {
        "application/vnd.docker.image.rootfs.foreign.diff.tar.gzip",
        "application/vnd.oci.image.layer.nondistributable.v1.tar",
        "application/vnd.oci.image.layer.nondistributable.v1.tar+gzip",
        "application/vnd.oci.image.layer.nondistributable.v1.tar+zstd",
    }
)


def classify(value: str | MediaType | None) -> MediaType:
    """Return the ``MediaType`` member for *value*, or ``UNKNOWN``."""
    if not value:
        return MediaType.UNKNOWN
    try:
        return MediaType(value)
    except ValueError:
        return MediaType.UNKNOWN


def to_oci(value: str) -> str:
    """Map a Docker media type to its OCI twin; other values are returned as-is."""
    mapped = DOCKER_TO_OCI.get(classify(value))
    return mapped.value if mapped is not None else value


def is_image(value: str | MediaType | None) -> bool:
    """True when *value* denotes a single-platform image manifest."""
    return classify(value) in _IMAGE_TYPES


def is_index(value: str | MediaType | None) -> bool:
    return classify(value) in _INDEX_TYPES


def is_layer(value: str | MediaType | None) -> bool:
    return classify(value) in _LAYER_TYPES


def is_docker(value: str | MediaType | None) -> bool:
    return classify(value) in DOCKER_TO_OCI


def is_uncompressed_layer(value: str | MediaType | None) -> bool:
    """True for layer types whose blob is the raw tar stream."""
    return classify(value) in _UNCOMPRESSED_LAYER_TYPES


def is_foreign_layer(value: str | MediaType | None) -> bool:
    """True for non-distributable layers, which are never copied as blobs."""
    return value in _FOREIGN_LAYER_TYPES
