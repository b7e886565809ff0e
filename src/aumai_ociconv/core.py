"""Core logic for aumai-ociconv: Docker to OCI image and index conversion."""

from __future__ import annotations

import logging
from typing import Iterable

from .errors import stage
from .image import (
    EMPTY_IMAGE,
    Image,
    append_layers,
    with_annotations,
    with_config_file,
    with_config_media_type,
    with_media_type,
)
from .index import (
    ImageIndex,
    IndexAddendum,
    append_manifests,
    remove_manifests,
    with_index_media_type,
)
from .layers import Layer, transcode_layer
from .media_types import MediaType, is_image, to_oci
from .models import Config, ConfigFile, Descriptor

__all__ = [
    "convert_image",
    "convert_image_index",
    "convert_layers",
    "filter_config",
    "filter_config_file",
]

logger = logging.getLogger(__name__)


def filter_config(config: Config) -> Config:
    """
    Keep only the container config fields defined by the OCI image spec.

    Docker-only fields such as ``Healthcheck``, ``OnBuild`` or
    ``ArgsEscaped`` are dropped.
    https://github.com/opencontainers/image-spec/blob/main/config.md
    """
    return Config(
        User=config.user,
        ExposedPorts=config.exposed_ports,
        Env=config.env,
        Entrypoint=config.entrypoint,
        Cmd=config.cmd,
        Volumes=config.volumes,
        WorkingDir=config.working_dir,
        Labels=config.labels,
        StopSignal=config.stop_signal,
    )


def filter_config_file(config_file: ConfigFile) -> ConfigFile:
    """Return the OCI-portable subset of *config_file*."""
    return ConfigFile(
        created=config_file.created,
        author=config_file.author,
        architecture=config_file.architecture,
        os=config_file.os,
        os_version=config_file.os_version,
        history=config_file.history,
        rootfs=config_file.rootfs,
        config=filter_config(config_file.config),
    )


def convert_layers(layers: Iterable[Layer]) -> list[Layer]:
    """Transcode each layer in order; non-Docker layers pass through."""
    return [transcode_layer(layer) for layer in layers]


def convert_image(image: Image) -> Image:
    """
    Return an OCI copy of *image*.

    Layers keep their bytes, digests and order; only media types change.
    The config file is reduced to its OCI-portable fields and the manifest
    annotations are carried over. Any failure raises a ``ConversionError``
    naming the failing stage and no image is returned.
    """
    with stage("getting image manifest"):
        manifest = image.manifest()
    with stage("getting image config file"):
        config_file = filter_config_file(image.config_file())
    with stage("getting image layers"):
        layers = image.layers()
    with stage("converting layers"):
        layers = convert_layers(layers)

    with stage("appending layers"):
        converted = append_layers(EMPTY_IMAGE, *layers)
    # EMPTY_IMAGE carries Docker media types; swap in their OCI twins.
    converted = with_media_type(converted, to_oci(converted.media_type()))
    converted = with_config_media_type(
        converted, to_oci(converted.manifest().config.media_type)
    )
    converted = with_annotations(converted, manifest.annotations)
    with stage("setting config file"):
        converted = with_config_file(converted, config_file)
        digest = converted.digest()

    logger.info("Converted image to OCI image %s", digest)
    return converted


def convert_image_index(index: ImageIndex) -> ImageIndex:
    """
    Return an OCI copy of *index*.

    Every child image is converted with ``convert_image``. Children that are
    not single images (nested indices, attestations, signatures, entries
    without a media type) are kept exactly as they are. Converted entries
    are appended after the untouched ones, in their original order.
    """
    index = with_index_media_type(index, to_oci(MediaType.DOCKER_INDEX.value))
    with stage("getting index manifest"):
        index_manifest = index.index_manifest()

    removals: list[str] = []
    addenda: list[IndexAddendum] = []
    for desc in index_manifest.manifests:
        if not is_image(desc.media_type):
            logger.debug("Keeping %s (%s) as is", desc.digest, desc.media_type or "no media type")
            continue
        with stage(f"getting image {desc.digest}"):
            child = index.image(desc.digest)
        with stage(f"converting image {desc.digest}"):
            converted = convert_image(child)
            media_type = converted.media_type()
        removals.append(desc.digest)
        addenda.append(
            IndexAddendum(
                add=converted,
                descriptor=Descriptor(
                    mediaType=media_type,
                    urls=desc.urls,
                    annotations=desc.annotations,
                    platform=desc.platform,
                ),
            )
        )

    index = remove_manifests(index, removals)
    index = append_manifests(index, *addenda)
    logger.info("Converted %d image(s) of index", len(addenda))
    return index

