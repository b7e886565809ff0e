"""Image values and the builder functions that derive new images from old ones."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import cached_property
from typing import Mapping

from .layers import Layer, sha256_digest
from .media_types import MediaType
from .models import ConfigFile, Descriptor, History, Manifest, RootFS, dump_json

__all__ = [
    "EMPTY_IMAGE",
    "BuiltImage",
    "Image",
    "append_layers",
    "with_annotations",
    "with_config_file",
    "with_config_media_type",
    "with_media_type",
]


class Image(ABC):
    """
    A single-platform container image.

    Implementations supply the manifest, config file and layers; digests and
    descriptors are derived from the raw manifest bytes.
    """

    @abstractmethod
    def media_type(self) -> str: ...

    @abstractmethod
    def raw_manifest(self) -> bytes: ...

    @abstractmethod
    def raw_config_file(self) -> bytes: ...

    @abstractmethod
    def layers(self) -> list[Layer]:
        """Layers in manifest order, base layer first."""

    def manifest(self) -> Manifest:
        return Manifest.model_validate_json(self.raw_manifest())

    def config_file(self) -> ConfigFile:
        return ConfigFile.model_validate_json(self.raw_config_file())

    def config_name(self) -> str:
        return self.manifest().config.digest

    def digest(self) -> str:
        return sha256_digest(self.raw_manifest())

    def size(self) -> int:
        return len(self.raw_manifest())

    def descriptor(self) -> Descriptor:
        return Descriptor(mediaType=self.media_type(), size=self.size(), digest=self.digest())


@dataclass(frozen=True, eq=False)
class BuiltImage(Image):
    """
    An image assembled in memory.

    Never mutate one; use the builder functions of this module, which return
    a new value each time.
    """

    layer_list: tuple[Layer, ...]
    config: ConfigFile
    manifest_media_type: str
    config_media_type: str
    annotations: Mapping[str, str] | None = None

    @cached_property
    def _raw_config_file(self) -> bytes:
        return dump_json(self.config)

    @cached_property
    def _manifest(self) -> Manifest:
        raw_config = self._raw_config_file
        return Manifest(
            schemaVersion=2,
            mediaType=self.manifest_media_type,
            config=Descriptor(
                mediaType=self.config_media_type,
                size=len(raw_config),
                digest=sha256_digest(raw_config),
            ),
            layers=[layer.descriptor() for layer in self.layer_list],
            annotations=dict(self.annotations) if self.annotations else None,
        )

    @cached_property
    def _raw_manifest(self) -> bytes:
        return dump_json(self._manifest)

    def media_type(self) -> str:
        return self.manifest_media_type

    def manifest(self) -> Manifest:
        return self._manifest

    def raw_manifest(self) -> bytes:
        return self._raw_manifest

    def config_file(self) -> ConfigFile:
        return self.config

    def raw_config_file(self) -> bytes:
        return self._raw_config_file

    def layers(self) -> list[Layer]:
        return list(self.layer_list)


EMPTY_IMAGE = BuiltImage(
    layer_list=(),
    config=ConfigFile(rootfs=RootFS(type="layers", diff_ids=[])),
    manifest_media_type=MediaType.DOCKER_MANIFEST.value,
    config_media_type=MediaType.DOCKER_CONFIG.value,
)


def _as_built(image: Image) -> BuiltImage:
    if isinstance(image, BuiltImage):
        return image
    manifest = image.manifest()
    return BuiltImage(
        layer_list=tuple(image.layers()),
        config=image.config_file(),
        manifest_media_type=image.media_type(),
        config_media_type=manifest.config.media_type,
        annotations=manifest.annotations,
    )


def append_layers(
    image: Image, *layers: Layer, history: list[History] | None = None
) -> BuiltImage:
    """
    Return *image* with *layers* appended on top.

    Each layer's diff ID is added to the config's rootfs, together with one
    history entry per layer (empty unless *history* is given).
    """
    base = _as_built(image)
    if history is not None and len(history) != len(layers):
        raise ValueError("history must have one entry per appended layer")

    cfg = base.config
    diff_ids = list(cfg.rootfs.diff_ids) + [layer.diff_id() for layer in layers]
    entries = list(cfg.history or []) + list(history or [History() for _ in layers])
    config = cfg.model_copy(
        update={
            "rootfs": RootFS(type=cfg.rootfs.type, diff_ids=diff_ids),
            "history": entries or None,
        }
    )
    return dataclasses.replace(
        base, layer_list=base.layer_list + tuple(layers), config=config
    )


def with_media_type(image: Image, media_type: str) -> BuiltImage:
    return dataclasses.replace(_as_built(image), manifest_media_type=media_type)


def with_config_media_type(image: Image, media_type: str) -> BuiltImage:
    return dataclasses.replace(_as_built(image), config_media_type=media_type)


def with_annotations(image: Image, annotations: Mapping[str, str] | None) -> BuiltImage:
    """Merge *annotations* over the image manifest's existing annotations."""
    base = _as_built(image)
    merged = dict(base.annotations or {})
    merged.update(annotations or {})
    return dataclasses.replace(base, annotations=merged or None)


def with_config_file(image: Image, config_file: ConfigFile) -> BuiltImage:
    """Replace the config file; layers and their order are untouched."""
    return dataclasses.replace(_as_built(image), config=config_file)
