"""Image index values and the builder functions that derive new indices."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterable

from .errors import SourceReadError
from .image import Image
from .layers import sha256_digest
from .media_types import MediaType
from .models import Descriptor, IndexManifest, dump_json

__all__ = [
    "EMPTY_INDEX",
    "BuiltIndex",
    "ImageIndex",
    "IndexAddendum",
    "append_manifests",
    "remove_manifests",
    "with_index_media_type",
]


class ImageIndex(ABC):
    """A list of manifests, usually one image per platform."""

    @abstractmethod
    def media_type(self) -> str: ...

    @abstractmethod
    def raw_manifest(self) -> bytes: ...

    @abstractmethod
    def image(self, digest: str) -> Image:
        """Return the child image whose manifest has *digest*."""

    @abstractmethod
    def image_index(self, digest: str) -> "ImageIndex":
        """Return the nested index whose manifest has *digest*."""

    @abstractmethod
    def blob(self, digest: str) -> bytes:
        """Return the raw bytes of a child this index does not interpret."""

    def index_manifest(self) -> IndexManifest:
        return IndexManifest.model_validate_json(self.raw_manifest())

    def digest(self) -> str:
        return sha256_digest(self.raw_manifest())

    def size(self) -> int:
        return len(self.raw_manifest())

    def descriptor(self) -> Descriptor:
        return Descriptor(mediaType=self.media_type(), size=self.size(), digest=self.digest())


@dataclass(frozen=True)
class IndexAddendum:
    """
    A value to append to an index.

    ``descriptor`` is a template: its urls, annotations and platform are
    copied, and its media type is used when set. Digest and size always come
    from ``add``.
    """

    add: Image | ImageIndex
    descriptor: Descriptor = field(default_factory=Descriptor)

    def resolve(self) -> Descriptor:
        template = self.descriptor
        return Descriptor(
            mediaType=template.media_type or self.add.media_type(),
            size=self.add.size(),
            digest=self.add.digest(),
            urls=template.urls,
            annotations=template.annotations,
            platform=template.platform,
            artifactType=template.artifact_type,
        )


@dataclass(frozen=True, eq=False)
class BuiltIndex(ImageIndex):
    """
    One builder step applied on top of ``base``.

    Removals apply to ``base`` only; addenda are appended after them. Steps
    chain by wrapping, so the source index is never touched.
    """

    base: ImageIndex | None = None
    index_media_type: str | None = None
    removals: frozenset[str] = frozenset()
    addenda: tuple[IndexAddendum, ...] = ()

    @cached_property
    def _index_manifest(self) -> IndexManifest:
        if self.base is not None:
            base = self.base.index_manifest()
        else:
            base = IndexManifest(schemaVersion=2, manifests=[])

        manifests = [d for d in base.manifests if d.digest not in self.removals]
        manifests.extend(addendum.resolve() for addendum in self.addenda)

        update: dict = {"manifests": manifests}
        if self.index_media_type:
            update["media_type"] = self.index_media_type
        return base.model_copy(update=update)

    @cached_property
    def _raw_manifest(self) -> bytes:
        return dump_json(self._index_manifest)

    def media_type(self) -> str:
        if self.index_media_type:
            return self.index_media_type
        if self.base is not None:
            return self.base.media_type()
        return MediaType.OCI_INDEX.value

    def index_manifest(self) -> IndexManifest:
        return self._index_manifest

    def raw_manifest(self) -> bytes:
        return self._raw_manifest

    def _added(self, digest: str) -> Image | ImageIndex | None:
        for addendum in self.addenda:
            if addendum.add.digest() == digest:
                return addendum.add
        return None

    def image(self, digest: str) -> Image:
        added = self._added(digest)
        if isinstance(added, Image):
            return added
        if self.base is None:
            raise SourceReadError(f"getting image {digest}", "not found in index")
        return self.base.image(digest)

    def image_index(self, digest: str) -> ImageIndex:
        added = self._added(digest)
        if isinstance(added, ImageIndex):
            return added
        if self.base is None:
            raise SourceReadError(f"getting index {digest}", "not found in index")
        return self.base.image_index(digest)

    def blob(self, digest: str) -> bytes:
        added = self._added(digest)
        if added is not None:
            return added.raw_manifest()
        if self.base is None:
            raise SourceReadError(f"getting blob {digest}", "not found in index")
        return self.base.blob(digest)


EMPTY_INDEX = BuiltIndex(index_media_type=MediaType.OCI_INDEX.value)


def with_index_media_type(index: ImageIndex, media_type: str) -> BuiltIndex:
    return BuiltIndex(base=index, index_media_type=media_type)


def remove_manifests(index: ImageIndex, digests: Iterable[str]) -> BuiltIndex:
    """Drop every descriptor of *index* whose digest is in *digests*."""
    return BuiltIndex(base=index, removals=frozenset(digests))


def append_manifests(index: ImageIndex, *addenda: IndexAddendum) -> BuiltIndex:
    return BuiltIndex(base=index, addenda=tuple(addenda))

