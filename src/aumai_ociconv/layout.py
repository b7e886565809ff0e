"""
Reading and writing OCI image layouts.

Layout structure::

    oci-layout              # {"imageLayoutVersion": "1.0.0"}
    index.json              # top-level image index
    blobs/sha256/<hex>      # manifests, configs and layers

https://github.com/opencontainers/image-spec/blob/main/image-layout.md
"""

from __future__ import annotations

import gzip
import hashlib
import io
import json
import logging
import os
import re
import shutil
import tempfile
from functools import cached_property
from pathlib import Path
from typing import Any, BinaryIO, Iterator

from .core import convert_image, convert_image_index
from .errors import LayoutError, stage
from .image import Image
from .index import (
    ImageIndex,
    IndexAddendum,
    append_manifests,
    remove_manifests,
    with_index_media_type,
)
from .layers import Layer
from .media_types import (
    MediaType,
    is_foreign_layer,
    is_image,
    is_index,
    is_uncompressed_layer,
    to_oci,
)
from .models import Descriptor

__all__ = [
    "LayoutImage",
    "LayoutIndex",
    "LayoutLayer",
    "LayoutPath",
    "convert_layout",
    "read_layout",
    "write_layout",
]

logger = logging.getLogger(__name__)

_OCI_LAYOUT_FILENAME = "oci-layout"
_INDEX_FILENAME = "index.json"
_BLOBS_DIR = "blobs"
_LAYOUT_VERSION = "1.0.0"
_CHUNK_SIZE = 65536
_GZIP_MAGIC = b"\x1f\x8b"
_DIGEST_RE = re.compile(r"^(?P<alg>[a-z0-9]+(?:[.+_-][a-z0-9]+)*):(?P<hex>[a-zA-Z0-9=_-]+)$")


class LayoutPath:
    """Locates blobs inside a layout directory."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def __str__(self) -> str:
        return str(self.root)

    def blob_path(self, digest: str) -> Path:
        match = _DIGEST_RE.match(digest or "")
        if match is None:
            raise LayoutError(f"resolving blob {digest!r}", "malformed digest")
        return self.root / _BLOBS_DIR / match.group("alg") / match.group("hex")

    def open_blob(self, digest: str) -> BinaryIO:
        path = self.blob_path(digest)
        try:
            return open(path, "rb")
        except OSError as exc:
            raise LayoutError(f"opening blob {digest}", exc) from exc

    def read_blob(self, digest: str) -> bytes:
        with self.open_blob(digest) as fh:
            return fh.read()


class LayoutLayer(Layer):
    """A layer blob stored in a layout."""

    def __init__(
        self, path: LayoutPath, descriptor: Descriptor, diff_id: str | None = None
    ) -> None:
        self._path = path
        self._descriptor = descriptor
        self._diff_id = diff_id

    def digest(self) -> str:
        return self._descriptor.digest

    def diff_id(self) -> str:
        if self._diff_id is None:
            h = hashlib.sha256()
            with self.uncompressed() as fh:
                for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                    h.update(chunk)
            self._diff_id = f"sha256:{h.hexdigest()}"
        return self._diff_id

    def size(self) -> int:
        return self._descriptor.size

    def media_type(self) -> str:
        return self._descriptor.media_type

    def descriptor(self) -> Descriptor:
        # Keeps urls and annotations of non-distributable layers.
        return self._descriptor

    def compressed(self) -> BinaryIO:
        return self._path.open_blob(self.digest())

    def uncompressed(self) -> BinaryIO:
        if is_uncompressed_layer(self.media_type()):
            return self._path.open_blob(self.digest())
        with self._path.open_blob(self.digest()) as fh:
            magic = fh.read(2)
        if magic == _GZIP_MAGIC:
            return gzip.open(self._path.blob_path(self.digest()), "rb")
        return self._path.open_blob(self.digest())


class LayoutImage(Image):
    """An image whose manifest, config and layers are blobs of a layout."""

    def __init__(self, path: LayoutPath, descriptor: Descriptor) -> None:
        self._path = path
        self._descriptor = descriptor

    @cached_property
    def _raw_manifest(self) -> bytes:
        return self._path.read_blob(self._descriptor.digest)

    @cached_property
    def _raw_config_file(self) -> bytes:
        return self._path.read_blob(self.manifest().config.digest)

    def media_type(self) -> str:
        return self._descriptor.media_type or self.manifest().media_type or ""

    def raw_manifest(self) -> bytes:
        return self._raw_manifest

    def raw_config_file(self) -> bytes:
        return self._raw_config_file

    def digest(self) -> str:
        return self._descriptor.digest

    def layers(self) -> list[Layer]:
        diff_ids = self.config_file().rootfs.diff_ids
        descriptors = self.manifest().layers
        if len(diff_ids) != len(descriptors):
            logger.warning(
                "Image %s lists %d layers but %d diff IDs; computing diff IDs",
                self.digest(),
                len(descriptors),
                len(diff_ids),
            )
            return [LayoutLayer(self._path, desc) for desc in descriptors]
        return [
            LayoutLayer(self._path, desc, diff_id)
            for desc, diff_id in zip(descriptors, diff_ids)
        ]


class LayoutIndex(ImageIndex):
    """
    An index stored in a layout.

    With no descriptor it stands for the layout's top-level ``index.json``.
    """

    def __init__(self, path: LayoutPath, descriptor: Descriptor | None = None) -> None:
        self._path = path
        self._descriptor = descriptor

    @cached_property
    def _raw_manifest(self) -> bytes:
        if self._descriptor is None:
            try:
                return (self._path.root / _INDEX_FILENAME).read_bytes()
            except OSError as exc:
                raise LayoutError(f"reading {_INDEX_FILENAME}", exc) from exc
        return self._path.read_blob(self._descriptor.digest)

    def raw_manifest(self) -> bytes:
        return self._raw_manifest

    def media_type(self) -> str:
        if self._descriptor is not None and self._descriptor.media_type:
            return self._descriptor.media_type
        return self.index_manifest().media_type or MediaType.OCI_INDEX.value

    def _child(self, digest: str) -> Descriptor:
        for desc in self.index_manifest().manifests:
            if desc.digest == digest:
                return desc
        raise LayoutError(f"looking up {digest}", f"not listed in {self._path}")

    def image(self, digest: str) -> Image:
        return LayoutImage(self._path, self._child(digest))

    def image_index(self, digest: str) -> ImageIndex:
        return LayoutIndex(self._path, self._child(digest))

    def blob(self, digest: str) -> bytes:
        return self._path.read_blob(digest)


def read_layout(path: str | os.PathLike[str]) -> LayoutIndex:
    """Open the layout at *path* and return its top-level index."""
    root = Path(path)
    if not root.is_dir():
        raise LayoutError(f"reading layout {str(root)!r}", "not a directory")

    marker = root / _OCI_LAYOUT_FILENAME
    try:
        version = json.loads(marker.read_text(encoding="utf-8")).get("imageLayoutVersion")
    except (OSError, ValueError, AttributeError) as exc:
        raise LayoutError(f"reading {_OCI_LAYOUT_FILENAME}", exc) from exc
    if version != _LAYOUT_VERSION:
        raise LayoutError(
            f"reading {_OCI_LAYOUT_FILENAME}", f"unsupported layout version {version!r}"
        )

    index = LayoutIndex(LayoutPath(root))
    with stage(f"reading {_INDEX_FILENAME}", LayoutError):
        index.index_manifest()
    return index


def convert_layout(root: ImageIndex) -> ImageIndex:
    """
    Convert every entry listed by a layout's top-level index.

    Images go through ``convert_image`` and indices through
    ``convert_image_index``; anything else is kept. Converted entries keep
    their annotations (such as ``org.opencontainers.image.ref.name``),
    platform and urls and are listed after the kept ones.
    """
    with stage("getting layout index"):
        manifests = root.index_manifest().manifests

    removals: list[str] = []
    addenda: list[IndexAddendum] = []
    for desc in manifests:
        if is_image(desc.media_type):
            with stage(f"converting image {desc.digest}"):
                converted: Image | ImageIndex = convert_image(root.image(desc.digest))
        elif is_index(desc.media_type):
            with stage(f"converting index {desc.digest}"):
                converted = convert_image_index(root.image_index(desc.digest))
        else:
            continue
        removals.append(desc.digest)
        addenda.append(
            IndexAddendum(
                add=converted,
                descriptor=Descriptor(
                    mediaType=converted.media_type(),
                    urls=desc.urls,
                    annotations=desc.annotations,
                    platform=desc.platform,
                ),
            )
        )

    result = with_index_media_type(root, to_oci(MediaType.DOCKER_INDEX.value))
    result = remove_manifests(result, removals)
    return append_manifests(result, *addenda)


class _BlobWriter:
    """Writes verified blobs below a staging directory."""

    def __init__(self, path: LayoutPath) -> None:
        self.path = path

    def write_stream(self, digest: str, stream: BinaryIO) -> None:
        target = self.path.blob_path(digest)
        if target.exists():
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        h = hashlib.sha256()
        partial = target.with_name(target.name + ".partial")
        with open(partial, "wb") as out:
            for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
                h.update(chunk)
                out.write(chunk)
        actual = f"sha256:{h.hexdigest()}"
        if digest.startswith("sha256:") and actual != digest:
            partial.unlink()
            raise LayoutError(f"writing blob {digest}", f"content hashes to {actual}")
        partial.replace(target)

    def write_bytes(self, digest: str, data: bytes) -> None:
        self.write_stream(digest, io.BytesIO(data))

    def write_image(self, image: Image) -> None:
        for desc, layer in zip(image.manifest().layers, image.layers()):
            if desc.urls or is_foreign_layer(desc.media_type):
                logger.debug("Skipping non-distributable layer %s", desc.digest)
                continue
            with layer.compressed() as stream:
                self.write_stream(layer.digest(), stream)
        self.write_bytes(image.config_name(), image.raw_config_file())
        self.write_bytes(image.digest(), image.raw_manifest())

    def write_index(self, index: ImageIndex) -> None:
        """Write every child of *index*; the index manifest itself is left to the caller."""
        for desc in index.index_manifest().manifests:
            if is_image(desc.media_type):
                self.write_image(index.image(desc.digest))
            elif is_index(desc.media_type):
                child = index.image_index(desc.digest)
                self.write_index(child)
                self.write_bytes(desc.digest, child.raw_manifest())
            else:
                self.write_opaque(index, desc.digest)

    def write_opaque(self, index: ImageIndex, digest: str) -> None:
        raw = index.blob(digest)
        for ref in _referenced_digests(raw):
            self.write_bytes(ref, index.blob(ref))
        self.write_bytes(digest, raw)


def _referenced_digests(raw: bytes) -> Iterator[str]:
    """Yield blob digests referenced by a manifest-shaped document, if any."""
    try:
        doc: Any = json.loads(raw)
    except ValueError:
        return
    if not isinstance(doc, dict):
        return
    refs = [doc.get("config")] + list(doc.get("layers") or []) + list(doc.get("blobs") or [])
    for ref in refs:
        if isinstance(ref, dict) and isinstance(ref.get("digest"), str):
            yield ref["digest"]


def write_layout(path: str | os.PathLike[str], index: ImageIndex) -> Path:
    """
    Write *index* and everything it references as a new layout at *path*.

    The layout is staged in a sibling directory and moved into place once
    complete, so a failure leaves nothing behind at *path*.
    """
    target = Path(path)
    if target.exists() and (not target.is_dir() or any(target.iterdir())):
        raise LayoutError(f"writing layout {str(target)!r}", "destination is not empty")
    target.parent.mkdir(parents=True, exist_ok=True)

    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=target.parent))
    try:
        writer = _BlobWriter(LayoutPath(staging))
        with stage("writing layout blobs"):
            writer.write_index(index)
        (staging / _OCI_LAYOUT_FILENAME).write_text(
            json.dumps({"imageLayoutVersion": _LAYOUT_VERSION}), encoding="utf-8"
        )
        (staging / _INDEX_FILENAME).write_bytes(index.raw_manifest())
        if target.exists():
            target.rmdir()
        staging.replace(target)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.info("Wrote layout %s (%d entries)", target, len(index.index_manifest().manifests))
    return target
