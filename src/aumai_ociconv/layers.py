"""Layer handles and the Docker to OCI layer transcoder."""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import cached_property
from typing import BinaryIO

from .errors import LayerBuildError, stage
from .media_types import (
    DOCKER_TO_OCI,
    classify,
    is_docker,
    is_layer,
    is_uncompressed_layer,
)
from .models import Descriptor

__all__ = [
    "BytesLayer",
    "Layer",
    "layer_from_bytes",
    "layer_from_reader",
    "sha256_digest",
    "transcode_layer",
]

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1 << 20
_GZIP_MAGIC = b"\x1f\x8b"


def sha256_digest(data: bytes) -> str:
    """Return 'sha256:<hex>' digest for *data*."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


class Layer(ABC):
    """
    One filesystem changeset of an image.

    ``compressed()`` and ``uncompressed()`` each return a fresh binary stream
    which the caller closes, preferably via ``with``.
    """

    @abstractmethod
    def digest(self) -> str:
        """Digest of the compressed (wire) stream."""

    @abstractmethod
    def diff_id(self) -> str:
        """Digest of the uncompressed tar stream."""

    @abstractmethod
    def size(self) -> int:
        """Length in bytes of the compressed stream."""

    @abstractmethod
    def media_type(self) -> str: ...

    @abstractmethod
    def compressed(self) -> BinaryIO: ...

    @abstractmethod
    def uncompressed(self) -> BinaryIO: ...

    def descriptor(self) -> Descriptor:
        """Build the manifest descriptor that references this layer."""
        return Descriptor(
            mediaType=self.media_type(),
            size=self.size(),
            digest=self.digest(),
        )


@dataclass(frozen=True, eq=False)
class BytesLayer(Layer):
    """A layer held fully in memory."""

    blob: bytes
    tar: bytes
    kind: str

    @cached_property
    def _digest(self) -> str:
        return sha256_digest(self.blob)

    @cached_property
    def _diff_id(self) -> str:
        if self.tar is self.blob:
            return self._digest
        return sha256_digest(self.tar)

    def digest(self) -> str:
        return self._digest

    def diff_id(self) -> str:
        return self._diff_id

    def size(self) -> int:
        return len(self.blob)

    def media_type(self) -> str:
        return self.kind

    def compressed(self) -> BinaryIO:
        return io.BytesIO(self.blob)

    def uncompressed(self) -> BinaryIO:
        return io.BytesIO(self.tar)


def _read_all(reader: BinaryIO) -> bytes:
    buf = io.BytesIO()
    for chunk in iter(lambda: reader.read(_CHUNK_SIZE), b""):
        buf.write(chunk)
    return buf.getvalue()


def layer_from_bytes(data: bytes, media_type: str) -> BytesLayer:
    """
    Build a layer from a byte string that is either a gzip blob or a raw tar.

    Uncompressed media types store the tar itself as the blob. Compressed
    media types keep gzip input byte for byte; raw tar input is compressed
    with a fixed mtime so the result is reproducible.
    """
    is_gzip = data[:2] == _GZIP_MAGIC
    with stage("decompressing layer", LayerBuildError):
        tar = gzip.decompress(data) if is_gzip else data

    if is_uncompressed_layer(media_type):
        return BytesLayer(blob=tar, tar=tar, kind=media_type)
    if is_gzip:
        return BytesLayer(blob=data, tar=tar, kind=media_type)
    return BytesLayer(blob=gzip.compress(tar, mtime=0), tar=tar, kind=media_type)


def layer_from_reader(reader: BinaryIO, media_type: str) -> BytesLayer:
    """
    Consume *reader* completely and build a layer from its bytes.

    The whole stream is buffered in memory.
    """
    with stage("reading layer stream", LayerBuildError):
        data = _read_all(reader)
    return layer_from_bytes(data, media_type)


def transcode_layer(layer: Layer) -> Layer:
    """
    Relabel a Docker layer with the matching OCI media type.

    The new layer is rebuilt from the very bytes of the source stream, so its
    digest and diff ID are those of *layer*. Layers that are not Docker
    layers are returned as they are.
    """
    with stage("getting layer media type"):
        media_type = layer.media_type()

    kind = classify(media_type)
    if not (is_docker(kind) and is_layer(kind)):
        return layer
    target = DOCKER_TO_OCI[kind]
    opener = layer.uncompressed if is_uncompressed_layer(kind) else layer.compressed

    with stage("getting layer"):
        reader = opener()
    with reader, stage("building layer", LayerBuildError):
        converted = layer_from_reader(reader, target.value)

    logger.debug(
        "Transcoded layer %s from %s to %s",
        converted.digest(),
        media_type,
        target.value,
    )
    return converted
