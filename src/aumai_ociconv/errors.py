"""Exceptions raised by aumai-ociconv."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

__all__ = [
    "ConversionError",
    "LayerBuildError",
    "LayoutError",
    "SourceReadError",
    "stage",
]


class ConversionError(Exception):
    """
    Base error for every failed conversion step.

    ``stage`` names the operation that failed; the message reads
    ``"<stage>: <cause>"`` so nested failures read as a chain of stages.
    """

    def __init__(self, stage: str, cause: object = None) -> None:
        self.stage = stage
        self.cause = cause
        message = stage if cause is None else f"{stage}: {cause}"
        super().__init__(message)


class SourceReadError(ConversionError):
    """Manifest, config or layer content could not be read from the source."""


class LayerBuildError(ConversionError):
    """A new layer or image value could not be built from the source bytes."""


class LayoutError(SourceReadError):
    """An OCI image layout directory is missing or malformed."""


@contextmanager
def stage(name: str, error_cls: type[ConversionError] = SourceReadError) -> Iterator[None]:
    """
    Run the wrapped block as the named stage of a conversion.

    Any exception is re-raised as *error_cls* prefixed with *name*. Errors
    that already are ``ConversionError`` keep their own class so the outer
    stage only adds context.
    """
    try:
        yield
    except ConversionError as exc:
        raise type(exc)(name, exc) from exc
    except Exception as exc:
        raise error_cls(name, exc) from exc
