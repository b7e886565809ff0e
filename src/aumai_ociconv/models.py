"""Pydantic models for the image documents handled by aumai-ociconv."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "Config",
    "ConfigFile",
    "Descriptor",
    "History",
    "IndexManifest",
    "Manifest",
    "Platform",
    "RootFS",
    "dump_json",
]


class _Document(BaseModel):
    """Base for every wire document: immutable, camelCase aliases, extras kept."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


def dump_json(document: BaseModel) -> bytes:
    """Serialize *document* the way it is hashed and written to disk."""
    return document.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class Platform(_Document):
    architecture: str = ""
    os: str = ""
    os_version: str | None = Field(default=None, alias="os.version")
    os_features: list[str] | None = Field(default=None, alias="os.features")
    variant: str | None = None
    features: list[str] | None = None

    def __str__(self) -> str:
        text = f"{self.os}/{self.architecture}"
        if self.variant:
            text += f"/{self.variant}"
        return text


class Descriptor(_Document):
    """
    A reference to content by digest.

    Follows the OCI Content Descriptor Specification
    https://github.com/opencontainers/image-spec/blob/main/descriptor.md
    """

    media_type: str = Field(default="", alias="mediaType")
    size: int = 0
    digest: str = ""
    data: str | None = None
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    platform: Platform | None = None
    artifact_type: str | None = Field(default=None, alias="artifactType")


class Manifest(_Document):
    """
    Image manifest, either Docker schema 2 or OCI.

    https://github.com/opencontainers/image-spec/blob/main/manifest.md
    """

    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    config: Descriptor
    layers: list[Descriptor] = Field(default_factory=list)
    annotations: dict[str, str] | None = None
    subject: Descriptor | None = None


class IndexManifest(_Document):
    """
    Image index (OCI) or manifest list (Docker).

    https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    manifests: list[Descriptor] = Field(default_factory=list)
    annotations: dict[str, str] | None = None
    subject: Descriptor | None = None


class Config(_Document):
    """
    Runtime configuration of a container.

    Holds the full Docker field set; only some of these are portable to OCI.
    """

    user: str | None = Field(default=None, alias="User")
    exposed_ports: dict[str, dict[str, Any]] | None = Field(
        default=None, alias="ExposedPorts"
    )
    env: list[str] | None = Field(default=None, alias="Env")
    entrypoint: list[str] | None = Field(default=None, alias="Entrypoint")
    cmd: list[str] | None = Field(default=None, alias="Cmd")
    volumes: dict[str, dict[str, Any]] | None = Field(default=None, alias="Volumes")
    working_dir: str | None = Field(default=None, alias="WorkingDir")
    labels: dict[str, str] | None = Field(default=None, alias="Labels")
    stop_signal: str | None = Field(default=None, alias="StopSignal")

    # Docker only
    hostname: str | None = Field(default=None, alias="Hostname")
    domainname: str | None = Field(default=None, alias="Domainname")
    attach_stdin: bool | None = Field(default=None, alias="AttachStdin")
    attach_stdout: bool | None = Field(default=None, alias="AttachStdout")
    attach_stderr: bool | None = Field(default=None, alias="AttachStderr")
    tty: bool | None = Field(default=None, alias="Tty")
    open_stdin: bool | None = Field(default=None, alias="OpenStdin")
    stdin_once: bool | None = Field(default=None, alias="StdinOnce")
    healthcheck: dict[str, Any] | None = Field(default=None, alias="Healthcheck")
    args_escaped: bool | None = Field(default=None, alias="ArgsEscaped")
    image: str | None = Field(default=None, alias="Image")
    network_disabled: bool | None = Field(default=None, alias="NetworkDisabled")
    mac_address: str | None = Field(default=None, alias="MacAddress")
    on_build: list[str] | None = Field(default=None, alias="OnBuild")
    stop_timeout: int | None = Field(default=None, alias="StopTimeout")
    shell: list[str] | None = Field(default=None, alias="Shell")


class History(_Document):
    created: str | None = None
    created_by: str | None = None
    author: str | None = None
    comment: str | None = None
    empty_layer: bool | None = None


class RootFS(_Document):
    type: str = "layers"
    diff_ids: list[str] = Field(default_factory=list)


class ConfigFile(_Document):
    """
    Image configuration file.

    https://github.com/opencontainers/image-spec/blob/main/config.md
    """

    architecture: str = ""
    author: str | None = None
    container: str | None = None
    created: str | None = None
    docker_version: str | None = None
    history: list[History] | None = None
    os: str = ""
    rootfs: RootFS = Field(default_factory=RootFS)
    config: Config = Field(default_factory=Config)
    container_config: Config | None = None
    os_version: str | None = Field(default=None, alias="os.version")
    variant: str | None = None
    os_features: list[str] | None = Field(default=None, alias="os.features")
