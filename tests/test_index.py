"""Tests for aumai_ociconv.index builders."""

from __future__ import annotations

import json

import pytest

from aumai_ociconv.errors import SourceReadError
from aumai_ociconv.image import Image
from aumai_ociconv.index import (
    EMPTY_INDEX,
    ImageIndex,
    IndexAddendum,
    append_manifests,
    remove_manifests,
    with_index_media_type,
)
from aumai_ociconv.media_types import MediaType
from aumai_ociconv.models import Descriptor, Platform


class TestEmptyIndex:
    def test_is_oci_and_empty(self) -> None:
        doc = json.loads(EMPTY_INDEX.raw_manifest())
        assert doc == {
            "schemaVersion": 2,
            "mediaType": MediaType.OCI_INDEX.value,
            "manifests": [],
        }

    def test_lookup_in_empty_index_raises(self) -> None:
        with pytest.raises(SourceReadError):
            EMPTY_INDEX.image("sha256:" + "1" * 64)
        with pytest.raises(SourceReadError):
            EMPTY_INDEX.blob("sha256:" + "1" * 64)


class TestAppendManifests:
    def test_descriptor_is_computed_from_value(self, docker_image: Image) -> None:
        index = append_manifests(
            EMPTY_INDEX,
            IndexAddendum(
                add=docker_image,
                descriptor=Descriptor(
                    digest="sha256:" + "f" * 64,
                    size=1,
                    platform=Platform(os="linux", architecture="amd64"),
                    annotations={"a": "b"},
                    urls=["https://example.com/blob"],
                ),
            ),
        )
        (desc,) = index.index_manifest().manifests
        assert desc.digest == docker_image.digest()
        assert desc.size == docker_image.size()
        assert desc.media_type == MediaType.DOCKER_MANIFEST.value
        assert desc.platform == Platform(os="linux", architecture="amd64")
        assert desc.annotations == {"a": "b"}
        assert desc.urls == ["https://example.com/blob"]

    def test_descriptor_media_type_wins(self, docker_image: Image) -> None:
        index = append_manifests(
            EMPTY_INDEX,
            IndexAddendum(add=docker_image, descriptor=Descriptor(mediaType="application/x-test")),
        )
        assert index.index_manifest().manifests[0].media_type == "application/x-test"

    def test_added_image_is_retrievable(self, docker_image: Image) -> None:
        index = append_manifests(EMPTY_INDEX, IndexAddendum(add=docker_image))
        assert index.image(docker_image.digest()) is docker_image

    def test_added_index_is_retrievable(self, docker_index: ImageIndex) -> None:
        index = append_manifests(EMPTY_INDEX, IndexAddendum(add=docker_index))
        assert index.image_index(docker_index.digest()) is docker_index
        assert index.blob(docker_index.digest()) == docker_index.raw_manifest()


class TestRemoveManifests:
    def test_removes_by_digest(
        self, docker_index: ImageIndex, platform_images: dict[str, Image]
    ) -> None:
        amd64 = platform_images["amd64"].digest()
        index = remove_manifests(docker_index, [amd64])
        digests = [d.digest for d in index.index_manifest().manifests]
        assert digests == [platform_images["arm64"].digest()]

    def test_source_index_is_untouched(
        self, docker_index: ImageIndex, platform_images: dict[str, Image]
    ) -> None:
        before = docker_index.raw_manifest()
        remove_manifests(docker_index, [platform_images["amd64"].digest()])
        assert docker_index.raw_manifest() == before

    def test_images_of_base_stay_reachable(
        self, docker_index: ImageIndex, platform_images: dict[str, Image]
    ) -> None:
        index = remove_manifests(docker_index, [])
        arm64 = platform_images["arm64"]
        assert index.image(arm64.digest()) is arm64


class TestIndexSetters:
    def test_with_index_media_type(self, docker_index: ImageIndex) -> None:
        assert docker_index.media_type() == MediaType.DOCKER_INDEX.value
        index = with_index_media_type(docker_index, MediaType.OCI_INDEX.value)
        assert index.media_type() == MediaType.OCI_INDEX.value
        assert json.loads(index.raw_manifest())["mediaType"] == MediaType.OCI_INDEX.value
