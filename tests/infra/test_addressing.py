"""Tests for logical to physical address resolution."""

import pytest

from ossbridge.common.config import Settings
from ossbridge.infra.storage.addressing import (
    DirectAddressing,
    FolderAddressing,
    StorageTarget,
    build_addressing,
)
from ossbridge.infra.storage.client import (
    AlreadyExistsError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)
from tests.services.mock_storage import BASE_BUCKET


class TestDirectAddressing:
    def test_bucket_maps_to_itself(self):
        addressing = DirectAddressing()

        assert addressing.resolve("photos", "2024/a.jpg") == StorageTarget(
            "photos", "2024/a.jpg"
        )
        assert addressing.container("photos") == StorageTarget("photos", "")

    def test_leading_slash_is_dropped_from_key(self):
        assert DirectAddressing().resolve("photos", "/a.jpg").key == "a.jpg"

    def test_empty_bucket_rejected(self):
        with pytest.raises(InvalidArgumentError):
            DirectAddressing().resolve("", "a.jpg")


class TestFolderAddressing:
    def test_bucket_becomes_folder_of_base(self):
        addressing = FolderAddressing("base")

        assert addressing.resolve("reports", "q1.pdf") == StorageTarget(
            "base", "reports/q1.pdf"
        )

    def test_container_is_folder_marker(self):
        assert FolderAddressing("base").container("reports") == StorageTarget(
            "base", "reports/"
        )

    @pytest.mark.parametrize("name", ["reports", "reports/", "/reports", "reports//"])
    def test_folder_has_exactly_one_trailing_slash(self, name):
        assert FolderAddressing("base").container(name).key == "reports/"

    def test_empty_key_resolves_to_marker(self):
        assert FolderAddressing("base").resolve("reports").key == "reports/"

    def test_nested_folder_names(self):
        target = FolderAddressing("base").resolve("team/reports", "/q1.pdf")

        assert target == StorageTarget("base", "team/reports/q1.pdf")

    def test_prefix_resolution(self):
        target = FolderAddressing("base").resolve_prefix("reports", "2024/")

        assert target == StorageTarget("base", "reports/2024/")

    def test_to_logical_key_inverts_resolve(self):
        addressing = FolderAddressing("base")
        physical = addressing.resolve("reports", "2024/q1.pdf").key

        assert addressing.to_logical_key("reports", physical) == "2024/q1.pdf"

    def test_to_logical_key_rejects_foreign_key(self):
        with pytest.raises(InvalidArgumentError):
            FolderAddressing("base").to_logical_key("reports", "other/a.txt")

    def test_base_bucket_slashes_stripped(self):
        assert FolderAddressing("/base/").base_bucket == "base"

    def test_empty_folder_rejected(self):
        with pytest.raises(InvalidArgumentError):
            FolderAddressing("base").container("/")


class TestBuildAddressing:
    def test_folder_mode_when_base_bucket_configured(self):
        addressing = build_addressing(Settings(OSS_BUCKET_NAME="base"))

        assert isinstance(addressing, FolderAddressing)
        assert addressing.base_bucket == "base"

    def test_direct_mode_without_base_bucket(self):
        assert isinstance(build_addressing(Settings()), DirectAddressing)

    def test_blank_base_bucket_means_direct_mode(self):
        assert isinstance(build_addressing(Settings(OSS_BUCKET_NAME="  ")), DirectAddressing)


class TestDirectContainers:
    def test_create_probe_and_list(self, mock_storage):
        addressing = DirectAddressing()

        assert addressing.ensure_container(mock_storage, "photos") is True
        assert addressing.ensure_container(mock_storage, "photos") is False
        assert addressing.container_exists(mock_storage, "photos") is True
        assert addressing.list_containers(mock_storage) == [BASE_BUCKET, "photos"]

    def test_lost_creation_race_counts_as_existing(self, mock_storage, monkeypatch):
        mock_storage.buckets["photos"] = {}
        monkeypatch.setattr(mock_storage, "head_bucket", lambda *, bucket: False)

        assert DirectAddressing().ensure_container(mock_storage, "photos") is False

    def test_remove_requires_force_when_not_empty(self, mock_storage):
        mock_storage.buckets["photos"] = {}
        mock_storage.put_object(bucket="photos", object_key="a.jpg", body=b"a")
        addressing = DirectAddressing()

        with pytest.raises(ConflictError):
            addressing.remove_container(mock_storage, "photos")

        assert addressing.remove_container(mock_storage, "photos", force=True) == 1
        assert "photos" not in mock_storage.buckets

    def test_prepare_backend_is_noop(self, mock_storage):
        assert DirectAddressing().prepare_backend(mock_storage) == []


class TestFolderContainers:
    def test_create_writes_marker(self, mock_storage):
        addressing = FolderAddressing(BASE_BUCKET)

        assert addressing.ensure_container(mock_storage, "docs") is True

        assert list(mock_storage.buckets[BASE_BUCKET]) == ["docs/"]
        assert mock_storage.buckets[BASE_BUCKET]["docs/"]["body"] == b""
        assert addressing.container_exists(mock_storage, "docs") is True
        assert addressing.container_exists(mock_storage, "doc") is False

    def test_list_containers_returns_top_level_folders(self, mock_storage):
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="docs/", body=b"")
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="media/img/a.png", body=b"a")

        assert FolderAddressing(BASE_BUCKET).list_containers(mock_storage) == ["docs", "media"]

    def test_remove_missing_folder(self, mock_storage):
        with pytest.raises(NotFoundError):
            FolderAddressing(BASE_BUCKET).remove_container(mock_storage, "docs")

    def test_remove_marker_only_folder(self, mock_storage):
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="docs/", body=b"")

        assert FolderAddressing(BASE_BUCKET).remove_container(mock_storage, "docs") == 1
        assert mock_storage.buckets[BASE_BUCKET] == {}

    def test_prepare_backend_creates_base_bucket_once(self, mock_storage):
        addressing = FolderAddressing("fresh")

        assert addressing.prepare_backend(mock_storage) == ["fresh"]
        assert addressing.prepare_backend(mock_storage) == []
        assert "fresh" in mock_storage.buckets

    def test_prepare_backend_tolerates_concurrent_creation(self, mock_storage, monkeypatch):
        def create_bucket(*, bucket):
            raise AlreadyExistsError("exists", code="BucketAlreadyOwnedByYou")

        monkeypatch.setattr(mock_storage, "head_bucket", lambda *, bucket: False)
        monkeypatch.setattr(mock_storage, "create_bucket", create_bucket)

        assert FolderAddressing("fresh").prepare_backend(mock_storage) == []
