"""Tests for LifecycleService."""

from __future__ import annotations

import pytest

from ossbridge.app.services.lifecycle_service import (
    LifecycleRule,
    LifecycleService,
    parse_rule,
    rule_id_for,
)
from ossbridge.infra.storage.client import InvalidArgumentError, NotFoundError
from tests.services.mock_storage import BASE_BUCKET


@pytest.fixture()
def lifecycle_service(folder_settings, mock_storage):
    return LifecycleService(storage_client=mock_storage, settings=folder_settings)


@pytest.fixture()
def direct_lifecycle_service(direct_settings, mock_storage):
    return LifecycleService(storage_client=mock_storage, settings=direct_settings)


class TestRuleHelpers:
    def test_rule_id_embeds_physical_prefix(self):
        assert rule_id_for("logs/") == "AutoDeleteRule-logs/"

    def test_rule_id_for_whole_bucket(self):
        assert rule_id_for("") == "AutoDeleteRule-*"

    def test_payload_shape(self):
        rule = LifecycleRule(id="r", prefix="logs/", expiration_days=7)

        assert rule.to_payload() == {
            "ID": "r",
            "Filter": {"Prefix": "logs/"},
            "Status": "Enabled",
            "Expiration": {"Days": 7},
        }

    @pytest.mark.parametrize(
        "raw",
        [
            {"ID": "r", "Filter": {"Prefix": "logs/"}, "Status": "Enabled", "Expiration": {"Days": 3}},
            {"ID": "r", "Filter": {"And": {"Prefix": "logs/", "Tags": []}}, "Status": "Enabled", "Expiration": {"Days": 3}},
            {"ID": "r", "Prefix": "logs/", "Status": "Enabled", "Expiration": {"Days": 3}},
        ],
    )
    def test_parse_rule_filter_variants(self, raw):
        assert parse_rule(raw) == LifecycleRule(id="r", prefix="logs/", expiration_days=3)

    def test_parse_rule_without_expiration_days(self):
        rule = parse_rule({"ID": "r", "Filter": {}, "Status": "Disabled"})

        assert rule.expiration_days is None
        assert rule.prefix == ""
        assert rule.status == "Disabled"


class TestSetExpiration:
    def test_first_rule_on_bucket(self, lifecycle_service, mock_storage):
        rule = lifecycle_service.set_expiration("logs", 7)

        assert rule == LifecycleRule(id="AutoDeleteRule-logs/", prefix="logs/", expiration_days=7)
        assert mock_storage.lifecycle[BASE_BUCKET] == [rule.to_payload()]

    def test_rules_for_other_folders_are_preserved(self, lifecycle_service, mock_storage):
        lifecycle_service.set_expiration("logs", 7)
        lifecycle_service.set_expiration("tmp", 1)

        rules = {rule.prefix: rule.expiration_days for rule in lifecycle_service.list_rules("logs")}

        assert rules == {"logs/": 7, "tmp/": 1}

    def test_updating_a_folder_replaces_its_rule(self, lifecycle_service, mock_storage):
        lifecycle_service.set_expiration("logs", 7)
        lifecycle_service.set_expiration("tmp", 1)

        lifecycle_service.set_expiration("logs", 30)

        rules = lifecycle_service.list_rules("logs")
        assert sorted((rule.id, rule.expiration_days) for rule in rules) == [
            ("AutoDeleteRule-logs/", 30),
            ("AutoDeleteRule-tmp/", 1),
        ]

    def test_foreign_rules_are_preserved(self, lifecycle_service, mock_storage):
        foreign = {
            "ID": "archive-to-glacier",
            "Filter": {"Prefix": "archive/"},
            "Status": "Enabled",
            "Transitions": [{"Days": 30, "StorageClass": "GLACIER"}],
        }
        mock_storage.lifecycle[BASE_BUCKET] = [foreign]

        lifecycle_service.set_expiration("logs", 7)

        assert foreign in mock_storage.lifecycle[BASE_BUCKET]
        assert len(mock_storage.lifecycle[BASE_BUCKET]) == 2

    def test_rule_with_same_prefix_but_other_id_is_replaced(self, lifecycle_service, mock_storage):
        mock_storage.lifecycle[BASE_BUCKET] = [
            {"ID": "legacy", "Filter": {"Prefix": "logs/"}, "Status": "Enabled", "Expiration": {"Days": 2}}
        ]

        lifecycle_service.set_expiration("logs", 7)

        assert [rule["ID"] for rule in mock_storage.lifecycle[BASE_BUCKET]] == [
            "AutoDeleteRule-logs/"
        ]

    def test_sub_prefix_inside_folder(self, lifecycle_service):
        rule = lifecycle_service.set_expiration("logs", 3, prefix="debug/")

        assert rule.prefix == "logs/debug/"
        assert rule.id == "AutoDeleteRule-logs/debug/"

    def test_prefixes_differing_by_trailing_slash_are_distinct(self, lifecycle_service, mock_storage):
        lifecycle_service.set_expiration("x", 7, prefix="tmp")
        lifecycle_service.set_expiration("x", 30, prefix="tmp/")

        rules = {rule.prefix: rule.expiration_days for rule in lifecycle_service.list_rules("x")}

        assert rules == {"x/tmp": 7, "x/tmp/": 30}
        assert lifecycle_service.get_properties("x", prefix="tmp").lifecycle_rule.expiration_days == 7
        assert lifecycle_service.get_properties("x", prefix="tmp/").lifecycle_rule.expiration_days == 30

    def test_removing_one_of_slash_variant_prefixes_keeps_the_other(self, lifecycle_service):
        lifecycle_service.set_expiration("x", 7, prefix="tmp")
        lifecycle_service.set_expiration("x", 30, prefix="tmp/")

        assert lifecycle_service.remove_expiration("x", prefix="tmp/") is True

        assert [rule.prefix for rule in lifecycle_service.list_rules("x")] == ["x/tmp"]

    @pytest.mark.parametrize("days", [0, -5])
    def test_non_positive_days_rejected(self, lifecycle_service, mock_storage, days):
        with pytest.raises(InvalidArgumentError):
            lifecycle_service.set_expiration("logs", days)

        assert BASE_BUCKET not in mock_storage.lifecycle

    def test_direct_mode_rule_covers_whole_bucket(self, direct_lifecycle_service, mock_storage):
        mock_storage.buckets["logs"] = {}

        rule = direct_lifecycle_service.set_expiration("logs", 5)

        assert rule.id == "AutoDeleteRule-*"
        assert rule.prefix == ""
        assert mock_storage.lifecycle["logs"][0]["Filter"] == {"Prefix": ""}

    def test_missing_physical_bucket(self, direct_lifecycle_service):
        with pytest.raises(NotFoundError) as exc_info:
            direct_lifecycle_service.set_expiration("nope", 5)

        assert exc_info.value.code == "NoSuchBucket"


class TestRemoveExpiration:
    def test_remove_keeps_other_rules(self, lifecycle_service, mock_storage):
        lifecycle_service.set_expiration("logs", 7)
        lifecycle_service.set_expiration("tmp", 1)

        assert lifecycle_service.remove_expiration("logs") is True

        assert [rule.id for rule in lifecycle_service.list_rules("tmp")] == ["AutoDeleteRule-tmp/"]

    def test_removing_last_rule_deletes_configuration(self, lifecycle_service, mock_storage):
        lifecycle_service.set_expiration("logs", 7)

        lifecycle_service.remove_expiration("logs")

        assert BASE_BUCKET not in mock_storage.lifecycle
        assert lifecycle_service.list_rules("logs") == []

    def test_remove_missing_rule(self, lifecycle_service):
        assert lifecycle_service.remove_expiration("logs") is False


class TestProperties:
    def test_properties_sum_objects_under_folder(self, lifecycle_service, mock_storage):
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="logs/", body=b"")
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="logs/a.log", body=b"abc")
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="logs/b.log", body=b"de")
        mock_storage.put_object(bucket=BASE_BUCKET, object_key="other/c.log", body=b"xyz")
        lifecycle_service.set_expiration("logs", 7)

        props = lifecycle_service.get_properties("logs")

        assert props.size_bytes == 5
        assert props.object_count == 2
        assert props.lifecycle_rule.expiration_days == 7

    def test_properties_pick_rule_of_own_prefix(self, lifecycle_service):
        lifecycle_service.set_expiration("a", 3)
        lifecycle_service.set_expiration("b", 9)

        assert lifecycle_service.get_properties("a").lifecycle_rule.expiration_days == 3
        assert lifecycle_service.get_properties("b").lifecycle_rule.expiration_days == 9

    def test_properties_without_rule(self, lifecycle_service):
        props = lifecycle_service.get_properties("logs")

        assert props.size_bytes == 0
        assert props.object_count == 0
        assert props.lifecycle_rule is None


class TestCreateExpiringBucket:
    def test_creates_folder_and_rule(self, lifecycle_service, mock_storage):
        rule = lifecycle_service.create_expiring_bucket("tmp", 1)

        assert "tmp/" in mock_storage.buckets[BASE_BUCKET]
        assert rule.id == "AutoDeleteRule-tmp/"

    def test_is_idempotent(self, lifecycle_service, mock_storage):
        lifecycle_service.create_expiring_bucket("tmp", 1)
        lifecycle_service.create_expiring_bucket("tmp", 2)

        assert [rule["Expiration"]["Days"] for rule in mock_storage.lifecycle[BASE_BUCKET]] == [2]

    def test_direct_mode_creates_bucket(self, direct_lifecycle_service, mock_storage):
        direct_lifecycle_service.create_expiring_bucket("tmp", 1)

        assert "tmp" in mock_storage.buckets
        assert mock_storage.lifecycle["tmp"][0]["ID"] == "AutoDeleteRule-*"
