"""Lifecycle (expiration) rule management for logical buckets.

A bucket holds a single lifecycle configuration shared by every prefix in
it, so writes are read-modify-write: fetch the current rules, replace or
insert the rule for one prefix, submit the merged set. There is no
optimistic concurrency control on the backend; two writers racing on the
same physical bucket can still lose each other's rule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ossbridge.app.services.base import BaseService
from ossbridge.infra.storage.client import InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)

RULE_ID_PREFIX = "AutoDeleteRule-"
WHOLE_BUCKET_RULE_SUFFIX = "*"
NO_LIFECYCLE_CODE = "NoSuchLifecycleConfiguration"


@dataclass(frozen=True, slots=True)
class LifecycleRule:
    id: str
    prefix: str
    expiration_days: int | None
    status: str = "Enabled"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ID": self.id,
            "Filter": {"Prefix": self.prefix},
            "Status": self.status,
        }
        if self.expiration_days is not None:
            payload["Expiration"] = {"Days": int(self.expiration_days)}
        return payload


@dataclass(frozen=True, slots=True)
class BucketProperties:
    size_bytes: int
    object_count: int
    lifecycle_rule: LifecycleRule | None


def rule_id_for(prefix: str) -> str:
    """Deterministic rule id for a physical prefix.

    The prefix is embedded verbatim, so ``tmp`` and ``tmp/`` get distinct ids.
    """
    return RULE_ID_PREFIX + (prefix or WHOLE_BUCKET_RULE_SUFFIX)


def _rule_prefix(raw: Mapping[str, Any]) -> str:
    rule_filter = raw.get("Filter")
    if isinstance(rule_filter, Mapping):
        if "Prefix" in rule_filter:
            return rule_filter.get("Prefix") or ""
        conjunction = rule_filter.get("And")
        if isinstance(conjunction, Mapping):
            return conjunction.get("Prefix") or ""
    # Legacy rules carry the prefix at the top level.
    return raw.get("Prefix") or ""


def parse_rule(raw: Mapping[str, Any]) -> LifecycleRule:
    expiration = raw.get("Expiration") or {}
    days = expiration.get("Days")
    return LifecycleRule(
        id=raw.get("ID") or "",
        prefix=_rule_prefix(raw),
        expiration_days=int(days) if days is not None else None,
        status=raw.get("Status") or "Enabled",
    )


class LifecycleService(BaseService):
    """Per-prefix expiration rules on top of bucket lifecycle configurations."""

    def _current_rules(self, physical_bucket: str) -> list[dict[str, Any]]:
        try:
            return self._storage.get_bucket_lifecycle(bucket=physical_bucket)
        except NotFoundError as exc:
            if exc.code == NO_LIFECYCLE_CODE:
                return []
            raise

    def list_rules(self, bucket: str) -> list[LifecycleRule]:
        """All rules on the physical bucket holding ``bucket``."""
        container = self._addressing.container(bucket)
        return [parse_rule(raw) for raw in self._current_rules(container.bucket)]

    def set_expiration(self, bucket: str, days: int, *, prefix: str = "") -> LifecycleRule:
        """Expire objects under ``bucket``/``prefix`` after ``days`` days.

        Rules for other prefixes in the same physical bucket are preserved.
        """
        if int(days) <= 0:
            raise InvalidArgumentError(f"Expiration days must be positive, got {days}")
        target = self._addressing.resolve_prefix(bucket, prefix)
        rule = LifecycleRule(
            id=rule_id_for(target.key),
            prefix=target.key,
            expiration_days=int(days),
        )

        merged: list[dict[str, Any]] = []
        for raw in self._current_rules(target.bucket):
            if raw.get("ID") == rule.id or _rule_prefix(raw) == rule.prefix:
                continue
            merged.append(dict(raw))
        merged.append(rule.to_payload())

        self._storage.put_bucket_lifecycle(bucket=target.bucket, rules=merged)
        logger.info(
            "lifecycle_rule_set physical_bucket=%s prefix=%s days=%s rules=%s",
            target.bucket,
            target.key,
            days,
            len(merged),
        )
        return rule

    def remove_expiration(self, bucket: str, *, prefix: str = "") -> bool:
        """Drop the rule for ``bucket``/``prefix``; True if one was removed."""
        target = self._addressing.resolve_prefix(bucket, prefix)
        rule_id = rule_id_for(target.key)
        current = self._current_rules(target.bucket)
        remaining = [
            dict(raw)
            for raw in current
            if raw.get("ID") != rule_id and _rule_prefix(raw) != target.key
        ]
        if len(remaining) == len(current):
            return False
        if remaining:
            self._storage.put_bucket_lifecycle(bucket=target.bucket, rules=remaining)
        else:
            self._storage.delete_bucket_lifecycle(bucket=target.bucket)
        logger.info(
            "lifecycle_rule_removed physical_bucket=%s prefix=%s",
            target.bucket,
            target.key,
        )
        return True

    def get_properties(self, bucket: str, *, prefix: str = "") -> BucketProperties:
        """Total size and object count under the prefix, plus its rule.

        The folder marker is not counted.
        """
        marker = self._addressing.container(bucket).key
        target = self._addressing.resolve_prefix(bucket, prefix)
        listing = self._storage.list_objects(bucket=target.bucket, prefix=target.key)
        matched = [
            obj
            for obj in listing.objects
            if obj.key.startswith(target.key) and obj.key != marker
        ]

        rule = None
        for raw in self._current_rules(target.bucket):
            if _rule_prefix(raw) == target.key:
                rule = parse_rule(raw)
                break

        return BucketProperties(
            size_bytes=sum(obj.size_bytes for obj in matched),
            object_count=len(matched),
            lifecycle_rule=rule,
        )

    def create_expiring_bucket(self, bucket: str, days: int) -> LifecycleRule:
        """Create the logical bucket if needed and attach an expiration rule."""
        self._ensure_container(bucket)
        return self.set_expiration(bucket, days)
