"""Provision the object storage described by the OSS_* environment.

Usage:
  ossbridge-provision --dry-run
  ossbridge-provision

Creates the base bucket (folder mode) and every OSS_EXPIRING_BUCKETS entry
with its lifecycle rule. Use --dry-run to print the plan without calling
the backend.
"""

from __future__ import annotations

import argparse

from ossbridge.app.services.bundle import get_service_bundle
from ossbridge.common.config import Settings, get_settings
from ossbridge.common.logging import setup_logging


def describe_plan(settings: Settings) -> list[str]:
    lines = []
    if settings.OSS_BUCKET_NAME:
        lines.append(f"base bucket: {settings.OSS_BUCKET_NAME} (folder mode)")
    else:
        lines.append("no base bucket (direct mode)")
    for name, days in settings.OSS_EXPIRING_BUCKETS.items():
        lines.append(f"expiring bucket: {name} -> {days} day(s)")
    return lines


def provision_storage(*, settings: Settings | None = None, dry_run: bool = False) -> list[str]:
    settings = settings or get_settings()
    if dry_run:
        return describe_plan(settings)
    bundle = get_service_bundle(settings)
    return bundle.provision()


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision object storage buckets and rules")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print what would be provisioned",
    )
    args = parser.parse_args()
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    result = provision_storage(settings=settings, dry_run=args.dry_run)
    if args.dry_run:
        for line in result:
            print(f"[DRY-RUN] {line}")
    else:
        print(f"Provisioned {len(result)} expiring bucket(s)")

