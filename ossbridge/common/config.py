from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

ENV_FILE = Path(".env")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _as_expiry_map(value: str | None) -> dict[str, int]:
    """Parse ``name=days,name=days`` into an ordered mapping."""
    if not value:
        return {}
    result: dict[str, int] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        if "=" not in item:
            raise ValueError(
                f"Invalid expiring bucket entry {item!r}; expected name=days."
            )
        name, days = item.split("=", 1)
        try:
            result[name.strip()] = int(days.strip())
        except ValueError as exc:
            raise ValueError(
                f"Expiration days for {name.strip()!r} must be an integer."
            ) from exc
    return result


@dataclass(frozen=True)
class Settings:
    OSS_ENABLED: bool = True
    OSS_ENDPOINT: str = "http://localhost:9000"
    OSS_REGION: str = "us-east-1"
    OSS_ACCESS_KEY: str | None = None
    OSS_SECRET_KEY: str | None = None
    OSS_BUCKET_NAME: str | None = None
    OSS_PATH_STYLE_ACCESS: bool = True
    OSS_CUSTOM_DOMAIN: str | None = None
    OSS_EXPIRING_BUCKETS: Mapping[str, int] = field(default_factory=dict)
    OSS_PRESIGN_EXPIRES_SECONDS: int = 900
    OSS_CONNECT_TIMEOUT: int = 5
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        scheme = self.OSS_ENDPOINT.split("://", 1)[0].lower()
        if scheme not in {"http", "https"} or "://" not in self.OSS_ENDPOINT:
            raise ValueError(
                "OSS_ENDPOINT must be an http:// or https:// URL."
            )

        base_bucket = (self.OSS_BUCKET_NAME or "").strip().strip("/") or None
        object.__setattr__(self, "OSS_BUCKET_NAME", base_bucket)

        expiring: dict[str, int] = {}
        for name, days in dict(self.OSS_EXPIRING_BUCKETS).items():
            cleaned = name.strip().strip("/")
            if not cleaned:
                raise ValueError("Expiring bucket names must not be empty.")
            if int(days) <= 0:
                raise ValueError(
                    f"Expiration days for {cleaned!r} must be positive, got {days}."
                )
            expiring[cleaned] = int(days)
        object.__setattr__(self, "OSS_EXPIRING_BUCKETS", MappingProxyType(expiring))

        if self.OSS_PRESIGN_EXPIRES_SECONDS <= 0:
            raise ValueError("OSS_PRESIGN_EXPIRES_SECONDS must be positive.")

    @property
    def folder_mode(self) -> bool:
        return self.OSS_BUCKET_NAME is not None

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        expiring_env = os.environ.get("OSS_EXPIRING_BUCKETS")
        if expiring_env is None:
            expiring_env = os.environ.get("OSS_EXPIRING_PREFIXES")

        return cls(
            OSS_ENABLED=_as_bool(os.environ.get("OSS_ENABLED"), cls.OSS_ENABLED),
            OSS_ENDPOINT=os.environ.get("OSS_ENDPOINT", cls.OSS_ENDPOINT),
            OSS_REGION=os.environ.get("OSS_REGION", cls.OSS_REGION),
            OSS_ACCESS_KEY=_as_optional(os.environ.get("OSS_ACCESS_KEY")),
            OSS_SECRET_KEY=_as_optional(os.environ.get("OSS_SECRET_KEY")),
            OSS_BUCKET_NAME=_as_optional(os.environ.get("OSS_BUCKET_NAME")),
            OSS_PATH_STYLE_ACCESS=_as_bool(
                os.environ.get("OSS_PATH_STYLE_ACCESS"), cls.OSS_PATH_STYLE_ACCESS
            ),
            OSS_CUSTOM_DOMAIN=_as_optional(os.environ.get("OSS_CUSTOM_DOMAIN")),
            OSS_EXPIRING_BUCKETS=_as_expiry_map(expiring_env),
            OSS_PRESIGN_EXPIRES_SECONDS=int(
                os.environ.get(
                    "OSS_PRESIGN_EXPIRES_SECONDS", cls.OSS_PRESIGN_EXPIRES_SECONDS
                )
            ),
            OSS_CONNECT_TIMEOUT=int(
                os.environ.get("OSS_CONNECT_TIMEOUT", cls.OSS_CONNECT_TIMEOUT)
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
