"""Tests for environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import FrozenInstanceError

import pytest

from ossbridge.common.config import Settings, get_settings

OSS_VARS = [
    "OSS_ENABLED",
    "OSS_ENDPOINT",
    "OSS_REGION",
    "OSS_ACCESS_KEY",
    "OSS_SECRET_KEY",
    "OSS_BUCKET_NAME",
    "OSS_PATH_STYLE_ACCESS",
    "OSS_CUSTOM_DOMAIN",
    "OSS_EXPIRING_BUCKETS",
    "OSS_EXPIRING_PREFIXES",
    "OSS_PRESIGN_EXPIRES_SECONDS",
    "OSS_CONNECT_TIMEOUT",
    "LOG_LEVEL",
]


@pytest.fixture()
def clean_env(monkeypatch, tmp_path):
    # .env loading writes straight into os.environ; give each test its own copy.
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for name in OSS_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the way.
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_environment()

    assert settings.OSS_ENABLED is True
    assert settings.OSS_ENDPOINT == "http://localhost:9000"
    assert settings.OSS_BUCKET_NAME is None
    assert settings.folder_mode is False
    assert dict(settings.OSS_EXPIRING_BUCKETS) == {}
    assert settings.OSS_PRESIGN_EXPIRES_SECONDS == 900


def test_reads_environment(clean_env):
    clean_env.setenv("OSS_ENDPOINT", "https://s3.example.com")
    clean_env.setenv("OSS_ACCESS_KEY", "ak")
    clean_env.setenv("OSS_SECRET_KEY", "sk")
    clean_env.setenv("OSS_BUCKET_NAME", "/base/")
    clean_env.setenv("OSS_PATH_STYLE_ACCESS", "false")
    clean_env.setenv("OSS_EXPIRING_BUCKETS", "tmp=1, logs=30")
    clean_env.setenv("OSS_PRESIGN_EXPIRES_SECONDS", "60")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_environment()

    assert settings.OSS_ENDPOINT == "https://s3.example.com"
    assert settings.OSS_ACCESS_KEY == "ak"
    assert settings.OSS_BUCKET_NAME == "base"
    assert settings.folder_mode is True
    assert settings.OSS_PATH_STYLE_ACCESS is False
    assert list(settings.OSS_EXPIRING_BUCKETS.items()) == [("tmp", 1), ("logs", 30)]
    assert settings.OSS_PRESIGN_EXPIRES_SECONDS == 60
    assert settings.LOG_LEVEL == "DEBUG"


def test_expiring_prefixes_alias(clean_env):
    clean_env.setenv("OSS_EXPIRING_PREFIXES", "tmp=3")

    assert dict(Settings.from_environment().OSS_EXPIRING_BUCKETS) == {"tmp": 3}


def test_blank_bucket_name_means_direct_mode(clean_env):
    clean_env.setenv("OSS_BUCKET_NAME", "   ")

    assert Settings.from_environment().OSS_BUCKET_NAME is None


def test_env_file_is_loaded(clean_env, tmp_path):
    (tmp_path / ".env").write_text(
        "# storage\nOSS_BUCKET_NAME=from-file\nOSS_ACCESS_KEY='quoted'\n",
        encoding="utf-8",
    )

    settings = Settings.from_environment()

    assert settings.OSS_BUCKET_NAME == "from-file"
    assert settings.OSS_ACCESS_KEY == "quoted"


def test_environment_wins_over_env_file(clean_env, tmp_path):
    (tmp_path / ".env").write_text("OSS_BUCKET_NAME=from-file\n", encoding="utf-8")
    clean_env.setenv("OSS_BUCKET_NAME", "from-env")

    assert Settings.from_environment().OSS_BUCKET_NAME == "from-env"


@pytest.mark.parametrize("value", ["tmp", "tmp=abc", "tmp=0", "tmp=-2", "=3"])
def test_invalid_expiring_buckets(clean_env, value):
    clean_env.setenv("OSS_EXPIRING_BUCKETS", value)

    with pytest.raises(ValueError):
        Settings.from_environment()


def test_invalid_endpoint():
    with pytest.raises(ValueError, match="OSS_ENDPOINT"):
        Settings(OSS_ENDPOINT="localhost:9000")


def test_non_positive_presign_ttl():
    with pytest.raises(ValueError):
        Settings(OSS_PRESIGN_EXPIRES_SECONDS=0)


def test_settings_are_immutable():
    settings = Settings(OSS_EXPIRING_BUCKETS={"tmp": 1})

    with pytest.raises(FrozenInstanceError):
        settings.OSS_BUCKET_NAME = "other"  # type: ignore[misc]
    with pytest.raises(TypeError):
        settings.OSS_EXPIRING_BUCKETS["logs"] = 2  # type: ignore[index]


def test_get_settings_is_cached(clean_env):
    assert get_settings() is get_settings()
