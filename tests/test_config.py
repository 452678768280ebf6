from __future__ import annotations

import os

import pytest

from objstore.common import config as config_mod
from objstore.common.config import DEFAULT_CREDENTIAL_PROVIDERS, Settings, get_settings


@pytest.fixture(autouse=True)
def no_env_file(monkeypatch, tmp_path):
    monkeypatch.setattr(config_mod, "ENV_FILE", tmp_path / ".env")
    # .env loading writes to os.environ directly
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for name in ("S3_REGION", "AWS_REGION", "AWS_DEFAULT_REGION", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_environment()

    assert settings.S3_BUCKET is None
    assert settings.S3_REGION == "us-east-1"
    assert settings.S3_ADDRESSING_STYLE == "auto"
    assert settings.S3_USE_SSL is True
    assert settings.S3_CREDENTIAL_PROVIDERS == list(DEFAULT_CREDENTIAL_PROVIDERS)
    assert settings.S3_LIST_PAGE_SIZE is None
    assert settings.AWS_ROLE_SESSION_NAME.startswith("openshift-")


def test_bucket_falls_back_to_aws_variable(monkeypatch):
    monkeypatch.setenv("AWS_S3_BUCKET", "legacy-bucket")
    assert Settings.from_environment().S3_BUCKET == "legacy-bucket"

    monkeypatch.setenv("S3_BUCKET", "primary-bucket")
    assert Settings.from_environment().S3_BUCKET == "primary-bucket"


def test_region_precedence(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-south-1")
    assert Settings.from_environment().S3_REGION == "ap-south-1"

    monkeypatch.setenv("AWS_REGION", "eu-central-1")
    assert Settings.from_environment().S3_REGION == "eu-central-1"

    monkeypatch.setenv("S3_REGION", "us-west-2")
    assert Settings.from_environment().S3_REGION == "us-west-2"


def test_parses_typed_values(monkeypatch):
    monkeypatch.setenv("S3_USE_SSL", "false")
    monkeypatch.setenv("S3_ADDRESSING_STYLE", "PATH")
    monkeypatch.setenv("S3_LIST_PAGE_SIZE", "250")
    monkeypatch.setenv("S3_CREDENTIAL_PROVIDERS", "web_identity, static")
    monkeypatch.setenv("TRANSFER_MAX_CONCURRENCY", "4")
    monkeypatch.setenv("AWS_ROLE_SESSION_NAME", "batch-job")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_environment()

    assert settings.S3_USE_SSL is False
    assert settings.S3_ADDRESSING_STYLE == "path"
    assert settings.S3_LIST_PAGE_SIZE == 250
    assert settings.S3_CREDENTIAL_PROVIDERS == ["web_identity", "static"]
    assert settings.TRANSFER_MAX_CONCURRENCY == 4
    assert settings.AWS_ROLE_SESSION_NAME == "batch-job"
    assert settings.LOG_LEVEL == "DEBUG"


def test_env_file_does_not_override_process_env(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# local overrides\nS3_BUCKET=file-bucket\nS3_REGION='eu-north-1'\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(config_mod, "ENV_FILE", env_file)
    monkeypatch.setenv("S3_BUCKET", "env-bucket")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "env-bucket"
    assert settings.S3_REGION == "eu-north-1"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("S3_ADDRESSING_STYLE", "sideways"),
        ("S3_MAX_POOL_CONNECTIONS", "0"),
        ("S3_LIST_PAGE_SIZE", "-1"),
    ],
)
def test_rejects_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        Settings.from_environment()


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "first")
    assert get_settings() is get_settings()
    monkeypatch.setenv("S3_BUCKET", "second")
    assert get_settings().S3_BUCKET == "first"
