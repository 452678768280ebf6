from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_CREDENTIAL_PROVIDERS: tuple[str, ...] = (
    "static",
    "environment",
    "web_identity",
    "container",
    "instance_metadata",
)
ADDRESSING_STYLES: frozenset[str] = frozenset({"auto", "path", "virtual"})


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


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _default_session_name() -> str:
    # Pod hostname, matching what the platform shows for the workload
    return f"openshift-{socket.gethostname()}"


@dataclass
class Settings:
    S3_BUCKET: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None
    S3_ADDRESSING_STYLE: str = "auto"
    S3_USE_SSL: bool = True
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_SESSION_TOKEN: str | None = None
    AWS_ROLE_ARN: str | None = None
    AWS_WEB_IDENTITY_TOKEN_FILE: str | None = None
    AWS_ROLE_SESSION_NAME: str = field(default_factory=_default_session_name)
    S3_CREDENTIAL_PROVIDERS: list[str] = field(
        default_factory=lambda: list(DEFAULT_CREDENTIAL_PROVIDERS)
    )
    S3_MAX_POOL_CONNECTIONS: int = 10
    S3_CONNECT_TIMEOUT: int = 5
    S3_READ_TIMEOUT: int = 60
    S3_LIST_PAGE_SIZE: int | None = None
    TRANSFER_MULTIPART_THRESHOLD_MB: int = 8
    TRANSFER_MULTIPART_CHUNKSIZE_MB: int = 8
    TRANSFER_MAX_CONCURRENCY: int = 10
    LOCATOR_SCHEME: str = "s3"
    ENABLE_METRICS: bool = True
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        style = (self.S3_ADDRESSING_STYLE or "auto").strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ValueError(
                "S3_ADDRESSING_STYLE must be one of: "
                + ", ".join(sorted(ADDRESSING_STYLES))
            )
        self.S3_ADDRESSING_STYLE = style

        for name in (
            "S3_MAX_POOL_CONNECTIONS",
            "S3_CONNECT_TIMEOUT",
            "S3_READ_TIMEOUT",
            "TRANSFER_MULTIPART_THRESHOLD_MB",
            "TRANSFER_MULTIPART_CHUNKSIZE_MB",
            "TRANSFER_MAX_CONCURRENCY",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive integer.")
        if self.S3_LIST_PAGE_SIZE is not None and self.S3_LIST_PAGE_SIZE <= 0:
            raise ValueError("S3_LIST_PAGE_SIZE must be a positive integer.")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        providers_env = os.environ.get("S3_CREDENTIAL_PROVIDERS")
        if providers_env is None:
            providers = list(DEFAULT_CREDENTIAL_PROVIDERS)
        else:
            providers = _as_list(providers_env)

        return cls(
            S3_BUCKET=_first_env("S3_BUCKET", "AWS_S3_BUCKET"),
            S3_REGION=_first_env("S3_REGION", "AWS_REGION", "AWS_DEFAULT_REGION")
            or cls.S3_REGION,
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL") or None,
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID") or None,
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY") or None,
            S3_SESSION_TOKEN=os.environ.get("S3_SESSION_TOKEN") or None,
            AWS_ROLE_ARN=os.environ.get("AWS_ROLE_ARN") or None,
            AWS_WEB_IDENTITY_TOKEN_FILE=os.environ.get("AWS_WEB_IDENTITY_TOKEN_FILE")
            or None,
            AWS_ROLE_SESSION_NAME=os.environ.get("AWS_ROLE_SESSION_NAME")
            or _default_session_name(),
            S3_CREDENTIAL_PROVIDERS=providers,
            S3_MAX_POOL_CONNECTIONS=int(
                os.environ.get("S3_MAX_POOL_CONNECTIONS", cls.S3_MAX_POOL_CONNECTIONS)
            ),
            S3_CONNECT_TIMEOUT=int(
                os.environ.get("S3_CONNECT_TIMEOUT", cls.S3_CONNECT_TIMEOUT)
            ),
            S3_READ_TIMEOUT=int(os.environ.get("S3_READ_TIMEOUT", cls.S3_READ_TIMEOUT)),
            S3_LIST_PAGE_SIZE=_as_optional_int(os.environ.get("S3_LIST_PAGE_SIZE")),
            TRANSFER_MULTIPART_THRESHOLD_MB=int(
                os.environ.get(
                    "TRANSFER_MULTIPART_THRESHOLD_MB",
                    cls.TRANSFER_MULTIPART_THRESHOLD_MB,
                )
            ),
            TRANSFER_MULTIPART_CHUNKSIZE_MB=int(
                os.environ.get(
                    "TRANSFER_MULTIPART_CHUNKSIZE_MB",
                    cls.TRANSFER_MULTIPART_CHUNKSIZE_MB,
                )
            ),
            TRANSFER_MAX_CONCURRENCY=int(
                os.environ.get("TRANSFER_MAX_CONCURRENCY", cls.TRANSFER_MAX_CONCURRENCY)
            ),
            LOCATOR_SCHEME=os.environ.get("LOCATOR_SCHEME", cls.LOCATOR_SCHEME),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
