from __future__ import annotations

import pytest

from objstore.api.deps import reset_object_store
from objstore.common.config import get_settings
from objstore.infra.storage.s3_client import S3ObjectStore
from tests.infra.fake_s3 import FakeS3Client

BUCKET = "test-bucket"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Keep host credentials and cached settings out of every test."""
    for name in (
        "S3_BUCKET",
        "AWS_S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SESSION_TOKEN",
        "AWS_ROLE_ARN",
        "AWS_WEB_IDENTITY_TOKEN_FILE",
        "S3_CREDENTIAL_PROVIDERS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    reset_object_store()
    yield
    reset_object_store()
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client(bucket=BUCKET)


@pytest.fixture
def store(fake_s3: FakeS3Client) -> S3ObjectStore:
    return S3ObjectStore(client=fake_s3, bucket=BUCKET)
