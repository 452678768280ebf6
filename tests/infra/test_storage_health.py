from __future__ import annotations

from objstore.infra.storage.health import HEALTHCHECK_PREFIX, StorageHealthCheck
from objstore.infra.storage.s3_client import S3ObjectStore
from tests.infra.fake_s3 import client_error


def test_healthy_when_listing_succeeds(fake_s3, store):
    report = StorageHealthCheck(store).check()

    assert report.healthy is True
    assert report.detail is None
    assert fake_s3.list_calls[0]["Prefix"] == HEALTHCHECK_PREFIX


def test_unhealthy_on_access_denied(fake_s3, store):
    fake_s3.fail_with("list_objects_v2", client_error("AccessDenied", 403))

    report = StorageHealthCheck(store).check()

    assert report.healthy is False
    assert "AccessDenied" in report.detail


def test_unhealthy_on_missing_bucket(fake_s3):
    report = StorageHealthCheck(S3ObjectStore(client=fake_s3, bucket="other")).check()

    assert report.healthy is False
    assert "bucket=other" in report.detail


def test_custom_prefix(fake_s3, store):
    StorageHealthCheck(store, prefix="probe/").check()
    assert fake_s3.list_calls[0]["Prefix"] == "probe/"
