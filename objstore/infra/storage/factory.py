"""Factory for building S3 clients and object stores from settings."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import boto3
import botocore.session
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.credentials import CredentialProvider as BotocoreCredentialProvider
from botocore.credentials import CredentialResolver, Credentials

from objstore.common.config import Settings, get_settings
from objstore.infra.storage.client import ConfigurationError
from objstore.infra.storage.credentials import build_credential_chain
from objstore.infra.storage.s3_client import S3ObjectStore

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class _ResolvedCredentialsProvider(BotocoreCredentialProvider):
    """Hands credentials already resolved by CredentialChain to botocore."""

    METHOD = "objstore-credential-chain"
    CANONICAL_NAME = "objstore-credential-chain"

    def __init__(self, credentials: Credentials) -> None:
        super().__init__()
        self._credentials = credentials

    def load(self) -> Credentials:
        return self._credentials


def build_s3_client(settings: Settings, credentials: Credentials | None = None) -> Any:
    """Create a boto3 S3 client.

    Credentials come from the explicit provider chain, never from botocore's
    implicit default chain.

    Args:
        settings: Application settings containing S3 configuration.
        credentials: Pre-resolved credentials; resolved from the chain when None.

    Raises:
        ConfigurationError: If no credential provider applies.
    """
    if credentials is None:
        credentials = build_credential_chain(settings).resolve()

    botocore_session = botocore.session.Session()
    botocore_session.register_component(
        "credential_provider",
        CredentialResolver(providers=[_ResolvedCredentialsProvider(credentials)]),
    )
    session = boto3.session.Session(
        botocore_session=botocore_session, region_name=settings.S3_REGION
    )
    config = Config(
        s3={"addressing_style": settings.S3_ADDRESSING_STYLE},
        max_pool_connections=settings.S3_MAX_POOL_CONNECTIONS,
        connect_timeout=settings.S3_CONNECT_TIMEOUT,
        read_timeout=settings.S3_READ_TIMEOUT,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        use_ssl=bool(settings.S3_USE_SSL),
        config=config,
    )


def build_transfer_config(settings: Settings) -> TransferConfig:
    return TransferConfig(
        multipart_threshold=settings.TRANSFER_MULTIPART_THRESHOLD_MB * MB,
        multipart_chunksize=settings.TRANSFER_MULTIPART_CHUNKSIZE_MB * MB,
        max_concurrency=settings.TRANSFER_MAX_CONCURRENCY,
    )


def build_object_store(settings: Settings | None = None) -> S3ObjectStore:
    """Build an S3ObjectStore for the configured bucket.

    Raises:
        ConfigurationError: If S3_BUCKET is missing or credentials cannot be resolved.
    """
    settings = settings or get_settings()
    if not settings.S3_BUCKET:
        raise ConfigurationError("S3_BUCKET not set")

    store = S3ObjectStore(
        client=build_s3_client(settings),
        bucket=settings.S3_BUCKET,
        transfer_config=build_transfer_config(settings),
        page_size=settings.S3_LIST_PAGE_SIZE,
        scheme=settings.LOCATOR_SCHEME,
    )
    logger.info(
        "object_store_ready bucket=%s region=%s endpoint=%s",
        settings.S3_BUCKET,
        settings.S3_REGION,
        settings.S3_ENDPOINT_URL or "<aws>",
    )
    return store


@contextmanager
def object_store_scope(settings: Settings | None = None) -> Iterator[S3ObjectStore]:
    """Yield a freshly built store and close it on every exit path."""
    store = build_object_store(settings)
    try:
        yield store
    finally:
        store.close()


__all__ = [
    "build_object_store",
    "build_s3_client",
    "build_transfer_config",
    "object_store_scope",
]
