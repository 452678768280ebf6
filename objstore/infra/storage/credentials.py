"""Credential providers and the ordered chain that resolves them.

Credential resolution is an explicit strategy list instead of the SDK's
implicit default chain. Providers are tried in a fixed order; the first one
that applies wins. A provider that applies but is misconfigured stops the
chain with a ConfigurationError rather than silently falling through.

Default order:
    1. static            explicit S3_ACCESS_KEY_ID / S3_SECRET_ACCESS_KEY
    2. environment       AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY
    3. web_identity      AWS_ROLE_ARN + AWS_WEB_IDENTITY_TOKEN_FILE (IRSA)
    4. container         ECS task role
    5. instance_metadata EC2 instance profile
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping, Protocol, Sequence

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.credentials import (
    ContainerProvider,
    Credentials,
    InstanceMetadataFetcher,
    InstanceMetadataProvider,
    RefreshableCredentials,
)
from botocore.exceptions import BotoCoreError, ClientError

from objstore.infra.storage.client import ConfigurationError

if TYPE_CHECKING:
    from objstore.common.config import Settings

logger = logging.getLogger(__name__)

WEB_IDENTITY_METHOD = "assume-role-with-web-identity"


class CredentialsUnavailable(Exception):
    """Raised by a provider that does not apply in the current environment."""


class CredentialProvider(Protocol):
    """A single credential source tried by CredentialChain."""

    name: str

    def resolve(self) -> Credentials:
        """Return credentials from this source.

        Raises:
            CredentialsUnavailable: The source is not configured; try the next one.
            ConfigurationError: The source is configured but unusable.
        """
        ...


def _key_pair(
    access_key: str | None,
    secret_key: str | None,
    token: str | None,
    *,
    source: str,
) -> Credentials:
    if not access_key and not secret_key:
        raise CredentialsUnavailable(f"{source}: no access key configured")
    if not access_key or not secret_key:
        raise ConfigurationError(
            f"{source}: both the access key id and the secret access key must be set"
        )
    return Credentials(access_key, secret_key, token or None, method=source)


class StaticCredentialsProvider:
    name = "static"

    def __init__(
        self,
        access_key_id: str | None,
        secret_access_key: str | None,
        session_token: str | None = None,
    ) -> None:
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._session_token = session_token

    def resolve(self) -> Credentials:
        return _key_pair(
            self._access_key_id,
            self._secret_access_key,
            self._session_token,
            source=self.name,
        )


class EnvironmentCredentialsProvider:
    name = "environment"

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def resolve(self) -> Credentials:
        environ = os.environ if self._environ is None else self._environ
        return _key_pair(
            environ.get("AWS_ACCESS_KEY_ID"),
            environ.get("AWS_SECRET_ACCESS_KEY"),
            environ.get("AWS_SESSION_TOKEN") or environ.get("AWS_SECURITY_TOKEN"),
            source=self.name,
        )


class WebIdentityCredentialsProvider:
    """Exchange a projected service-account token for role credentials.

    The token file is re-read on every refresh because the platform rotates
    it in place.
    """

    name = "web_identity"

    def __init__(
        self,
        *,
        role_arn: str | None,
        token_file: str | None,
        session_name: str,
        region: str | None = None,
        sts_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._role_arn = role_arn
        self._token_file = token_file
        self._session_name = session_name
        self._region = region
        self._sts_client_factory = sts_client_factory or self._default_sts_client
        self._sts_client: Any = None

    def _default_sts_client(self) -> Any:
        # AssumeRoleWithWebIdentity is authenticated by the token itself
        return boto3.client(
            "sts",
            region_name=self._region,
            config=Config(signature_version=UNSIGNED),
        )

    def validate(self) -> None:
        if not self._role_arn:
            raise ConfigurationError("AWS_ROLE_ARN not set. Ensure IRSA is configured.")
        if not self._token_file:
            raise ConfigurationError("AWS_WEB_IDENTITY_TOKEN_FILE not set.")
        if not os.path.isfile(self._token_file):
            raise ConfigurationError(f"Token file not found: {self._token_file}")

    def resolve(self) -> Credentials:
        if not self._role_arn and not self._token_file:
            raise CredentialsUnavailable(
                "web_identity: AWS_ROLE_ARN and AWS_WEB_IDENTITY_TOKEN_FILE not set"
            )
        return RefreshableCredentials.create_from_metadata(
            metadata=self._fetch(),
            refresh_using=self._fetch,
            method=WEB_IDENTITY_METHOD,
        )

    def _sts(self) -> Any:
        if self._sts_client is None:
            self._sts_client = self._sts_client_factory()
        return self._sts_client

    def _fetch(self) -> dict[str, str]:
        # token file may be rotated or unmounted between refreshes
        self.validate()
        with open(self._token_file, encoding="utf-8") as handle:
            token = handle.read().strip()

        try:
            response = self._sts().assume_role_with_web_identity(
                RoleArn=self._role_arn,
                RoleSessionName=self._session_name,
                WebIdentityToken=token,
            )
        except (ClientError, BotoCoreError) as exc:
            raise ConfigurationError(
                f"AssumeRoleWithWebIdentity failed for {self._role_arn}: {exc}"
            ) from exc

        credentials = response["Credentials"]
        expiration = credentials["Expiration"]
        if isinstance(expiration, datetime):
            expiration = expiration.isoformat()
        return {
            "access_key": credentials["AccessKeyId"],
            "secret_key": credentials["SecretAccessKey"],
            "token": credentials["SessionToken"],
            "expiry_time": expiration,
        }


class BotocoreProviderAdapter:
    """Expose a botocore credential provider through the CredentialProvider API."""

    def __init__(self, name: str, provider: Any) -> None:
        self.name = name
        self._provider = provider

    def resolve(self) -> Credentials:
        credentials = self._provider.load()
        if credentials is None:
            raise CredentialsUnavailable(f"{self.name}: no credentials available")
        return credentials


def container_provider() -> BotocoreProviderAdapter:
    return BotocoreProviderAdapter("container", ContainerProvider())


def instance_metadata_provider() -> BotocoreProviderAdapter:
    fetcher = InstanceMetadataFetcher(timeout=1, num_attempts=1)
    return BotocoreProviderAdapter(
        "instance_metadata", InstanceMetadataProvider(iam_role_fetcher=fetcher)
    )


class CredentialChain:
    """Try credential providers in order and return the first hit."""

    def __init__(self, providers: Sequence[CredentialProvider]) -> None:
        if not providers:
            raise ConfigurationError("At least one credential provider is required")
        self._providers = list(providers)

    @property
    def names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    def resolve(self) -> Credentials:
        tried: list[str] = []
        for provider in self._providers:
            try:
                credentials = provider.resolve()
            except CredentialsUnavailable as exc:
                logger.debug(
                    "credential_provider_skipped provider=%s reason=%s",
                    provider.name,
                    exc,
                )
                tried.append(provider.name)
                continue
            logger.info(
                "credentials_resolved provider=%s",
                provider.name,
                extra={"extra": {"provider": provider.name, "skipped": tried}},
            )
            return credentials
        raise ConfigurationError(
            "No storage credentials found; tried providers: " + ", ".join(tried)
        )


def build_credential_chain(settings: "Settings") -> CredentialChain:
    """Build the chain named by ``S3_CREDENTIAL_PROVIDERS``, in that order."""
    builders: dict[str, Callable[[], CredentialProvider]] = {
        "static": lambda: StaticCredentialsProvider(
            settings.S3_ACCESS_KEY_ID,
            settings.S3_SECRET_ACCESS_KEY,
            settings.S3_SESSION_TOKEN,
        ),
        "environment": EnvironmentCredentialsProvider,
        "web_identity": lambda: WebIdentityCredentialsProvider(
            role_arn=settings.AWS_ROLE_ARN,
            token_file=settings.AWS_WEB_IDENTITY_TOKEN_FILE,
            session_name=settings.AWS_ROLE_SESSION_NAME,
            region=settings.S3_REGION,
        ),
        "container": container_provider,
        "instance_metadata": instance_metadata_provider,
    }

    unknown = [name for name in settings.S3_CREDENTIAL_PROVIDERS if name not in builders]
    if unknown:
        raise ConfigurationError(
            "Unknown credential providers in S3_CREDENTIAL_PROVIDERS: "
            + ", ".join(unknown)
        )
    return CredentialChain(
        [builders[name]() for name in settings.S3_CREDENTIAL_PROVIDERS]
    )


__all__ = [
    "BotocoreProviderAdapter",
    "CredentialChain",
    "CredentialProvider",
    "CredentialsUnavailable",
    "EnvironmentCredentialsProvider",
    "StaticCredentialsProvider",
    "WebIdentityCredentialsProvider",
    "build_credential_chain",
    "container_provider",
    "instance_metadata_provider",
]
