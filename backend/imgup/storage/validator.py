"""
Settings validation and connectivity probe.

Runs when the app starts and whenever settings are saved - never before an
individual upload, so the paste path costs exactly two round trips.
"""
import logging
import re
import time
from typing import Callable, List
from urllib.parse import urlsplit

from botocore.exceptions import BotoCoreError, ClientError

from imgup.storage.client import StorageClient
from imgup.storage.errors import (
    AccessDeniedError,
    ConfigurationError,
    NotFoundError,
    classify_error,
    is_object_missing,
)
from imgup.storage.models import (
    ProviderConfig,
    R2ProviderConfig,
    S3ProviderConfig,
    UploaderSettings,
)
from imgup.utils.logging import log_config_invalid, log_config_validated
from imgup.utils.metrics import config_validations_total

logger = logging.getLogger(__name__)

# Object that is never written; probing it proves bucket + credentials work
PROBE_KEY_NAME = ".imgup-connectivity-probe"

# Dot-separated labels of letters, digits and inner hyphens
_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)"
    r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)
_PREFIX_RE = re.compile(r"^(?:[A-Za-z0-9_.-]+/)*$")
# Same label rule botocore applies to region_name
_REGION_RE = re.compile(r"^(?![0-9]+$)(?!-)[a-z0-9-]{1,63}(?<!-)$")


def is_valid_hostname(value: str) -> bool:
    return bool(_HOSTNAME_RE.match(value))


def is_http_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def find_problems(config: ProviderConfig) -> List[str]:
    """
    Check a provider config for missing or malformed fields.

    Returns:
        One message per problem; empty when the shape is valid
    """
    problems = []

    if not config.access_key_id.strip():
        problems.append("Access key ID is required")
    if not config.secret_access_key.strip():
        problems.append("Secret access key is required")
    if not config.bucket.strip():
        problems.append("Bucket is required")

    # Empty prefix means the bucket root
    if config.path_prefix and not config.path_prefix.endswith("/"):
        problems.append(f"Path prefix '{config.path_prefix}' must end with '/'")
    elif not _PREFIX_RE.match(config.path_prefix):
        problems.append(
            f"Path prefix '{config.path_prefix}' may only contain letters, digits, '_', '.', '-' and '/' "
            "and must not start with '/'"
        )

    if config.custom_domain and not is_valid_hostname(config.custom_domain):
        problems.append(
            f"Custom domain '{config.custom_domain}' must be a bare hostname such as cdn.example.com"
        )

    if isinstance(config, S3ProviderConfig):
        if not config.region.strip():
            problems.append("Region is required")
        elif not _REGION_RE.match(config.region):
            problems.append(f"Region '{config.region}' is not a valid region name")
        if config.endpoint and not is_http_url(config.endpoint):
            problems.append(f"Endpoint '{config.endpoint}' must be an http(s) URL")

    if isinstance(config, R2ProviderConfig):
        if not config.endpoint.strip():
            problems.append("Endpoint is required for R2")
        elif not is_http_url(config.endpoint):
            problems.append(f"Endpoint '{config.endpoint}' must be an http(s) URL")

    return problems


class ConfigValidator:
    """
    Validates provider settings before they are put to use.

    Args:
        client_factory: Builds a StorageClient for a provider config;
            injectable so tests can count network calls
    """

    def __init__(self, client_factory: Callable[[ProviderConfig], StorageClient] = StorageClient.from_settings):
        self._client_factory = client_factory

    def check_shape(self, settings: UploaderSettings) -> None:
        """
        Check the active provider config without touching the network.

        Raises:
            ConfigurationError: Listing every problem found
        """
        config = settings.active_provider()
        problems = find_problems(config)
        if problems:
            raise ConfigurationError(
                "; ".join(problems),
                details={"provider": settings.service_type.value, "problems": problems},
            )

    async def validate(self, settings: UploaderSettings) -> StorageClient:
        """
        Shape check, then a connectivity probe against the configured bucket.

        Returns:
            The probed client snapshot, ready for uploads

        Raises:
            ConfigurationError: reason is 'invalid', 'bucket_not_found',
                'access_denied' or 'connectivity'
        """
        provider = settings.service_type.value
        start_time = time.monotonic()

        try:
            self.check_shape(settings)
            client = self._client_factory(settings.active_provider())
            await self.probe(client)
        except ConfigurationError as e:
            config_validations_total.labels(provider=provider, result=e.reason).inc()
            log_config_invalid(logger, provider, e.reason, e.message)
            raise

        config_validations_total.labels(provider=provider, result="ok").inc()
        log_config_validated(
            logger,
            provider,
            client.bucket,
            client.endpoint.request_endpoint,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )
        return client

    async def probe(self, client: StorageClient) -> None:
        """
        Request a key that should not exist.

        "No such key" (or the key existing) proves the bucket is reachable
        with these credentials.

        Raises:
            ConfigurationError: If the bucket is missing, access is denied or
                the endpoint cannot be reached
        """
        probe_key = f"{client.config.path_prefix}{PROBE_KEY_NAME}"
        try:
            await client.probe_object(probe_key)
        except (ClientError, BotoCoreError) as e:
            if is_object_missing(e):
                return

            error = classify_error(
                e,
                endpoint=client.endpoint.request_endpoint,
                bucket=client.bucket,
                key=probe_key,
            )
            if isinstance(error, NotFoundError):
                raise ConfigurationError(
                    f"Bucket '{client.bucket}' does not exist at {client.endpoint.request_endpoint}",
                    details=error.details,
                    reason="bucket_not_found",
                ) from error
            if isinstance(error, AccessDeniedError):
                raise ConfigurationError(
                    f"Access denied to bucket '{client.bucket}'. Check the access key, secret and bucket policy.",
                    details=error.details,
                    reason="access_denied",
                ) from error
            if isinstance(error, ConfigurationError):
                raise error from e
            raise ConfigurationError(
                f"Could not connect to {client.endpoint.request_endpoint}: {error.message}",
                details=error.details,
                reason="connectivity",
            ) from error


__all__ = ["ConfigValidator", "PROBE_KEY_NAME", "find_problems", "is_valid_hostname"]
