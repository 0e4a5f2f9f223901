"""
Image uploader service - the boundary the host application talks to.

The host hands over image bytes (from a paste, a drop or a file picker) and
gets back a URL plus a ready-to-insert markdown snippet. Failures go to the
host's notifier as short messages.

Settings handling:
- The active configuration is an immutable UploaderSnapshot
  (settings + client + orchestrator)
- Saving settings builds a new snapshot and swaps it in with a single
  assignment; uploads already running keep the snapshot they started with
- Validation (including the connectivity probe) runs on start and on save,
  never per upload
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from imgup.config import settings as app_settings
from imgup.settings_store import SettingsStore
from imgup.storage.client import StorageClient
from imgup.storage.errors import ConfigurationError, UploadError
from imgup.storage.models import ProviderConfig, UploaderSettings, UploadRequest
from imgup.storage.uploader import UploadOrchestrator
from imgup.storage.validator import ConfigValidator

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]


def format_markdown(url: str, alt: str = "") -> str:
    """Markdown image embed for an uploaded URL."""
    return f"![{alt}]({url})"


def is_image(mime_type: str) -> bool:
    return mime_type.lower().startswith("image/")


@dataclass(frozen=True)
class UploaderSnapshot:
    """Everything one upload needs, fixed at activation time."""
    settings: UploaderSettings
    client: StorageClient
    orchestrator: UploadOrchestrator


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating and activating settings."""
    valid: bool
    provider: str
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    public_url_base: Optional[str] = None
    error: Optional[ConfigurationError] = None


@dataclass(frozen=True)
class UploadOutcome:
    """Result for one file of a multi-file paste or drop."""
    filename: str
    url: Optional[str] = None
    markdown: Optional[str] = None
    error: Optional[UploadError] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.url is not None


class UploaderService:
    """Owns the current storage snapshot and runs uploads against it."""

    def __init__(
        self,
        store: SettingsStore,
        validator: Optional[ConfigValidator] = None,
        client_factory: Callable[[ProviderConfig], StorageClient] = StorageClient.from_settings,
        notifier: Optional[Notifier] = None,
        validate_on_start: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            store: Settings persistence
            validator: Settings validator (built on client_factory if omitted)
            client_factory: Builds a StorageClient for a provider config
            notifier: Receives short user-facing failure messages
            validate_on_start: Run the connectivity probe in start()
            clock: Time source for storage keys (tests pin the date)
        """
        self.store = store
        self.validator = validator or ConfigValidator(client_factory)
        self._client_factory = client_factory
        self._notifier = notifier
        self._validate_on_start = validate_on_start
        self._clock = clock

        self._settings = UploaderSettings()
        self._snapshot: Optional[UploaderSnapshot] = None
        self._last_error: Optional[ConfigurationError] = None
        # Held across persist + validate + swap so activations never interleave
        self._settings_lock = asyncio.Lock()

    @property
    def settings(self) -> UploaderSettings:
        return self._settings

    @property
    def snapshot(self) -> Optional[UploaderSnapshot]:
        return self._snapshot

    @property
    def last_error(self) -> Optional[ConfigurationError]:
        return self._last_error

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    def notify(self, message: str) -> None:
        if self._notifier is not None:
            self._notifier(message)

    async def start(self) -> ValidationReport:
        """
        Load stored settings and activate them.

        Invalid settings do not raise: the error is logged, sent to the
        notifier once, and uploads fail with ConfigurationError until valid
        settings are saved.
        """
        async with self._settings_lock:
            settings = self.store.load()
            return await self._activate(settings, probe=self._validate_on_start)

    async def save_settings(self, settings: UploaderSettings) -> ValidationReport:
        """
        Persist new settings, then validate and activate them.

        Settings are saved even when invalid so the user can keep editing
        them; the service just stays unconfigured until they pass.
        """
        async with self._settings_lock:
            self.store.save(settings)
            return await self._activate(settings, probe=True)

    async def revalidate(self) -> ValidationReport:
        """Re-run validation (with probe) on the current settings."""
        async with self._settings_lock:
            return await self._activate(self._settings, probe=True)

    async def _activate(self, settings: UploaderSettings, probe: bool) -> ValidationReport:
        provider = settings.service_type.value
        self._settings = settings

        try:
            if probe:
                client = await self.validator.validate(settings)
            else:
                self.validator.check_shape(settings)
                client = self._client_factory(settings.active_provider())
        except ConfigurationError as e:
            self._snapshot = None
            self._last_error = e
            self.notify(f"Image upload is not configured: {e.message}")
            return ValidationReport(valid=False, provider=provider, error=e)

        # Single assignment: readers see either the old or the new snapshot
        self._snapshot = UploaderSnapshot(
            settings=settings,
            client=client,
            orchestrator=UploadOrchestrator(client, clock=self._clock),
        )
        self._last_error = None
        logger.info(f"Uploader active: {provider} bucket={client.bucket}")

        return ValidationReport(
            valid=True,
            provider=provider,
            bucket=client.bucket,
            endpoint=client.endpoint.request_endpoint,
            public_url_base=client.endpoint.public_url_base,
        )

    async def upload(self, request: UploadRequest) -> str:
        """
        Upload one image with the current snapshot.

        Returns:
            Public URL

        Raises:
            ConfigurationError: If no valid settings are active
            UploadError: Any classified upload failure
        """
        snapshot = self._snapshot
        if snapshot is None:
            if self._last_error is not None:
                raise ConfigurationError(
                    f"Image upload is not configured: {self._last_error.message}",
                    details=self._last_error.details,
                    reason=self._last_error.reason,
                )
            raise ConfigurationError("Image upload is not configured")

        return await snapshot.orchestrator.upload(request)

    async def upload_many(self, requests: Sequence[UploadRequest]) -> List[UploadOutcome]:
        """
        Upload several images concurrently (multi-file paste or drop).

        Non-image files are skipped. Results come back in input order; the
        uploads themselves may finish in any order.

        Used by in-process hosts that receive several files from one paste
        or drop; the HTTP API takes one image per request.
        """
        return list(await asyncio.gather(*(self._upload_one(r) for r in requests)))

    async def _upload_one(self, request: UploadRequest) -> UploadOutcome:
        if not is_image(request.mime_type):
            logger.debug(f"Skipping non-image file {request.original_name} ({request.mime_type})")
            return UploadOutcome(filename=request.original_name, skipped=True)

        try:
            url = await self.upload(request)
        except UploadError as e:
            self.notify(f"Failed to upload {request.original_name}: {e.message}")
            return UploadOutcome(filename=request.original_name, error=e)

        return UploadOutcome(filename=request.original_name, url=url, markdown=format_markdown(url))


# Singleton instance
_uploader_service: Optional[UploaderService] = None


def get_uploader_service() -> UploaderService:
    """
    Get the singleton uploader service instance.

    Returns:
        UploaderService (may or may not be configured)
    """
    global _uploader_service
    if _uploader_service is None:
        _uploader_service = UploaderService(
            SettingsStore(),
            validate_on_start=app_settings.validate_on_startup,
        )
    return _uploader_service
