"""
JSON file store for provider settings.

The store treats settings as one record: load() returns defaults for
anything missing, save() replaces the whole file atomically.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from imgup.config import settings as app_settings
from imgup.storage.models import UploaderSettings

logger = logging.getLogger(__name__)


class SettingsStore:
    """Loads and saves UploaderSettings as camelCase JSON."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or app_settings.settings_file)

    def load(self) -> UploaderSettings:
        """
        Read settings from disk.

        Returns:
            Stored settings merged over defaults; pure defaults when the file
            is absent or unreadable
        """
        if not self.path.exists():
            logger.info(f"No settings file at {self.path}, using defaults")
            return UploaderSettings()

        try:
            blob = json.loads(self.path.read_text(encoding="utf-8"))
            return UploaderSettings.model_validate(blob)
        except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
            logger.warning(f"Settings file {self.path} is unreadable, using defaults: {e}")
            return UploaderSettings()

    def save(self, settings: UploaderSettings) -> None:
        """Write settings, replacing the previous file in one step."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".settings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(settings.to_blob(), f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        logger.info(f"Settings saved to {self.path}")
