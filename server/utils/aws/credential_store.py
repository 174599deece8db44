"""Persistence of the current media library ``CredentialSet``."""
import json
import logging
from typing import Callable, Optional
from datetime import datetime

from utils.aws.credential_set import CredentialSet, utcnow
from utils.aws.media_config import DEFAULT_SETTINGS_KEY
from utils.logging.secure_logging import safe_log_aws_creds

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Keeps exactly one credential set under a fixed settings key.

    ``settings`` is any object with ``get(key)`` and ``set(key, value,
    value_type)``; in production that is ``utils.db.settings_store.SettingsStore``.
    Database errors are not caught here.
    """

    def __init__(self, settings, key: str = DEFAULT_SETTINGS_KEY, clock: Callable[[], datetime] = utcnow):
        self._settings = settings
        self.key = key
        self._clock = clock

    def save(self, credentials: CredentialSet) -> CredentialSet:
        """Replace the stored set, stamping ``last_refresh`` with the current time."""
        stored = credentials.with_last_refresh(self._clock())
        self._settings.set(self.key, json.dumps(stored.to_dict()), "json")
        safe_log_aws_creds(stored.to_dict(), logger.debug, "Stored media credentials")
        logger.info(
            f"AWS credentials updated in settings '{self.key}', "
            f"new expiration: {stored.expires_at.isoformat() if stored.expires_at else 'unknown'}"
        )
        return stored

    def load(self) -> Optional[CredentialSet]:
        """
        Return the stored set, or None when nothing has been stored yet.

        Raises:
            ValueError: the stored value is not a JSON object
        """
        raw = self._settings.get(self.key)
        if raw is None or raw == "":
            return None
        return CredentialSet.from_dict(json.loads(raw))
