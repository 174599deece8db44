"""Feature flags for toggling media credential functionality."""
import os

REFRESH_MODES = ("inprocess", "celery")


def is_media_auto_refresh_enabled() -> bool:
    """Check if the in-process credential scheduler should be armed at startup."""
    return os.getenv("MEDIA_AUTO_REFRESH_ENABLED", "true").lower() == "true"


def get_credential_refresh_mode() -> str:
    """Return where scheduled refreshes run: ``inprocess`` (web app) or ``celery`` (beat)."""
    mode = os.getenv("MEDIA_CREDENTIAL_REFRESH_MODE", "inprocess").strip().lower()
    return mode if mode in REFRESH_MODES else "inprocess"
