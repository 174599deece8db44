"""
Proactive refresh of the media library's temporary AWS credentials.

``MediaCredentialRefreshService`` owns the whole lifecycle:

- expiry check: is the stored set within ``REFRESH_LEAD_TIME`` of expiring?
- refresh: extract a new set and persist it, at most one cycle at a time
- scheduling: a recurring check every ``CHECK_INTERVAL_SECONDS`` plus a
  one-shot check ``STARTUP_DELAY_SECONDS`` after start
- status: a snapshot for the admin panel

The service is asyncio based. Extractors and the settings store block, so
they run in the loop's default executor. The in-flight flag is process-local:
two processes sharing one settings table can still refresh concurrently.
"""

import asyncio
import functools
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Set

from utils.aws.credential_providers import CredentialExtractor, build_extractor
from utils.aws.credential_set import CredentialSet, format_timestamp, utcnow
from utils.aws.credential_store import CredentialStore
from utils.aws.media_config import (
    CHECK_INTERVAL_SECONDS,
    REFRESH_LEAD_TIME,
    STARTUP_DELAY_SECONDS,
    MediaCredentialConfig,
    load_media_config,
)

logger = logging.getLogger(__name__)

REFRESH_IN_PROGRESS_MESSAGE = "Refresh already in progress"
REFRESH_SUCCESS_MESSAGE = "Credentials refreshed successfully"


class MediaCredentialRefreshService:
    """Expiry checking, single-flight refresh, scheduling and status reporting."""

    def __init__(
        self,
        extractor: CredentialExtractor,
        store: CredentialStore,
        config: MediaCredentialConfig,
        *,
        clock: Callable[[], datetime] = utcnow,
        lead_time: timedelta = REFRESH_LEAD_TIME,
        check_interval: float = CHECK_INTERVAL_SECONDS,
        startup_delay: float = STARTUP_DELAY_SECONDS,
    ):
        self.extractor = extractor
        self.store = store
        self.config = config
        self.lead_time = lead_time
        self.check_interval = check_interval
        self.startup_delay = startup_delay
        self._clock = clock

        self._is_refreshing = False
        self._interval_task: Optional[asyncio.Task] = None
        self._startup_task: Optional[asyncio.Task] = None
        self._pending_checks: Set[asyncio.Task] = set()

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    @property
    def auto_refresh_running(self) -> bool:
        return self._interval_task is not None and not self._interval_task.done()

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # ------------------------------------------------------------------
    # Expiry checker
    # ------------------------------------------------------------------

    def refresh_due(self, credentials: Optional[CredentialSet], now: Optional[datetime] = None) -> bool:
        """True when *credentials* are absent, undated, or inside the lead time."""
        if credentials is None or credentials.expires_at is None:
            return True
        now = now or self._clock()
        return now >= credentials.expires_at - self.lead_time

    async def needs_refresh(self) -> bool:
        """
        Decide whether the stored credentials should be refreshed now.

        Any failure reading the store counts as "refresh needed" so that a
        broken read never leaves expired credentials in place unnoticed.
        """
        try:
            credentials = await self._run_blocking(self.store.load)
        except Exception as e:
            logger.error(f"Error checking credential status, refreshing to be safe: {e}")
            return True

        if credentials is None:
            logger.warning("No AWS config found - refresh needed")
            return True
        if credentials.expires_at is None:
            logger.warning("No expiration date found - refresh needed")
            return True

        due = self.refresh_due(credentials)
        if due:
            logger.info(f"Credentials need refresh (expire at {credentials.expires_at.isoformat()})")
        else:
            logger.debug(f"Credentials still valid until {credentials.expires_at.isoformat()}")
        return due

    # ------------------------------------------------------------------
    # Refresh orchestrator
    # ------------------------------------------------------------------

    async def refresh(self) -> Dict[str, Any]:
        """
        Run one refresh cycle: extract new credentials, then store them.

        A call made while another cycle is in flight is rejected immediately.
        Failures are returned, not raised, so callers always get a result of
        the form ``{"success": bool, "message": str, ...}``.
        """
        if self._is_refreshing:
            logger.info("Credential refresh already in progress")
            return {"success": False, "message": REFRESH_IN_PROGRESS_MESSAGE}

        self._is_refreshing = True
        try:
            logger.info("Starting AWS credential refresh...")
            credentials = await self._run_blocking(self.extractor.extract)
            stored = await self._run_blocking(self.store.save, credentials)
        except Exception as e:
            logger.error(f"AWS credential refresh failed: {e}")
            return {"success": False, "message": str(e), "error": type(e).__name__}
        finally:
            self._is_refreshing = False

        logger.info("AWS credential refresh completed successfully")
        return {
            "success": True,
            "message": REFRESH_SUCCESS_MESSAGE,
            "expiresAt": format_timestamp(stored.expires_at),
        }

    async def check_and_refresh(self, trigger: str = "Manual") -> bool:
        """
        Refresh only if the expiry checker says so.

        Returns True when a refresh ran and succeeded. Never raises.
        """
        try:
            if not await self.needs_refresh():
                return False
            logger.info(f"{trigger} refresh check triggered a refresh")
            result = await self.refresh()
            if not result["success"]:
                logger.warning(f"{trigger} refresh did not complete: {result['message']}")
            return result["success"]
        except Exception as e:
            logger.error(f"{trigger} refresh check failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    def start_auto_refresh(self) -> None:
        """
        Arm the recurring check and the one-shot startup check.

        Must be called from the event loop that will run the checks.
        """
        if self.auto_refresh_running:
            logger.info("AWS credential auto-refresh already running")
            return

        loop = asyncio.get_running_loop()
        logger.info(
            f"Starting AWS credential auto-refresh monitoring "
            f"(every {self.check_interval}s, first check in {self.startup_delay}s)"
        )
        self._interval_task = loop.create_task(self._run_interval())
        self._startup_task = loop.create_task(self._run_startup_check())

    def stop_auto_refresh(self) -> None:
        """Cancel scheduled checks. Must be called from the service's event loop."""
        stopped = False
        for task in (self._interval_task, self._startup_task):
            if task is not None and not task.done():
                task.cancel()
                stopped = True
        self._interval_task = None
        self._startup_task = None
        if stopped:
            logger.info("AWS credential auto-refresh stopped")

    async def _run_interval(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.check_interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += self.check_interval
            # Each tick runs on its own so a slow cycle never delays the next tick.
            check = loop.create_task(self.check_and_refresh("Auto"))
            self._pending_checks.add(check)
            check.add_done_callback(self._pending_checks.discard)

    async def _run_startup_check(self) -> None:
        await asyncio.sleep(self.startup_delay)
        await self.check_and_refresh("Initial")

    # ------------------------------------------------------------------
    # Status reporter
    # ------------------------------------------------------------------

    async def get_status(self) -> Dict[str, Any]:
        """Snapshot for the admin panel. Never raises."""
        try:
            credentials = await self._run_blocking(self.store.load)
            base = {
                "isRefreshing": self._is_refreshing,
                "autoRefreshRunning": self.auto_refresh_running,
            }

            if credentials is None:
                return {"status": "missing", "message": "No AWS configuration found", **base}
            if credentials.expires_at is None:
                return {"status": "invalid", "message": "No expiration date found", **base}

            now = self._clock()
            expires_at = credentials.expires_at
            if now >= expires_at:
                status = "expired"
            elif self.refresh_due(credentials, now):
                status = "expiring-soon"
            else:
                status = "valid"

            return {
                "status": status,
                "expiresAt": format_timestamp(expires_at),
                "lastRefresh": format_timestamp(credentials.last_refresh) if credentials.last_refresh else "unknown",
                "timeUntilExpiry": max(0, math.floor((expires_at - now).total_seconds() / 60)),
                "region": credentials.region or self.config.region,
                "bucketName": credentials.bucket_name or self.config.bucket_name,
                "accountId": self.config.account_id,
                "roleName": self.config.role_name,
                **base,
            }
        except Exception as e:
            logger.error(f"Failed to compute credential status: {e}")
            return {"status": "error", "message": str(e)}


def build_refresh_service(
    config: Optional[MediaCredentialConfig] = None,
    settings=None,
    **kwargs,
) -> MediaCredentialRefreshService:
    """Wire a service from environment configuration and the settings table."""
    config = config or load_media_config()
    if settings is None:
        from utils.db.settings_store import SettingsStore
        settings = SettingsStore()

    store = CredentialStore(settings, key=config.settings_key, clock=kwargs.get("clock", utcnow))
    return MediaCredentialRefreshService(build_extractor(config), store, config, **kwargs)
