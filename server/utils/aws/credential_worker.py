"""
Background event loop hosting the media credential refresh service.

Flask handlers are synchronous, while the refresh service is asyncio based.
The worker runs a dedicated event loop in a daemon thread; the scheduler's
timers live on that loop and request handlers submit coroutines to it with
``run``.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

from utils.aws.credential_refresh import MediaCredentialRefreshService

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 120  # seconds a request handler waits for a coroutine


class CredentialRefreshWorker:
    """Owns the event loop thread that the refresh service runs on."""

    def __init__(self, service: MediaCredentialRefreshService):
        self.service = service
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, auto_refresh: bool = True) -> None:
        """Start the loop thread and, optionally, the service's scheduler."""
        with self._lock:
            if self.running:
                logger.info("Credential refresh worker already running")
                return

            self._ready.clear()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop, name="media-credential-refresh", daemon=True
            )
            self._thread.start()
            self._ready.wait()

        if auto_refresh:
            self.call(self.service.start_auto_refresh)
        logger.info(f"Credential refresh worker started (auto_refresh={auto_refresh})")

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        try:
            self._loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self._loop)
            for task in pending:
                task.cancel()
            if pending:
                self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self._loop.close()

    def run(self, coroutine: Awaitable[Any], timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> Any:
        """Run *coroutine* on the worker loop and wait for its result."""
        if not self.running:
            if asyncio.iscoroutine(coroutine):
                coroutine.close()
            raise RuntimeError("Credential refresh worker is not running")
        future = asyncio.run_coroutine_threadsafe(coroutine, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def call(self, func: Callable[[], Any], timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> Any:
        """Run a plain callable on the worker loop (for loop-bound, non-async APIs)."""

        async def _invoke():
            return func()

        return self.run(_invoke(), timeout)

    def stop(self, timeout: float = 5) -> None:
        """Stop the scheduler and the loop thread. Safe to call more than once."""
        with self._lock:
            if not self.running:
                return
            try:
                self.call(self.service.stop_auto_refresh, timeout)
            except Exception as e:
                logger.warning(f"Failed to stop auto-refresh cleanly: {e}")
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("Credential refresh worker stopped")
