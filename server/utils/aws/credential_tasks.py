"""
Celery beat entry point for media credential refresh.

Used instead of the in-process scheduler when
``MEDIA_CREDENTIAL_REFRESH_MODE=celery``: each beat tick builds a service and
runs a single check-then-refresh cycle.
"""

import asyncio
import logging

from celery_config import celery_app
from utils.aws.credential_refresh import build_refresh_service

logger = logging.getLogger(__name__)


@celery_app.task(name="utils.aws.credential_tasks.refresh_media_credentials")
def refresh_media_credentials():
    """Refresh the media library credentials if they are close to expiry.

    Returns a summary dict for the Celery result backend.
    """
    service = build_refresh_service()
    refreshed = asyncio.run(service.check_and_refresh("Beat"))
    status = asyncio.run(service.get_status())
    logger.info(f"Beat credential check finished: refreshed={refreshed}, status={status.get('status')}")
    return {"refreshed": refreshed, "status": status.get("status")}
