from celery import Celery
import os
import logging
from dotenv import load_dotenv

from utils.flags.feature_flags import get_credential_refresh_mode

# ------------------------------------------------------------
# Configure root logger BEFORE Celery starts.
# Uses stdout-only logging for container-native log aggregation.
# ------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
    force=True  # Remove any existing handlers set by other modules to avoid duplicate logs
)

# Prevent Celery from replacing the root logger handlers when the worker
# starts. This MUST be set before the worker process initialises logging.
os.environ.setdefault("CELERYD_HIJACK_ROOT_LOGGER", "False")

load_dotenv()

celery_app = Celery('media_credential_tasks',
                    broker=os.getenv('REDIS_URL', 'redis://redis:6379/0'),
                    backend=os.getenv('REDIS_URL', 'redis://redis:6379/0'))

# Beat only drives the refresh when the web process is not doing it itself.
beat_schedule = {}
if get_credential_refresh_mode() == "celery":
    beat_schedule['check-media-credentials'] = {
        'task': 'utils.aws.credential_tasks.refresh_media_credentials',
        'schedule': 900.0,  # Every 15 minutes
    }

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    worker_prefetch_multiplier=1,  # Process one task at a time
    broker_connection_retry_on_startup=True,
    include=['utils.aws.credential_tasks'],
    beat_schedule=beat_schedule,
    beat_schedule_filename='celerybeat-schedule',
    worker_hijack_root_logger=False
)
