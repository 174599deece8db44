"""
Media Library Credential Service - Main Entry Point
This file initializes the Flask app, starts the credential refresh worker and
registers the admin blueprints.
All business logic is contained in utils/aws and the blueprints under routes/
"""
# Import dotenv early and load env vars before other imports rely on them
from dotenv import load_dotenv

# Load environment variables from the project root .env file
load_dotenv()

import atexit
import logging
import os
import secrets
from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

# Configure logging first, before importing any modules
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
# Silence verbose loggers
logging.getLogger('werkzeug').setLevel(logging.INFO)
logging.getLogger('botocore').setLevel(logging.WARNING)

from routes.aws import bp as aws_bp
from routes.aws.credential_routes import EXTENSION_KEY
from utils.aws.credential_refresh import build_refresh_service
from utils.aws.credential_worker import CredentialRefreshWorker
from utils.db.connection_pool import db_pool
from utils.db.settings_store import SettingsStore
from utils.flags.feature_flags import get_credential_refresh_mode, is_media_auto_refresh_enabled

logger = logging.getLogger(__name__)

FRONTEND_URL = os.getenv("FRONTEND_URL")


def initialize_settings_table(settings: SettingsStore) -> None:
    # The service still starts without a database; status reports the error
    try:
        settings.ensure_table()
    except Exception as e:
        logger.error(f"Failed to initialize settings table: {e}")


def start_credential_worker(settings: SettingsStore) -> CredentialRefreshWorker:
    service = build_refresh_service(settings=settings)
    worker = CredentialRefreshWorker(service)

    mode = get_credential_refresh_mode()
    auto_refresh = is_media_auto_refresh_enabled() and mode == "inprocess"
    if not auto_refresh:
        logger.info(f"In-process auto-refresh disabled (mode={mode})")
    worker.start(auto_refresh=auto_refresh)
    return worker


def create_app() -> Flask:
    app = Flask(__name__)

    # Ensure correct scheme (http/https) behind reverse proxy or load balancer
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)
    app.secret_key = os.getenv("FLASK_SECRET_KEY") or secrets.token_hex(24)

    # Configure CORS
    CORS(app, origins=FRONTEND_URL, supports_credentials=True,
         methods=["GET", "POST", "OPTIONS"],
         resources={
             r"/aws/*": {"origins": FRONTEND_URL, "supports_credentials": True,
                         "allow_headers": ["Content-Type", "X-Admin-Token", "X-Requested-With", "Authorization"],
                         "methods": ["GET", "POST", "OPTIONS"]},
         }
    )

    settings = SettingsStore()
    initialize_settings_table(settings)

    worker = start_credential_worker(settings)
    app.extensions[EXTENSION_KEY] = worker

    # --- Media Library Credential Routes ---
    app.register_blueprint(aws_bp)

    def shutdown():
        worker.stop()
        db_pool.close_pools()

    atexit.register(shutdown)
    return app


# Always build the app when module is imported (for Gunicorn and direct execution)
app = create_app()

if __name__ == "__main__":
    # Development mode: run Flask's built-in server
    port = int(os.getenv("FLASK_PORT", "5080"))
    app.run(host="0.0.0.0", port=port, debug=False)
