"""
Media library credential routes.

Admin panel endpoints for refreshing and inspecting the temporary AWS
credentials used by the media library.
"""
import concurrent.futures
import logging
from flask import Blueprint, current_app, jsonify, request

from utils.auth.admin_auth import require_admin
from utils.aws.credential_refresh import REFRESH_IN_PROGRESS_MESSAGE
from utils.aws.credential_worker import DEFAULT_CALL_TIMEOUT
from utils.web.cors_utils import create_cors_response

logger = logging.getLogger(__name__)

credentials_bp = Blueprint("aws_credentials_bp", __name__)

EXTENSION_KEY = "media_credentials"


def _get_worker():
    return current_app.extensions[EXTENSION_KEY]


def _timeout_message(action: str) -> str:
    return f"{action} timed out after {DEFAULT_CALL_TIMEOUT}s"


@credentials_bp.route('/refresh-credentials', methods=['POST', 'OPTIONS'])
@require_admin
def refresh_credentials():
    """Trigger an immediate refresh cycle."""
    if request.method == 'OPTIONS':
        return create_cors_response()

    try:
        worker = _get_worker()
        result = worker.run(worker.service.refresh())
    except concurrent.futures.TimeoutError:
        logger.error("Manual credential refresh timed out")
        return jsonify({"success": False, "message": _timeout_message("Credential refresh")}), 500
    except Exception as e:
        logger.error(f"Manual credential refresh failed: {e}")
        return jsonify({"success": False, "message": str(e)}), 500

    if result["success"]:
        return jsonify(result)
    if result["message"] == REFRESH_IN_PROGRESS_MESSAGE:
        return jsonify(result), 409
    return jsonify(result), 500


@credentials_bp.route('/credential-status', methods=['GET', 'OPTIONS'])
@require_admin
def credential_status():
    """Report the current credential status for the admin panel."""
    if request.method == 'OPTIONS':
        return create_cors_response()

    try:
        worker = _get_worker()
        status = worker.run(worker.service.get_status())
    except concurrent.futures.TimeoutError:
        logger.error("Credential status check timed out")
        status = {"status": "error", "message": _timeout_message("Credential status check")}
    except Exception as e:
        logger.error(f"Failed to check credential status: {e}")
        status = {"status": "error", "message": str(e)}
    return jsonify(status)


@credentials_bp.route('/auto-refresh', methods=['POST', 'OPTIONS'])
@require_admin
def auto_refresh():
    """Refresh only if the stored credentials are close to expiry (cron friendly)."""
    if request.method == 'OPTIONS':
        return create_cors_response()

    try:
        worker = _get_worker()
        refreshed = worker.run(worker.service.check_and_refresh("Requested"))
    except concurrent.futures.TimeoutError:
        logger.error("Auto-refresh timed out")
        return jsonify({"success": False, "message": _timeout_message("Credential auto-refresh")}), 500
    except Exception as e:
        logger.error(f"Auto-refresh failed: {e}")
        return jsonify({"success": False, "message": str(e)}), 500

    return jsonify({
        "success": True,
        "refreshed": refreshed,
        "message": "Credentials refreshed" if refreshed else "No refresh performed",
    })
