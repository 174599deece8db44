"""Admin authentication for the media credential endpoints."""
import functools
import hmac
import logging
import os
from typing import Optional

from flask import jsonify, request

logger = logging.getLogger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"


def get_admin_token_from_request() -> Optional[str]:
    """Extract the admin token from the X-Admin-Token header or a Bearer Authorization header."""
    token = request.headers.get(ADMIN_TOKEN_HEADER)
    if token:
        return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def is_admin_request() -> bool:
    expected = os.getenv("MEDIA_ADMIN_TOKEN")
    if not expected:
        logger.warning("MEDIA_ADMIN_TOKEN is not set; rejecting admin request")
        return False

    provided = get_admin_token_from_request()
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def require_admin(view):
    """Reject the request with 401 unless it carries the admin token."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        if request.method == "OPTIONS":
            return view(*args, **kwargs)
        if not is_admin_request():
            logger.warning(f"Unauthorized admin request to {request.path}")
            return jsonify({"success": False, "error": "Unauthorized"}), 401
        return view(*args, **kwargs)

    return wrapper
