"""Lookup of access tokens left behind by ``aws sso login``."""
import glob
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from utils.aws.credential_errors import SSOCacheNotFoundError, SSOTokenNotFoundError
from utils.aws.credential_set import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


def _read_cache_entry(path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as e:
        logger.debug(f"Skipping unreadable SSO cache file {os.path.basename(path)}: {e}")
        return None
    return data if isinstance(data, dict) else None


def is_usable_cache_entry(entry: Dict[str, Any], now: datetime) -> bool:
    """
    An entry is usable when it belongs to an SSO session (``startUrl``), holds
    an ``accessToken`` and has not passed its ``expiresAt``. Entries without
    an expiry are accepted; the token exchange will reject them if stale.
    """
    if not entry.get("startUrl") or not entry.get("accessToken"):
        return False

    if "expiresAt" in entry:
        expires_at = parse_timestamp(entry.get("expiresAt"))
        if expires_at is None or expires_at <= now:
            return False
    return True


def find_sso_access_token(cache_dir: str, now: Optional[datetime] = None) -> str:
    """
    Return the first valid SSO access token found in *cache_dir*.

    Files are scanned in filename order and the first usable entry wins.

    Raises:
        SSOCacheNotFoundError: cache directory does not exist
        SSOTokenNotFoundError: no entry holds a non-expired access token
    """
    cache_dir = os.path.expanduser(cache_dir)
    if not os.path.isdir(cache_dir):
        raise SSOCacheNotFoundError(
            f'AWS SSO cache directory not found ({cache_dir}). Run "aws sso login" first.'
        )

    now = now or utcnow()
    for path in sorted(glob.glob(os.path.join(cache_dir, "*.json"))):
        entry = _read_cache_entry(path)
        if entry and is_usable_cache_entry(entry, now):
            logger.debug(f"Using SSO session from cache file {os.path.basename(path)} ({entry.get('startUrl')})")
            return entry["accessToken"]

    raise SSOTokenNotFoundError('No valid SSO access token found. Run "aws sso login" first.')
