"""
Generic key-value settings table.

The blog keeps site-wide configuration as rows of ``settings(key, value,
type)``. Values are stored as text; JSON payloads are serialised by the
caller and tagged with ``type = 'json'``.
"""
import json
import logging
from typing import Optional

import psycopg2

from utils.db.connection_pool import db_pool

logger = logging.getLogger(__name__)

CREATE_SETTINGS_TABLE = """
    CREATE TABLE IF NOT EXISTS settings (
        key VARCHAR(255) PRIMARY KEY,
        value TEXT NOT NULL,
        type VARCHAR(50) DEFAULT 'string',
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
"""

SELECT_SETTING = "SELECT value FROM settings WHERE key = %s"

UPSERT_SETTING = """
    INSERT INTO settings (key, value, type, updated_at)
    VALUES (%s, %s, %s, CURRENT_TIMESTAMP)
    ON CONFLICT (key) DO UPDATE
    SET value = EXCLUDED.value, type = EXCLUDED.type, updated_at = CURRENT_TIMESTAMP
"""

DELETE_SETTING = "DELETE FROM settings WHERE key = %s"


class SettingsStore:
    """Reads and writes rows of the ``settings`` table through the shared pool."""

    def __init__(self, pool=db_pool):
        self._pool = pool

    def ensure_table(self) -> None:
        with self._pool.transaction() as cursor:
            cursor.execute(CREATE_SETTINGS_TABLE)
        logger.info("Settings table ready")

    def get(self, key: str) -> Optional[str]:
        """Return the raw value stored under *key*, or None if absent."""
        try:
            with self._pool.transaction() as cursor:
                cursor.execute(SELECT_SETTING, (key,))
                row = cursor.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Failed to read setting '{key}': {e}")
            raise

        if not row:
            return None
        value = row[0]
        # jsonb columns on older deployments come back already decoded
        if not isinstance(value, str) and value is not None:
            value = json.dumps(value)
        return value

    def set(self, key: str, value: str, value_type: str = "string") -> None:
        """Insert or replace the value stored under *key* (last writer wins)."""
        try:
            with self._pool.transaction() as cursor:
                cursor.execute(UPSERT_SETTING, (key, value, value_type))
        except psycopg2.Error as e:
            logger.error(f"Failed to write setting '{key}': {e}")
            raise

    def delete(self, key: str) -> bool:
        try:
            with self._pool.transaction() as cursor:
                cursor.execute(DELETE_SETTING, (key,))
                deleted = cursor.rowcount > 0
        except psycopg2.Error as e:
            logger.error(f"Failed to delete setting '{key}': {e}")
            raise
        return deleted
