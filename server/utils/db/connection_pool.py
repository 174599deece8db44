import psycopg2
import psycopg2.pool
import logging
import os
import threading
from dotenv import load_dotenv
from contextlib import contextmanager
from typing import Any, Dict, Optional

load_dotenv()

logger = logging.getLogger(__name__)


def db_params_from_env() -> Dict[str, Any]:
    """Connection parameters from the POSTGRES_* environment variables."""
    return {
        'dbname': os.getenv('POSTGRES_DB'),
        'user': os.getenv('POSTGRES_USER'),
        'password': os.getenv('POSTGRES_PASSWORD'),
        'host': os.getenv('POSTGRES_HOST'),
        'port': int(os.getenv('POSTGRES_PORT', '5432')),
        'connect_timeout': int(os.getenv('POSTGRES_CONNECT_TIMEOUT', '10')),
    }


class DatabaseConnectionPool:
    """
    Lazily created psycopg2 pool shared by the web handlers, the refresh
    worker's executor threads and the Celery task.
    """

    def __init__(self, db_params: Optional[Dict[str, Any]] = None, min_connections: int = 1, max_connections: int = 10):
        self._db_params = db_params
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()

    def _get_pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        if self._pool is None or self._pool.closed:
            with self._pool_lock:
                if self._pool is None or self._pool.closed:
                    params = self._db_params or db_params_from_env()
                    try:
                        self._pool = psycopg2.pool.ThreadedConnectionPool(
                            self.min_connections, self.max_connections, **params
                        )
                    except psycopg2.Error as e:
                        logger.error(f"Failed to connect to {params.get('host')}/{params.get('dbname')}: {e}")
                        raise
                    logger.info(f"Connection pool created: {self.min_connections}-{self.max_connections} connections")
        return self._pool

    @contextmanager
    def get_connection(self):
        """Borrow a connection; it is rolled back if the block raises."""
        pool = self._get_pool()
        connection = pool.getconn()
        connection.autocommit = False
        try:
            yield connection
        except Exception as e:
            try:
                connection.rollback()
            except psycopg2.Error as rollback_error:
                logger.warning(f"Rollback failed: {rollback_error}")
            logger.error(f"Error with connection: {e}")
            raise
        finally:
            try:
                pool.putconn(connection)
            except psycopg2.Error as e:
                logger.error(f"Error returning connection to pool: {e}")

    @contextmanager
    def transaction(self):
        """Yield a cursor and commit when the block completes."""
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                yield cursor
            conn.commit()

    def close_pools(self):
        """Close the connection pool."""
        with self._pool_lock:
            if self._pool and not self._pool.closed:
                self._pool.closeall()
                logger.info("Connection pool closed")

# Global instance
db_pool = DatabaseConnectionPool()
