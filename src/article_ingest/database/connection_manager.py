#!/usr/bin/env python3
"""
Database Connection Manager

Handles pooled PostgreSQL connections with proper lifecycle management.
Each borrower gets its own connection, so concurrent creations never share
a transaction.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from article_ingest.exceptions import ConfigurationError, GatewayConnectionError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages a connection pool with error handling."""

    def __init__(self, config, pool: Optional[ConnectionPool] = None):
        """
        Initialize connection manager with configuration.

        Args:
            config: DatabaseConfig object
            pool: Pre-built pool (tests inject one here)
        """
        self.config = config
        self.pool = pool or self._create_pool()

    def _build_connection_string(self) -> str:
        """Build PostgreSQL connection string from configuration."""
        if self.config.database_url:
            return self.config.database_url

        url = self.config.supabase_url or ''
        password = self.config.supabase_db_password

        if not url.startswith('https://'):
            raise ConfigurationError('SUPABASE_URL', f"invalid Supabase URL format: {url}")
        if not password:
            raise ConfigurationError('SUPABASE_DB_PASSWORD', 'required for direct connection')

        host = url.replace('https://', '').rstrip('/')

        # Use connection pooling port 6543 for better reliability
        return f"postgresql://postgres:{password}@{host}:6543/postgres?sslmode=require"

    def _create_pool(self) -> ConnectionPool:
        """Open the connection pool."""
        pool = ConnectionPool(
            self._build_connection_string(),
            min_size=self.config.pool_min_size,
            max_size=self.config.pool_max_size,
            timeout=self.config.connection_timeout,
            kwargs={
                'row_factory': dict_row,
                'autocommit': True,
                'connect_timeout': self.config.connection_timeout,
            },
            open=False,
        )
        try:
            pool.open(wait=True, timeout=self.config.connection_timeout)
        except (PoolTimeout, psycopg.Error) as e:
            pool.close()
            raise GatewayConnectionError('PostgreSQL', e) from e

        logger.debug(f"Database pool opened (min={self.config.pool_min_size}, max={self.config.pool_max_size})")
        return pool

    @contextmanager
    def connection(self) -> Iterator[psycopg.Connection]:
        """Borrow a connection from the pool."""
        try:
            with self.pool.connection() as conn:
                yield conn
        except PoolTimeout as e:
            raise GatewayConnectionError('PostgreSQL pool', e) from e

    @contextmanager
    def get_cursor(self):
        """
        Get an autocommit cursor as context manager.

        Yields:
            Database cursor
        """
        with self.connection() as conn:
            with conn.cursor() as cursor:
                yield cursor

    @contextmanager
    def transaction(self):
        """
        Execute operations in a database transaction.

        Commits when the block exits normally, rolls back on any exception
        (KeyboardInterrupt included).

        Yields:
            Database cursor within transaction
        """
        with self.connection() as conn:
            with conn.transaction():
                with conn.cursor() as cursor:
                    yield cursor

    def close(self) -> None:
        """Close the connection pool."""
        if not self.pool.closed:
            self.pool.close()
            logger.debug("Database pool closed")

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the pool.

        Returns:
            Health status information
        """
        try:
            with self.get_cursor() as cursor:
                cursor.execute("SELECT 1 AS test")
                result = cursor.fetchone()

                cursor.execute("SELECT version() AS version")
                version_info = cursor.fetchone()

            return {
                'connected': True,
                'test_query': result['test'] == 1,
                'version': version_info['version'],
                'pool': self.pool.get_stats()
            }

        except (psycopg.Error, GatewayConnectionError) as e:
            logger.error(f"Database health check failed: {e}")
            return {
                'connected': False,
                'error': str(e)
            }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
