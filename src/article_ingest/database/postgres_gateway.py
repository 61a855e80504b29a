#!/usr/bin/env python3
"""
PostgreSQL Storage Gateway

Direct psycopg access to the ingestion tables. Unlike the REST gateway it can
run the article insert and its topic associations in one transaction.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List

import psycopg
from psycopg import sql

from article_ingest.adapters.base import (
    StorageGateway, extract_constraint_name,
    SOURCES_TABLE, TOPICS_TABLE, ARTICLES_TABLE, ARTICLE_TOPICS_TABLE,
)
from article_ingest.exceptions import (
    ConstraintViolationError, GatewayConnectionError, GatewayOperationError,
    RecordNotFoundError,
)

logger = logging.getLogger(__name__)


def classify_psycopg_error(error: psycopg.Error, operation: str, table: str) -> Exception:
    """Map a psycopg error onto the gateway error taxonomy."""
    if isinstance(error, psycopg.IntegrityError):
        diag = getattr(error, 'diag', None)
        constraint_name = getattr(diag, 'constraint_name', None) or extract_constraint_name(str(error))
        return ConstraintViolationError(constraint_name, sqlstate=error.sqlstate, table=table, original_error=error)
    if isinstance(error, (psycopg.OperationalError, psycopg.InterfaceError)):
        return GatewayConnectionError('PostgreSQL', error)
    return GatewayOperationError(operation, table, error)


class PostgresGateway(StorageGateway):
    """Storage gateway over a pooled psycopg connection."""

    supports_transactions = True

    def __init__(self, connection_manager, schema: str = 'app', cursor=None):
        """
        Initialize gateway.

        Args:
            connection_manager: ConnectionManager owning the pool
            schema: Schema holding the ingestion tables
            cursor: Transaction cursor; set only on gateways yielded by atomic()
        """
        self.connection_manager = connection_manager
        self.schema = schema
        self._bound_cursor = cursor

    def _table(self, name: str) -> sql.Composed:
        return sql.SQL('{}.{}').format(sql.Identifier(self.schema), sql.Identifier(name))

    @contextmanager
    def _cursor(self, operation: str, table: str):
        """Yield the bound transaction cursor, or borrow an autocommit one."""
        try:
            if self._bound_cursor is not None:
                yield self._bound_cursor
            else:
                with self.connection_manager.get_cursor() as cursor:
                    yield cursor
        except psycopg.Error as e:
            raise classify_psycopg_error(e, operation, table) from e

    # Reads

    def find_source_by_id(self, source_id: str) -> Dict[str, Any]:
        with self._cursor('select', SOURCES_TABLE) as cursor:
            cursor.execute(
                sql.SQL("SELECT id FROM {} WHERE id = %s").format(self._table(SOURCES_TABLE)),
                (source_id,)
            )
            row = cursor.fetchone()

        if row is None:
            raise RecordNotFoundError(SOURCES_TABLE, source_id)
        return row

    def find_topics_by_ids(self, topic_ids: Iterable[str]) -> List[Dict[str, Any]]:
        topic_ids = list(topic_ids)
        if not topic_ids:
            return []

        with self._cursor('select', TOPICS_TABLE) as cursor:
            cursor.execute(
                sql.SQL("SELECT id FROM {} WHERE id = ANY(%s::uuid[])").format(self._table(TOPICS_TABLE)),
                (topic_ids,)
            )
            return [{'id': str(row['id'])} for row in cursor.fetchall()]

    # Writes

    def insert_article(self, row: Dict[str, Any]) -> Dict[str, Any]:
        columns = list(row.keys())
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            self._table(ARTICLES_TABLE),
            sql.SQL(', ').join(map(sql.Identifier, columns)),
            sql.SQL(', ').join(sql.Placeholder() * len(columns))
        )

        with self._cursor('insert', ARTICLES_TABLE) as cursor:
            cursor.execute(query, [row[column] for column in columns])
            stored = cursor.fetchone()

        logger.debug(f"Inserted article {stored['id']}")
        return stored

    def insert_article_topic_associations(self, article_id: str, topic_ids: List[str]) -> List[Dict[str, Any]]:
        if not topic_ids:
            return []

        query = sql.SQL("""
            INSERT INTO {} (article_id, topic_id)
            SELECT %s, topic_id FROM unnest(%s::uuid[]) AS topic_id
            RETURNING article_id, topic_id
        """).format(self._table(ARTICLE_TOPICS_TABLE))

        with self._cursor('insert', ARTICLE_TOPICS_TABLE) as cursor:
            cursor.execute(query, (article_id, list(topic_ids)))
            rows = cursor.fetchall()

        logger.debug(f"Bound article {article_id} to {len(rows)} topics")
        return rows

    def delete_article_by_id(self, article_id: str) -> None:
        with self._cursor('delete', ARTICLES_TABLE) as cursor:
            cursor.execute(
                sql.SQL("DELETE FROM {} WHERE id = %s").format(self._table(ARTICLES_TABLE)),
                (article_id,)
            )
            deleted_count = cursor.rowcount

        logger.debug(f"Deleted article {article_id} ({deleted_count} rows)")

    @contextmanager
    def atomic(self) -> Iterator['PostgresGateway']:
        """
        Run the enclosed gateway calls in one transaction.

        Yields:
            Gateway bound to the transaction cursor
        """
        if self._bound_cursor is not None:
            yield self
            return

        try:
            with self.connection_manager.transaction() as cursor:
                yield PostgresGateway(self.connection_manager, self.schema, cursor=cursor)
        except psycopg.Error as e:
            # Errors raised while committing
            raise classify_psycopg_error(e, 'commit', ARTICLES_TABLE) from e

    # Health Check

    def health_check(self) -> Dict[str, Any]:
        health = self.connection_manager.health_check()
        health.update({
            'method': 'PostgreSQL',
            'schema': self.schema,
            'transactions': self.supports_transactions,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })
        return health

    def close(self) -> None:
        if self._bound_cursor is None:
            self.connection_manager.close()
