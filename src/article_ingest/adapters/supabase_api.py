#!/usr/bin/env python3
"""
Supabase REST API Storage Gateway.

Alternative to direct PostgreSQL connection for networks that block port 5432/6543.
Uses Supabase REST API over HTTPS. PostgREST runs one statement per request,
so this gateway offers no multi-statement transactions.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Dict, Any, Iterable, Iterator

import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client

from article_ingest.adapters.base import (
    StorageGateway, extract_constraint_name,
    SOURCES_TABLE, TOPICS_TABLE, ARTICLES_TABLE, ARTICLE_TOPICS_TABLE,
)
from article_ingest.exceptions import (
    ConfigurationError, ConstraintViolationError, GatewayConnectionError,
    GatewayOperationError, RecordNotFoundError,
)

logger = logging.getLogger(__name__)

CONSTRAINT_SQLSTATES = ('23505', '23503', '23502', '23514')


class SupabaseGateway(StorageGateway):
    """
    Storage gateway using Supabase REST API.

    Writes are single statements; the article writer compensates on its own
    when a later write in the same creation fails.
    """

    supports_transactions = False

    def __init__(self, db_config, client: Client = None):
        """
        Initialize Supabase API client.

        Args:
            db_config: DatabaseConfig with URL, key and schema
            client: Pre-built client (tests inject a mock here)
        """
        self.schema = db_config.db_schema
        self.client = client or self._create_client(db_config)
        logger.info(f"Supabase API gateway initialized (schema={self.schema})")

    def _create_client(self, db_config) -> Client:
        """Create and configure Supabase client."""
        if not db_config.supabase_url:
            raise ConfigurationError('SUPABASE_URL', 'not set')
        if not db_config.api_key:
            raise ConfigurationError('SUPABASE_SERVICE_KEY', 'neither SUPABASE_SERVICE_KEY nor SUPABASE_ANON_KEY found')
        return create_client(db_config.supabase_url, db_config.api_key)

    def _table(self, name: str):
        return self.client.schema(self.schema).table(name)

    @contextmanager
    def _translate_errors(self, operation: str, table: str) -> Iterator[None]:
        """Classify PostgREST and transport errors into gateway errors."""
        try:
            yield
        except APIError as e:
            if e.code in CONSTRAINT_SQLSTATES:
                raise ConstraintViolationError(
                    extract_constraint_name(e.message) or extract_constraint_name(e.details),
                    sqlstate=e.code, table=table, original_error=e
                ) from e
            logger.error(f"Supabase {operation} on {table} failed: {e.message} (code={e.code})")
            raise GatewayOperationError(operation, table, e) from e
        except httpx.TransportError as e:
            logger.error(f"Supabase {operation} on {table} could not reach the API: {e}")
            raise GatewayConnectionError('REST API', e) from e

    # Reads

    def find_source_by_id(self, source_id: str) -> Dict[str, Any]:
        with self._translate_errors('select', SOURCES_TABLE):
            result = (self._table(SOURCES_TABLE)
                      .select('id')
                      .eq('id', source_id)
                      .limit(1)
                      .execute())

        if not result.data:
            raise RecordNotFoundError(SOURCES_TABLE, source_id)
        return result.data[0]

    def find_topics_by_ids(self, topic_ids: Iterable[str]) -> List[Dict[str, Any]]:
        topic_ids = list(topic_ids)
        if not topic_ids:
            return []

        with self._translate_errors('select', TOPICS_TABLE):
            result = (self._table(TOPICS_TABLE)
                      .select('id')
                      .in_('id', topic_ids)
                      .execute())

        return result.data or []

    # Writes

    def insert_article(self, row: Dict[str, Any]) -> Dict[str, Any]:
        with self._translate_errors('insert', ARTICLES_TABLE):
            result = (self._table(ARTICLES_TABLE)
                      .insert(row)
                      .execute())

        if not result.data:
            raise GatewayOperationError('insert', ARTICLES_TABLE, RuntimeError("No data returned from article insert"))

        stored = result.data[0]
        logger.debug(f"Inserted article {stored['id']} via API")
        return stored

    def insert_article_topic_associations(self, article_id: str, topic_ids: List[str]) -> List[Dict[str, Any]]:
        if not topic_ids:
            return []

        associations = [{'article_id': article_id, 'topic_id': topic_id} for topic_id in topic_ids]
        with self._translate_errors('insert', ARTICLE_TOPICS_TABLE):
            result = (self._table(ARTICLE_TOPICS_TABLE)
                      .insert(associations)
                      .execute())

        logger.debug(f"Bound article {article_id} to {len(topic_ids)} topics via API")
        return result.data or []

    def delete_article_by_id(self, article_id: str) -> None:
        with self._translate_errors('delete', ARTICLES_TABLE):
            (self._table(ARTICLES_TABLE)
             .delete()
             .eq('id', article_id)
             .execute())

        logger.debug(f"Deleted article {article_id} via API")

    @contextmanager
    def atomic(self) -> Iterator[StorageGateway]:
        raise NotImplementedError("Supabase REST API cannot run multi-statement transactions")
        yield self  # pragma: no cover

    # Health Check

    def health_check(self) -> Dict[str, Any]:
        """Check API connection health."""
        try:
            with self._translate_errors('select', ARTICLES_TABLE):
                (self._table(ARTICLES_TABLE)
                 .select('id')
                 .limit(1)
                 .execute())

            return {
                'connected': True,
                'method': 'REST API',
                'schema': self.schema,
                'transactions': self.supports_transactions,
                'timestamp': datetime.now(timezone.utc).isoformat()
            }

        except (GatewayConnectionError, GatewayOperationError) as e:
            logger.error(f"API health check failed: {e}")
            return {
                'connected': False,
                'method': 'REST API',
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
