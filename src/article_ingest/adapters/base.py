#!/usr/bin/env python3
"""
Storage gateway interface.

Every gateway method either returns its result or raises a classified
GatewayError: RecordNotFoundError, ConstraintViolationError,
GatewayConnectionError or GatewayOperationError.
"""

import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

SOURCES_TABLE = 'rss_sources'
TOPICS_TABLE = 'topics'
ARTICLES_TABLE = 'articles'
ARTICLE_TOPICS_TABLE = 'article_topics'

_CONSTRAINT_NAME = re.compile(r'constraint "([^"]+)"')


def extract_constraint_name(message: Optional[str]) -> Optional[str]:
    """Pull the constraint name out of a PostgreSQL error message."""
    if not message:
        return None
    match = _CONSTRAINT_NAME.search(message)
    return match.group(1) if match else None


class StorageGateway(ABC):
    """Capability-scoped access to the ingestion tables of one schema."""

    # True when atomic() gives all-or-nothing multi-statement execution
    supports_transactions: bool = False

    @abstractmethod
    def find_source_by_id(self, source_id: str) -> Dict[str, Any]:
        """Return the source row or raise RecordNotFoundError."""

    @abstractmethod
    def find_topics_by_ids(self, topic_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Return the topic rows that exist among topic_ids, in one lookup."""

    @abstractmethod
    def insert_article(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert an article row and return it with store-assigned fields."""

    @abstractmethod
    def insert_article_topic_associations(self, article_id: str, topic_ids: List[str]) -> List[Dict[str, Any]]:
        """Bind article_id to every topic in topic_ids."""

    @abstractmethod
    def delete_article_by_id(self, article_id: str) -> None:
        """Delete an article; its association rows go with it."""

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        """Report connection status."""

    @contextmanager
    def atomic(self) -> Iterator['StorageGateway']:
        """Yield a gateway whose writes commit or roll back together."""
        raise NotImplementedError(f"{self.__class__.__name__} does not support transactions")
        yield self  # pragma: no cover

    def close(self) -> None:
        """Release connections held by the gateway."""
