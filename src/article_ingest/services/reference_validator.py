#!/usr/bin/env python3
"""
Reference Validator

Read-only precondition check run before any article write.
"""

import logging
from typing import Iterable, List

from article_ingest.exceptions import MissingSourceError, MissingTopicsError, RecordNotFoundError
from article_ingest.models.article import canonical_uuid

logger = logging.getLogger(__name__)


class ReferenceValidator:
    """Confirms that the source and topics an article references exist."""

    def __init__(self, gateway):
        """
        Initialize validator.

        Args:
            gateway: StorageGateway to read through
        """
        self.gateway = gateway

    def validate(self, source_id: str, topic_ids: Iterable[str] = ()) -> None:
        """
        Check the source, then every topic in one batched lookup.

        The source is checked first; topics are not looked up when it is missing.

        Raises:
            MissingSourceError: Source does not exist
            MissingTopicsError: Carrying exactly the absent topic ids
            GatewayError: Lookup itself failed
        """
        try:
            self.gateway.find_source_by_id(source_id)
        except RecordNotFoundError:
            logger.warning(f"RSS source not found: {source_id}")
            raise MissingSourceError(source_id)

        missing = self.find_missing_topics(topic_ids)
        if missing:
            logger.warning(f"Invalid topic IDs provided: {missing}")
            raise MissingTopicsError(missing)

    def find_missing_topics(self, topic_ids: Iterable[str]) -> List[str]:
        """Return the topic ids that do not resolve, in input order."""
        requested = list(dict.fromkeys(topic_ids))
        if not requested:
            return []

        found = {canonical_uuid(row['id']) for row in self.gateway.find_topics_by_ids(requested)}
        return [topic_id for topic_id in requested if canonical_uuid(topic_id) not in found]
