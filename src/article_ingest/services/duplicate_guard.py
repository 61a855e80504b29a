#!/usr/bin/env python3
"""
Duplicate Guard

No existence pre-check: the article insert is always attempted and the
store's unique constraint on articles.link decides. A unique violation on
that constraint becomes DuplicateLinkError.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from article_ingest.exceptions import (
    ConstraintViolationError, DuplicateLinkError, GatewayError,
    MissingSourceError, StorageFailureError,
)

logger = logging.getLogger(__name__)

SOURCE_FOREIGN_KEY = 'articles_source_id_fkey'


class DuplicateGuard:
    """Classifies article insert failures."""

    def __init__(self, link_constraint: str = 'articles_link_key'):
        self.link_constraint = link_constraint

    def is_duplicate_link(self, error: ConstraintViolationError) -> bool:
        if not error.is_unique_violation:
            return False
        # Some gateways cannot name the constraint; link is the only unique column written
        return error.constraint_name in (None, self.link_constraint)

    @contextmanager
    def guard(self, link: str, source_id: str) -> Iterator[None]:
        """
        Wrap the article insert.

        Raises:
            DuplicateLinkError: Link already taken
            MissingSourceError: Source deleted after validation
            StorageFailureError: Any other storage error
        """
        try:
            yield
        except ConstraintViolationError as e:
            if self.is_duplicate_link(e):
                logger.warning(f"Attempted to create duplicate article: {link}")
                raise DuplicateLinkError(link) from e
            if e.is_foreign_key_violation and e.constraint_name in (None, SOURCE_FOREIGN_KEY):
                logger.warning(f"RSS source {source_id} disappeared before insert")
                raise MissingSourceError(source_id) from e
            logger.error(f"Article insert rejected for {link}: {e}")
            raise StorageFailureError('insert_article', e) from e
        except GatewayError as e:
            logger.error(f"Article insert failed for {link}: {e}")
            raise StorageFailureError('insert_article', e) from e
