#!/usr/bin/env python3
"""
Article Writer

Creates an article row and its topic associations as one logical operation.

With a transactional gateway both writes run inside one transaction. Without
one (Supabase REST) the article row is deleted again if binding topics fails,
so readers never see an article with a partial topic set.

Per-attempt state machine:

    VALIDATING -> INSERTING -> ASSOCIATING_TOPICS -> COMMITTED
                      |               |
                      +------> ROLLING_BACK -> FAILED
    VALIDATING / INSERTING ---------------> FAILED
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from article_ingest.exceptions import (
    ConstraintViolationError, ErrorRecovery, GatewayConnectionError, GatewayError,
    InvalidReferenceError, MissingTopicsError, StorageFailureError,
)
from article_ingest.models.article import ArticleCreated, CreateArticleCommand
from article_ingest.services.duplicate_guard import DuplicateGuard
from article_ingest.services.reference_validator import ReferenceValidator

logger = logging.getLogger(__name__)


class WriteState(Enum):
    VALIDATING = "validating"
    INSERTING = "inserting"
    ASSOCIATING_TOPICS = "associating_topics"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


_TRANSITIONS = {
    WriteState.VALIDATING: {WriteState.INSERTING, WriteState.FAILED},
    WriteState.INSERTING: {WriteState.ASSOCIATING_TOPICS, WriteState.ROLLING_BACK, WriteState.FAILED},
    WriteState.ASSOCIATING_TOPICS: {WriteState.COMMITTED, WriteState.ROLLING_BACK},
    WriteState.ROLLING_BACK: {WriteState.FAILED},
    WriteState.COMMITTED: set(),
    WriteState.FAILED: set(),
}

TransitionListener = Callable[['CreationAttempt', WriteState, WriteState], None]


@dataclass
class CreationAttempt:
    """Tracks one creation attempt through the write state machine."""
    link: str
    state: WriteState = WriteState.VALIDATING
    article_id: Optional[str] = None
    history: List[WriteState] = field(default_factory=lambda: [WriteState.VALIDATING])
    listener: Optional[TransitionListener] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (WriteState.COMMITTED, WriteState.FAILED)

    def advance(self, new_state: WriteState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal write transition {self.state.value} -> {new_state.value}")

        previous, self.state = self.state, new_state
        self.history.append(new_state)
        logger.debug(f"[{self.link}] {previous.value} -> {new_state.value}")
        if self.listener:
            self.listener(self, previous, new_state)


class ArticleWriter:
    """Atomic article creation with duplicate detection and rollback."""

    def __init__(self, gateway, validator: Optional[ReferenceValidator] = None,
                 duplicate_guard: Optional[DuplicateGuard] = None,
                 compensation_attempts: int = 3,
                 listener: Optional[TransitionListener] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize article writer.

        Args:
            gateway: Shared StorageGateway (borrowed, never reconfigured)
            validator: Reference validator (defaults to one over gateway)
            duplicate_guard: Insert error classifier
            compensation_attempts: Delete attempts when undoing an article row
            listener: Called on every state transition
            sleep: Backoff between compensation attempts
        """
        self.gateway = gateway
        self.validator = validator or ReferenceValidator(gateway)
        self.duplicate_guard = duplicate_guard or DuplicateGuard()
        self.compensation_attempts = max(1, compensation_attempts)
        self.listener = listener
        self._sleep = sleep

    def create(self, command: CreateArticleCommand) -> ArticleCreated:
        """
        Create an article and bind its topics.

        Returns:
            ArticleCreated with the stored row and bound topic ids

        Raises:
            MissingSourceError: Source does not exist
            MissingTopicsError: Topics that do not exist
            DuplicateLinkError: Link already stored
            StorageFailureError: Store failed; nothing from this attempt is left visible
        """
        attempt = CreationAttempt(command.link, listener=self.listener)

        try:
            self.validator.validate(command.source_id, command.topic_ids)
        except InvalidReferenceError:
            attempt.advance(WriteState.FAILED)
            raise
        except GatewayError as e:
            attempt.advance(WriteState.FAILED)
            logger.error(f"Reference lookup failed for {command.link}: {e}")
            raise StorageFailureError('validate_references', e) from e
        except BaseException:
            attempt.advance(WriteState.FAILED)
            raise

        if self.gateway.supports_transactions:
            created = self._create_atomic(command, attempt)
        else:
            created = self._create_compensating(command, attempt)

        logger.info(f"Created article {created.id} ({command.link}) with {len(created.topic_ids)} topics")
        return created

    def _insert_article(self, gateway, command: CreateArticleCommand, attempt: CreationAttempt) -> Dict[str, Any]:
        with self.duplicate_guard.guard(command.link, command.source_id):
            article = gateway.insert_article(command.to_insert_row())
        attempt.article_id = str(article['id'])
        return article

    def _bind_topics(self, gateway, article: Dict[str, Any], command: CreateArticleCommand) -> List[str]:
        if command.topic_ids:
            gateway.insert_article_topic_associations(str(article['id']), command.topic_ids)
        return list(command.topic_ids)

    def _create_atomic(self, command: CreateArticleCommand, attempt: CreationAttempt) -> ArticleCreated:
        attempt.advance(WriteState.INSERTING)
        try:
            with self.gateway.atomic() as tx:
                article = self._insert_article(tx, command, attempt)
                attempt.advance(WriteState.ASSOCIATING_TOPICS)
                topic_ids = self._bind_topics(tx, article, command)
        except BaseException as e:
            # Leaving atomic() on an exception discards the transaction
            failed_stage = attempt.state
            attempt.advance(WriteState.ROLLING_BACK)
            attempt.advance(WriteState.FAILED)
            if isinstance(e, GatewayError):
                logger.error(f"Discarded transaction for {command.link} during {failed_stage.value}: {e}")
                raise self._classify_failure(e, failed_stage, command) from e
            logger.debug(f"Discarded transaction for {command.link} during {failed_stage.value}: {e!r}")
            raise

        attempt.advance(WriteState.COMMITTED)
        return ArticleCreated(article=dict(article), topic_ids=topic_ids)

    def _create_compensating(self, command: CreateArticleCommand, attempt: CreationAttempt) -> ArticleCreated:
        attempt.advance(WriteState.INSERTING)
        try:
            article = self._insert_article(self.gateway, command, attempt)
        except BaseException:
            attempt.advance(WriteState.FAILED)
            raise

        attempt.advance(WriteState.ASSOCIATING_TOPICS)
        try:
            topic_ids = self._bind_topics(self.gateway, article, command)
        except BaseException as e:
            attempt.advance(WriteState.ROLLING_BACK)
            logger.error(f"Failed to create topic associations for {command.link}, rolling back: {e}")
            cleanup_error, interrupt = self._compensate(attempt.article_id)
            attempt.advance(WriteState.FAILED)

            if interrupt is not None:
                raise interrupt
            if cleanup_error is not None:
                raise StorageFailureError(
                    'associate_topics', e,
                    context={'orphaned_article_id': attempt.article_id, 'cleanup_error': str(cleanup_error)}
                ) from e
            if isinstance(e, GatewayError):
                raise self._classify_failure(e, WriteState.ASSOCIATING_TOPICS, command) from e
            raise

        attempt.advance(WriteState.COMMITTED)
        return ArticleCreated(article=dict(article), topic_ids=topic_ids)

    def _compensate(self, article_id: str) -> Tuple[Optional[Exception], Optional[BaseException]]:
        """
        Delete the article row just created; association rows cascade.

        Interrupts arriving mid-cleanup are held back until the delete has
        been attempted, then handed to the caller.

        Returns:
            (error that stopped cleanup or None, deferred interrupt or None)
        """
        last_error: Optional[Exception] = None
        interrupt: Optional[BaseException] = None

        for attempt_no in range(self.compensation_attempts):
            try:
                self.gateway.delete_article_by_id(article_id)
                logger.info(f"Rolled back article {article_id}")
                return None, interrupt
            except (KeyboardInterrupt, SystemExit) as e:
                interrupt = e
                continue
            except GatewayConnectionError as e:
                last_error = e
                if attempt_no + 1 < self.compensation_attempts:
                    delay = ErrorRecovery.get_retry_delay(attempt_no)
                    logger.warning(f"Rollback of article {article_id} failed ({e}), retrying in {delay}s")
                    self._sleep(delay)
            except GatewayError as e:
                last_error = e
                break

        logger.critical(f"Could not roll back article {article_id}; it may be visible without its topics: {last_error}")
        return last_error or StorageFailureError('rollback'), interrupt

    def _classify_failure(self, error: GatewayError, failed_stage: WriteState,
                          command: CreateArticleCommand) -> Exception:
        """Map a gateway error that ended an attempt onto the domain errors."""
        if failed_stage is not WriteState.ASSOCIATING_TOPICS:
            return StorageFailureError('insert_article', error)

        if isinstance(error, ConstraintViolationError) and error.is_foreign_key_violation:
            # A topic vanished between validation and binding
            try:
                missing = self.validator.find_missing_topics(command.topic_ids)
            except GatewayError as lookup_error:
                logger.warning(f"Could not re-check topics for {command.link}: {lookup_error}")
                missing = []
            if missing:
                logger.warning(f"Topics removed during creation of {command.link}: {missing}")
                return MissingTopicsError(missing)

        return StorageFailureError('associate_topics', error)
