#!/usr/bin/env python3
"""
Standardized exception hierarchy for article ingestion.

Domain errors (missing references, duplicate links, storage failures) are what
callers of the article writer see. Gateway errors are raised by the storage
gateways and classified by the writer before they reach a caller.
"""

from typing import Optional, Dict, Any, List


class IngestError(Exception):
    """Base exception for all article ingestion errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


# Request-related exceptions
class RequestValidationError(IngestError):
    """Creation request failed field validation."""

    def __init__(self, errors: List[Dict[str, str]]):
        message = f"Validation failed: {len(errors)} errors"
        super().__init__(message, error_code='VALIDATION_ERROR', context={'errors': errors})
        self.errors = errors


# Reference-related exceptions
class InvalidReferenceError(IngestError):
    """Base exception for references to entities that do not exist."""
    pass


class MissingSourceError(InvalidReferenceError):
    """Referenced RSS source does not exist."""

    def __init__(self, source_id: str):
        message = f"RSS source not found: {source_id}"
        super().__init__(message, error_code='RSS_SOURCE_NOT_FOUND', context={'source_id': source_id})
        self.source_id = source_id


class MissingTopicsError(InvalidReferenceError):
    """One or more referenced topics do not exist."""

    def __init__(self, topic_ids: List[str]):
        message = f"One or more topic IDs are invalid: {', '.join(topic_ids)}"
        super().__init__(message, error_code='INVALID_TOPIC_IDS', context={'invalid_ids': list(topic_ids)})
        self.topic_ids = list(topic_ids)


# Write-related exceptions
class DuplicateLinkError(IngestError):
    """An article with this link already exists."""

    def __init__(self, link: str):
        message = f"Article with this link already exists: {link}"
        super().__init__(message, error_code='ARTICLE_ALREADY_EXISTS', context={'link': link})
        self.link = link


class StorageFailureError(IngestError):
    """Store unavailable or returned an unclassified error."""

    def __init__(self, stage: str, original_error: Optional[BaseException] = None,
                 context: Optional[Dict[str, Any]] = None):
        message = f"Storage failure during {stage}"
        error_context = {
            'stage': stage,
            'original_error': str(original_error) if original_error else None
        }
        error_context.update(context or {})
        error_code = 'TOPIC_ASSOCIATION_FAILED' if stage == 'associate_topics' else 'STORAGE_FAILURE'
        super().__init__(message, error_code=error_code, context=error_context)
        self.stage = stage
        self.original_error = original_error


# Storage gateway exceptions
class GatewayError(IngestError):
    """Base exception for storage gateway errors."""
    pass


class RecordNotFoundError(GatewayError):
    """Requested row does not exist."""

    def __init__(self, table: str, key: str):
        message = f"No row in {table} with id {key}"
        super().__init__(message, error_code='NOT_FOUND', context={'table': table, 'key': key})
        self.table = table
        self.key = key


class ConstraintViolationError(GatewayError):
    """Write rejected by a store constraint."""

    def __init__(self, constraint_name: Optional[str], sqlstate: Optional[str] = None,
                 table: Optional[str] = None, original_error: Optional[Exception] = None):
        message = f"Constraint {constraint_name or 'unknown'} violated"
        if table:
            message += f" on table {table}"
        context = {
            'constraint_name': constraint_name,
            'sqlstate': sqlstate,
            'table': table,
            'original_error': str(original_error) if original_error else None
        }
        super().__init__(message, error_code='CONSTRAINT_VIOLATION', context=context)
        self.constraint_name = constraint_name
        self.sqlstate = sqlstate
        self.table = table

    @property
    def is_unique_violation(self) -> bool:
        return self.sqlstate == '23505'

    @property
    def is_foreign_key_violation(self) -> bool:
        return self.sqlstate == '23503'


class GatewayConnectionError(GatewayError):
    """Failed to reach the store."""

    def __init__(self, connection_type: str, original_error: Exception):
        message = f"Failed to reach database via {connection_type}"
        context = {
            'connection_type': connection_type,
            'original_error': str(original_error)
        }
        super().__init__(message, error_code='CONNECTION_ERROR', context=context)
        self.original_error = original_error


class GatewayOperationError(GatewayError):
    """Database operation failed for an unclassified reason."""

    def __init__(self, operation: str, table: str, original_error: Exception):
        message = f"Database {operation} failed on table {table}"
        context = {
            'operation': operation,
            'table': table,
            'original_error': str(original_error)
        }
        super().__init__(message, error_code='OPERATION_ERROR', context=context)
        self.original_error = original_error


# Configuration-related exceptions
class ConfigurationError(IngestError):
    """Configuration is invalid or missing."""

    def __init__(self, config_key: str, issue: str):
        message = f"Configuration error for {config_key}: {issue}"
        context = {
            'config_key': config_key,
            'issue': issue
        }
        super().__init__(message, context=context)


# Recovery utilities
class ErrorRecovery:
    """Utilities for callers deciding whether to retry a failed creation."""

    @staticmethod
    def is_retryable_error(error: Exception) -> bool:
        """Check if an error is potentially retryable."""
        if isinstance(error, GatewayConnectionError):
            return True
        if isinstance(error, StorageFailureError):
            return isinstance(error.original_error, GatewayConnectionError)
        return False

    @staticmethod
    def get_retry_delay(attempt: int, base: float = 0.5, ceiling: float = 30.0) -> float:
        """Get recommended retry delay in seconds (exponential backoff)."""
        return min(base * (2 ** attempt), ceiling)
