#!/usr/bin/env python3
"""
Article ingestion write path.
"""

from .reference_validator import ReferenceValidator
from .duplicate_guard import DuplicateGuard
from .article_writer import ArticleWriter, CreationAttempt, WriteState

__all__ = ['ReferenceValidator', 'DuplicateGuard', 'ArticleWriter', 'CreationAttempt', 'WriteState']
