#!/usr/bin/env python3
"""
Core data models for article ingestion.
"""

from .article import Sentiment, CreateArticleCommand, ArticleCreated, parse_aware_datetime

__all__ = ['Sentiment', 'CreateArticleCommand', 'ArticleCreated', 'parse_aware_datetime']
