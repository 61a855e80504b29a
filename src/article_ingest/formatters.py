#!/usr/bin/env python3
"""
Formatting utilities for stored articles.

Maps store-native article rows (snake_case, whatever timestamp form the
gateway returns) to the public representation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz
from dateutil import parser as date_parser


def normalize_timestamp(value: Any) -> Optional[str]:
    """
    Render a stored timestamp as UTC ISO 8601 with a 'Z' suffix.

    Naive values are taken to be UTC. None stays None.
    """
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = date_parser.isoparse(str(value))
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(pytz.utc).isoformat(timespec='microseconds').replace('+00:00', 'Z')


def format_article_response(row: Dict[str, Any], topic_ids: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Convert a stored article row to its public representation.

    Args:
        row: Article row as returned by the storage gateway
        topic_ids: Topic identifiers bound to the article

    Returns:
        Dictionary with camelCase keys and explicit nulls for absent optionals
    """
    sentiment = row.get('sentiment')
    return {
        'id': str(row['id']),
        'sourceId': str(row['source_id']),
        'title': row['title'],
        'description': row.get('description'),
        'link': row['link'],
        'publicationDate': normalize_timestamp(row['publication_date']),
        'sentiment': getattr(sentiment, 'value', sentiment),
        'topicIds': [str(topic_id) for topic_id in (topic_ids or [])],
        'createdAt': normalize_timestamp(row.get('created_at')),
        'updatedAt': normalize_timestamp(row.get('updated_at')),
    }


def format_article_line(response: Dict[str, Any]) -> str:
    """Format a created article for one-line display."""
    topics = f" topics={len(response['topicIds'])}" if response.get('topicIds') else ""
    return f"[{response['publicationDate']}] {response['title']}\n    {response['link']} (id={response['id']}{topics})"
