#!/usr/bin/env python3
"""
Article creation request and result models.

The request accepts the collector's camelCase payload (snake_case keys also
work) and validates every field before anything touches the store.
"""

import re
import uuid
import urllib.parse
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from dateutil import parser as date_parser

from article_ingest.exceptions import RequestValidationError


class Sentiment(str, Enum):
    """Closed set of article sentiment classifications."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


# Public field name -> accepted snake_case alias
_FIELD_ALIASES = {
    'sourceId': 'source_id',
    'title': 'title',
    'description': 'description',
    'link': 'link',
    'publicationDate': 'publication_date',
    'sentiment': 'sentiment',
    'topicIds': 'topic_ids',
}

_ISO_DATETIME = re.compile(r'^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}')


def _pick(data: Dict[str, Any], public_name: str) -> Any:
    if public_name in data:
        return data[public_name]
    return data.get(_FIELD_ALIASES[public_name])


def _is_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def canonical_uuid(value: Any) -> str:
    """Lowercase hyphenated form, the one both gateways return ids in."""
    return str(uuid.UUID(str(value)))


def _is_http_url(value: str) -> bool:
    parsed = urllib.parse.urlparse(value)
    return parsed.scheme.lower() in ('http', 'https') and bool(parsed.netloc)


def parse_aware_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 value; returns None unless it carries a UTC offset."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else None
    if not isinstance(value, str) or not _ISO_DATETIME.match(value.strip()):
        return None
    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError):
        return None
    return parsed if parsed.tzinfo is not None else None


@dataclass
class CreateArticleCommand:
    """
    Validated request to create one article.

    Identifier and audit timestamps are never part of the request; the store
    assigns them.
    """
    source_id: str
    title: str
    link: str
    publication_date: datetime
    description: Optional[str] = None
    sentiment: Optional[Sentiment] = None
    topic_ids: List[str] = field(default_factory=list)

    MAX_TITLE_LENGTH = 1000
    MAX_DESCRIPTION_LENGTH = 5000
    MAX_TOPICS = 20

    def __post_init__(self):
        # Duplicates collapse; first occurrence order is kept
        self.topic_ids = list(dict.fromkeys(self.topic_ids or []))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], app_config=None) -> 'CreateArticleCommand':
        """
        Build a command from a request payload.

        Args:
            data: Request payload (camelCase or snake_case keys)
            app_config: Optional ApplicationConfig overriding the length limits

        Returns:
            Validated command

        Raises:
            RequestValidationError: With every field failure collected
        """
        if not isinstance(data, dict):
            raise RequestValidationError([{'field': '', 'message': 'Request body must be a JSON object'}])

        max_title = app_config.max_title_length if app_config else cls.MAX_TITLE_LENGTH
        max_description = app_config.max_description_length if app_config else cls.MAX_DESCRIPTION_LENGTH
        max_topics = app_config.max_topics_per_article if app_config else cls.MAX_TOPICS

        errors: List[Dict[str, str]] = []

        def fail(field_name: str, message: str) -> None:
            errors.append({'field': field_name, 'message': message})

        source_id = _pick(data, 'sourceId')
        if not _is_uuid(source_id):
            fail('sourceId', 'Invalid UUID format for sourceId')

        title = _pick(data, 'title')
        if not isinstance(title, str) or not title.strip():
            fail('title', 'Title is required')
        elif len(title.strip()) > max_title:
            fail('title', f'Title must not exceed {max_title} characters')

        description = _pick(data, 'description')
        if description is not None:
            if not isinstance(description, str):
                fail('description', 'Description must be a string or null')
            elif len(description) > max_description:
                fail('description', f'Description must not exceed {max_description} characters')

        link = _pick(data, 'link')
        if not isinstance(link, str) or not _is_http_url(link.strip()):
            fail('link', 'Link must be a valid URL')

        publication_date = parse_aware_datetime(_pick(data, 'publicationDate'))
        if publication_date is None:
            fail('publicationDate', 'Publication date must be a valid ISO 8601 datetime with timezone')

        sentiment = _pick(data, 'sentiment')
        if sentiment is not None:
            try:
                sentiment = Sentiment(sentiment)
            except ValueError:
                fail('sentiment', 'Sentiment must be one of: positive, neutral, negative, or null')

        topic_ids = _pick(data, 'topicIds')
        if topic_ids is None:
            topic_ids = []
        elif not isinstance(topic_ids, list):
            fail('topicIds', 'topicIds must be an array')
            topic_ids = []
        else:
            if len(topic_ids) > max_topics:
                fail('topicIds', f'Maximum {max_topics} topics allowed per article')
            if not all(_is_uuid(topic_id) for topic_id in topic_ids):
                fail('topicIds', 'Invalid UUID format in topicIds')

        if errors:
            raise RequestValidationError(errors)

        # Case and format variants of one id must compare equal to stored ids
        return cls(
            source_id=canonical_uuid(source_id),
            title=title.strip(),
            link=link.strip(),
            publication_date=publication_date,
            description=description,
            sentiment=sentiment,
            topic_ids=[canonical_uuid(topic_id) for topic_id in topic_ids]
        )

    def to_insert_row(self) -> Dict[str, Any]:
        """Row for the articles table; id and timestamps are left to the store."""
        return {
            'source_id': self.source_id,
            'title': self.title,
            'description': self.description,
            'link': self.link,
            'publication_date': self.publication_date.isoformat(),
            'sentiment': self.sentiment.value if self.sentiment else None,
        }

    def __repr__(self):
        return f"CreateArticleCommand(link='{self.link}', source_id='{self.source_id}', topics={len(self.topic_ids)})"


@dataclass
class ArticleCreated:
    """Outcome of a successful creation: the stored row and its bound topics."""
    article: Dict[str, Any]
    topic_ids: List[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return str(self.article['id'])

    def to_response(self) -> Dict[str, Any]:
        from article_ingest.formatters import format_article_response
        return format_article_response(self.article, self.topic_ids)
