from datetime import datetime, timedelta, timezone

import pytest
import pytz

from article_ingest.formatters import format_article_line, format_article_response, normalize_timestamp
from article_ingest.models import CreateArticleCommand, Sentiment

from conftest import article_payload


def _row(**overrides):
    row = {
        "id": "3f1c9a52-6a0e-4b0e-9a5c-5d8e3f6b2a10",
        "source_id": "0b7d8a4e-2f5c-4e1a-8b3d-6c9e1f2a4b5c",
        "title": "Markets rally",
        "link": "https://example.com/markets",
        "publication_date": "2025-11-15T10:00:00+00:00",
        "created_at": "2025-11-15T10:05:00.123456+00:00",
        "updated_at": "2025-11-15T10:05:00.123456+00:00",
    }
    row.update(overrides)
    return row


@pytest.mark.parametrize("value,expected", [
    ("2025-11-15T10:00:00Z", "2025-11-15T10:00:00.000000Z"),
    ("2025-11-15T12:00:00+02:00", "2025-11-15T10:00:00.000000Z"),
    ("2025-11-15 10:00:00.5+00", "2025-11-15T10:00:00.500000Z"),
    (datetime(2025, 11, 15, 10, 0), "2025-11-15T10:00:00.000000Z"),
    (datetime(2025, 11, 15, 5, 0, tzinfo=timezone(timedelta(hours=-5))), "2025-11-15T10:00:00.000000Z"),
    (pytz.timezone("Europe/Warsaw").localize(datetime(2025, 11, 15, 11, 0)), "2025-11-15T10:00:00.000000Z"),
    (None, None),
])
def test_normalize_timestamp(value, expected):
    assert normalize_timestamp(value) == expected


def test_absent_optionals_are_explicit_nulls():
    """Test that optional fields are present as None rather than omitted."""
    response = format_article_response(_row())

    assert list(response) == [
        "id", "sourceId", "title", "description", "link", "publicationDate",
        "sentiment", "topicIds", "createdAt", "updatedAt",
    ]
    assert response["description"] is None
    assert response["sentiment"] is None
    assert response["topicIds"] == []


def test_store_values_are_mapped():
    response = format_article_response(
        _row(description="Stocks up", sentiment=Sentiment.POSITIVE),
        ["a0c4e6f8-1b2d-4c3e-9f5a-7b8c9d0e1f2a"],
    )

    assert response["sentiment"] == "positive"
    assert response["description"] == "Stocks up"
    assert response["createdAt"] == "2025-11-15T10:05:00.123456Z"
    assert response["topicIds"] == ["a0c4e6f8-1b2d-4c3e-9f5a-7b8c9d0e1f2a"]


def test_plain_string_sentiment_passes_through():
    assert format_article_response(_row(sentiment="neutral"))["sentiment"] == "neutral"


def test_response_reinterprets_to_the_submitted_request(rest_gateway, writer_factory):
    """Test that a created article's representation parses back to the same request."""
    source_id = rest_gateway.add_source()
    topics = [rest_gateway.add_topic("a"), rest_gateway.add_topic("b")]
    submitted = CreateArticleCommand.from_dict(
        article_payload(source_id, "https://example.com/round-trip", topics,
                        publicationDate="2025-11-15T12:30:00+02:00", sentiment="negative")
    )

    response = writer_factory(rest_gateway).create(submitted).to_response()
    reparsed = CreateArticleCommand.from_dict(response)

    assert reparsed.source_id == submitted.source_id
    assert reparsed.title == submitted.title
    assert reparsed.link == submitted.link
    assert reparsed.publication_date == submitted.publication_date
    assert reparsed.sentiment is submitted.sentiment
    assert set(reparsed.topic_ids) == set(submitted.topic_ids)


def test_format_article_line():
    line = format_article_line(format_article_response(_row(), ["t1", "t2"]))

    assert line.startswith("[2025-11-15T10:00:00.000000Z] Markets rally")
    assert "https://example.com/markets" in line
    assert "topics=2" in line
