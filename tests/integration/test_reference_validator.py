import logging
import uuid

import pytest

from article_ingest.exceptions import GatewayConnectionError, MissingSourceError, MissingTopicsError
from article_ingest.services import ReferenceValidator


def test_existing_references_pass(gateway, source_id, topic_ids):
    ReferenceValidator(gateway).validate(source_id, topic_ids)

    assert gateway.calls == ["find_source_by_id", "find_topics_by_ids"]


def test_missing_source_fails_before_topics_are_checked(gateway, topic_ids):
    missing = str(uuid.uuid4())

    with pytest.raises(MissingSourceError) as exc_info:
        ReferenceValidator(gateway).validate(missing, topic_ids)

    assert exc_info.value.source_id == missing
    assert exc_info.value.error_code == "RSS_SOURCE_NOT_FOUND"
    assert gateway.calls == ["find_source_by_id"]


def test_missing_topics_names_exactly_the_absent_ids(gateway, source_id, topic_ids, caplog):
    caplog.set_level(logging.WARNING, logger="article_ingest.services.reference_validator")
    absent = [str(uuid.uuid4()), str(uuid.uuid4())]

    with pytest.raises(MissingTopicsError) as exc_info:
        ReferenceValidator(gateway).validate(source_id, [topic_ids[0], absent[0], absent[1], absent[0]])

    assert exc_info.value.topic_ids == absent
    assert exc_info.value.context == {"invalid_ids": absent}
    assert "Invalid topic IDs provided" in caplog.text


def test_topics_are_looked_up_in_one_batch(gateway, source_id):
    topics = [gateway.add_topic(f"topic-{i}") for i in range(5)]

    ReferenceValidator(gateway).validate(source_id, topics)

    assert gateway.calls.count("find_topics_by_ids") == 1


def test_no_topics_skips_topic_lookup(gateway, source_id):
    ReferenceValidator(gateway).validate(source_id, [])

    assert gateway.calls == ["find_source_by_id"]


def test_lookup_failure_propagates_as_gateway_error(gateway, source_id):
    gateway.fail_lookups = GatewayConnectionError("REST API", OSError("network down"))

    with pytest.raises(GatewayConnectionError):
        ReferenceValidator(gateway).validate(source_id, [])
