import copy
import sys
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from article_ingest.adapters.base import (  # noqa: E402
    ARTICLE_TOPICS_TABLE, ARTICLES_TABLE, SOURCES_TABLE, StorageGateway,
)
from article_ingest.container import Container  # noqa: E402
from article_ingest.config import ApplicationConfig, Config, DatabaseConfig  # noqa: E402
from article_ingest.exceptions import ConstraintViolationError, RecordNotFoundError  # noqa: E402
from article_ingest.services import ArticleWriter  # noqa: E402


class InMemoryGateway(StorageGateway):
    """Gateway fake honouring the unique, foreign-key and cascade rules of the real schema."""

    def __init__(self, transactional: bool = False) -> None:
        self.supports_transactions = transactional
        self._lock = threading.RLock()
        self.sources: Dict[str, Dict[str, Any]] = {}
        self.topics: Dict[str, Dict[str, Any]] = {}
        self.articles: Dict[str, Dict[str, Any]] = {}
        self.article_topics: List[Tuple[str, str]] = []
        self.calls: List[str] = []
        self.closed = False

        # Fault injection
        self.fail_lookups: Optional[BaseException] = None
        self.fail_insert: Optional[BaseException] = None
        self.fail_associations: Optional[BaseException] = None
        self.fail_associations_after = 0
        self.fail_deletes: List[BaseException] = []
        self.before_associations: Optional[Callable[[], None]] = None

    # Seeding helpers

    def add_source(self, name: str = "Example News") -> str:
        source_id = str(uuid.uuid4())
        self.sources[source_id] = {"id": source_id, "name": name}
        return source_id

    def add_topic(self, name: str = "politics") -> str:
        topic_id = str(uuid.uuid4())
        self.topics[topic_id] = {"id": topic_id, "name": name}
        return topic_id

    def delete_topic(self, topic_id: str) -> None:
        with self._lock:
            self.topics.pop(topic_id, None)
            self.article_topics = [row for row in self.article_topics if row[1] != topic_id]

    def articles_with_link(self, link: str) -> List[Dict[str, Any]]:
        return [row for row in self.articles.values() if row["link"] == link]

    def topics_of(self, article_id: str) -> List[str]:
        return [topic_id for owner, topic_id in self.article_topics if owner == article_id]

    # StorageGateway

    def find_source_by_id(self, source_id: str) -> Dict[str, Any]:
        with self._lock:
            self.calls.append("find_source_by_id")
            if self.fail_lookups is not None:
                raise self.fail_lookups
            if source_id not in self.sources:
                raise RecordNotFoundError(SOURCES_TABLE, source_id)
            return {"id": source_id}

    def find_topics_by_ids(self, topic_ids: Iterable[str]) -> List[Dict[str, Any]]:
        with self._lock:
            self.calls.append("find_topics_by_ids")
            if self.fail_lookups is not None:
                raise self.fail_lookups
            return [{"id": topic_id} for topic_id in topic_ids if topic_id in self.topics]

    def insert_article(self, row: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.calls.append("insert_article")
            if self.fail_insert is not None:
                raise self.fail_insert
            if row["source_id"] not in self.sources:
                raise ConstraintViolationError("articles_source_id_fkey", sqlstate="23503", table=ARTICLES_TABLE)
            if self.articles_with_link(row["link"]):
                raise ConstraintViolationError("articles_link_key", sqlstate="23505", table=ARTICLES_TABLE)

            now = datetime.now(timezone.utc)
            stored = dict(row, id=str(uuid.uuid4()), created_at=now, updated_at=now)
            self.articles[stored["id"]] = stored
            return dict(stored)

    def insert_article_topic_associations(self, article_id: str, topic_ids: List[str]) -> List[Dict[str, Any]]:
        with self._lock:
            self.calls.append("insert_article_topic_associations")
            if self.before_associations is not None:
                hook, self.before_associations = self.before_associations, None
                hook()

            if self.fail_associations is not None:
                # Rows written before the fault stay behind
                for topic_id in topic_ids[:self.fail_associations_after]:
                    self.article_topics.append((article_id, topic_id))
                raise self.fail_associations

            for topic_id in topic_ids:
                if topic_id not in self.topics:
                    raise ConstraintViolationError(
                        "article_topics_topic_id_fkey", sqlstate="23503", table=ARTICLE_TOPICS_TABLE
                    )
            rows = [(article_id, topic_id) for topic_id in topic_ids]
            self.article_topics.extend(rows)
            return [{"article_id": a, "topic_id": t} for a, t in rows]

    def delete_article_by_id(self, article_id: str) -> None:
        with self._lock:
            self.calls.append("delete_article_by_id")
            if self.fail_deletes:
                raise self.fail_deletes.pop(0)
            self.articles.pop(article_id, None)
            self.article_topics = [row for row in self.article_topics if row[0] != article_id]

    @contextmanager
    def atomic(self) -> Iterator[StorageGateway]:
        if not self.supports_transactions:
            raise NotImplementedError("InMemoryGateway is not transactional")
        with self._lock:
            snapshot = (copy.deepcopy(self.articles), list(self.article_topics))
            try:
                yield self
            except BaseException:
                self.articles, self.article_topics = snapshot
                raise

    def health_check(self) -> Dict[str, Any]:
        return {"connected": True, "method": "memory", "schema": "app", "transactions": self.supports_transactions}

    def close(self) -> None:
        self.closed = True


@pytest.fixture(params=[False, True], ids=["compensating", "transactional"])
def gateway(request) -> InMemoryGateway:
    return InMemoryGateway(transactional=request.param)


@pytest.fixture
def rest_gateway() -> InMemoryGateway:
    return InMemoryGateway(transactional=False)


@pytest.fixture
def source_id(gateway) -> str:
    return gateway.add_source()


@pytest.fixture
def topic_ids(gateway) -> List[str]:
    return [gateway.add_topic("politics"), gateway.add_topic("economy")]


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def writer_factory(sleeps):
    def _factory(gateway: InMemoryGateway, **kwargs) -> ArticleWriter:
        kwargs.setdefault("sleep", sleeps.append)
        return ArticleWriter(gateway, **kwargs)

    return _factory


@pytest.fixture
def app_config() -> Config:
    return Config(
        database=DatabaseConfig(supabase_url="https://example.supabase.co", supabase_service_key="service-key"),
        app=ApplicationConfig(),
        environment="test",
        is_ci=True,
    )


@pytest.fixture
def container_factory(app_config):
    def _factory(gateway: InMemoryGateway) -> Container:
        container = Container()
        container.register_instance("config", app_config)
        container.register_instance("gateway", gateway)
        container.register_factory(
            "article_writer",
            lambda: ArticleWriter(gateway, compensation_attempts=app_config.app.compensation_attempts,
                                  sleep=lambda _delay: None),
        )
        return container

    return _factory


def article_payload(source_id: str, link: str = "https://x/1", topic_ids: Optional[List[str]] = None,
                    **overrides: Any) -> Dict[str, Any]:
    payload = {
        "sourceId": source_id,
        "title": "T",
        "link": link,
        "publicationDate": "2025-11-15T10:00:00Z",
        "topicIds": list(topic_ids or []),
    }
    payload.update(overrides)
    return payload
