#!/usr/bin/env python3
"""
Service wiring for article ingestion.

Commands resolve the configuration, the shared storage gateway and article
writers through one container instead of building them inline. Tests swap
any of them by registering an instance under the same name.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class _Registration:
    build: Callable[[], Any]
    shared: bool


class Container:
    """Named service registry; shared services are built once, on first use."""

    def __init__(self):
        self._registrations: Dict[str, _Registration] = {}
        self._instances: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def register_singleton(self, service_name: str, factory: Callable[[], Any]) -> None:
        """
        Register a service built once and shared by every caller.

        Args:
            service_name: Name callers resolve
            factory: Zero-argument builder
        """
        with self._lock:
            self._registrations[service_name] = _Registration(factory, shared=True)
            self._instances.pop(service_name, None)

    def register_factory(self, service_name: str, factory: Callable[[], Any]) -> None:
        """Register a service built fresh on every get()."""
        with self._lock:
            self._registrations[service_name] = _Registration(factory, shared=False)

    def register_instance(self, service_name: str, instance: Any) -> None:
        """Register a ready-made shared instance, replacing any earlier one."""
        with self._lock:
            self._instances[service_name] = instance

    def get(self, service_name: str) -> Any:
        """
        Resolve a service.

        Raises:
            KeyError: Nothing registered under service_name
        """
        instance = self._instances.get(service_name)
        if instance is not None:
            return instance

        with self._lock:
            if service_name in self._instances:
                return self._instances[service_name]

            registration = self._registrations.get(service_name)
            if registration is None:
                raise KeyError(f"Service '{service_name}' not registered")

            instance = registration.build()
            if registration.shared:
                self._instances[service_name] = instance
            logger.debug(f"Built {'shared' if registration.shared else 'new'} '{service_name}'")
            return instance

    def has(self, service_name: str) -> bool:
        return service_name in self._registrations or service_name in self._instances

    def clear(self) -> None:
        with self._lock:
            self._registrations.clear()
            self._instances.clear()


def _build_config():
    from article_ingest.config import get_config
    return get_config()


def _build_gateway():
    from article_ingest.adapters.connection import get_gateway
    return get_gateway()


def _register_ingestion_services(container: Container) -> None:
    """Wire config, the process-wide gateway and per-use article writers."""

    def build_article_writer():
        from article_ingest.services import ArticleWriter, DuplicateGuard
        app_config = container.get('config').app
        return ArticleWriter(
            container.get('gateway'),
            duplicate_guard=DuplicateGuard(app_config.link_unique_constraint),
            compensation_attempts=app_config.compensation_attempts
        )

    container.register_singleton('config', _build_config)
    container.register_singleton('gateway', _build_gateway)
    container.register_factory('article_writer', build_article_writer)


_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Get the process-wide container with the ingestion services registered."""
    global _container
    if _container is None:
        with _container_lock:
            if _container is None:
                _container = Container()
                _register_ingestion_services(_container)
    return _container


def reset_container() -> None:
    """Drop the process-wide container (useful for testing)."""
    global _container
    with _container_lock:
        if _container is not None:
            _container.clear()
        _container = None
