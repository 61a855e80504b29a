#!/usr/bin/env python3
"""
Unified storage gateway management.

Provides a single process-wide gateway with explicit initialization. Requests
borrow the shared gateway; they never own or reconfigure it.
"""

import logging
import threading
from typing import Optional

from article_ingest.adapters.base import StorageGateway
from article_ingest.adapters.supabase_api import SupabaseGateway
from article_ingest.exceptions import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)

# Global gateway instance
_gateway: Optional[StorageGateway] = None
_gateway_lock = threading.Lock()


def _create_direct_gateway(db_config) -> StorageGateway:
    from article_ingest.database import ConnectionManager, PostgresGateway
    return PostgresGateway(ConnectionManager(db_config), schema=db_config.db_schema)


def create_gateway(config) -> StorageGateway:
    """
    Build a gateway with automatic fallback logic.

    Priority:
    1. Direct PostgreSQL when USE_DIRECT_CONNECTION=true or DATABASE_URL is set
    2. Supabase REST API (works everywhere, no transactions)
    3. Direct PostgreSQL if the REST setup failed outside CI

    Raises:
        GatewayError: If no connection method succeeds
    """
    db_config = config.database
    force_direct = db_config.use_direct_connection or bool(db_config.database_url)

    if not force_direct:
        try:
            gateway = SupabaseGateway(db_config)
            logger.info("Using Supabase REST API (compensating writes)")
            return gateway
        except (ConfigurationError, GatewayError) as api_error:
            if config.is_ci or not db_config.has_direct_connection():
                logger.error(f"API gateway setup failed: {api_error}")
                raise GatewayError(f"Database API connection failed: {api_error}") from api_error
            logger.warning(f"API gateway failed, falling back to direct connection: {api_error}")

    try:
        gateway = _create_direct_gateway(db_config)
        logger.info("Using direct PostgreSQL connection (transactional writes)")
        return gateway
    except (ConfigurationError, GatewayError) as direct_error:
        logger.error(f"Direct connection failed: {direct_error}")
        raise GatewayError(f"No database connection method succeeded: {direct_error}") from direct_error


def _build_from_config(config) -> StorageGateway:
    if config is None:
        from article_ingest.config import get_config
        config = get_config()
    return create_gateway(config)


def init_gateway(config=None, gateway: Optional[StorageGateway] = None) -> StorageGateway:
    """
    Install the process-wide gateway, replacing any existing one.

    Args:
        config: Config to build from (defaults to get_config())
        gateway: Pre-built gateway to install instead
    """
    global _gateway
    with _gateway_lock:
        if gateway is None:
            gateway = _build_from_config(config)
        if _gateway is not None and _gateway is not gateway:
            _gateway.close()
        _gateway = gateway
        return _gateway


def get_gateway() -> StorageGateway:
    """Get the process-wide gateway, initializing it on first use."""
    global _gateway
    if _gateway is None:
        with _gateway_lock:
            if _gateway is None:
                _gateway = _build_from_config(None)
    return _gateway


def close_gateway() -> None:
    """Close the process-wide gateway."""
    global _gateway
    with _gateway_lock:
        if _gateway is not None:
            _gateway.close()
            _gateway = None


def reset_gateway() -> None:
    """Force a fresh gateway on the next get_gateway() (useful for testing)."""
    close_gateway()
