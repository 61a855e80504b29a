#!/usr/bin/env python3
"""
Direct PostgreSQL access for article ingestion.
"""

from .connection_manager import ConnectionManager
from .postgres_gateway import PostgresGateway, classify_psycopg_error

__all__ = [
    'ConnectionManager',
    'PostgresGateway',
    'classify_psycopg_error',
]
