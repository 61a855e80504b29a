#!/usr/bin/env python3
"""
Storage gateways for different connection methods.

Provides a unified interface to the Supabase REST API and direct PostgreSQL.
"""

from .base import StorageGateway
from .supabase_api import SupabaseGateway
from .connection import get_gateway, init_gateway, close_gateway, reset_gateway

__all__ = [
    'StorageGateway', 'SupabaseGateway',
    'get_gateway', 'init_gateway', 'close_gateway', 'reset_gateway'
]
