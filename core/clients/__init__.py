"""Client modules for external services."""

from core.clients.supabase import get_supabase_client
from core.clients.redis import get_redis
from core.clients.base import BaseAPIClient

__all__ = [
    "get_supabase_client",
    "get_redis",
    "BaseAPIClient",
]
