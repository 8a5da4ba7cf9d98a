"""
Supabase client singleton.

Accounts, threads, audit actions and account settings all live in Supabase;
one client instance is shared by every service.
"""

import logging
from typing import Optional

from supabase import create_client, Client

from config.settings import get_settings
from core.exceptions import AppException

logger = logging.getLogger(__name__)

# Global client instance
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Get or create Supabase client singleton.

    Returns:
        Client: Initialized Supabase client

    Raises:
        AppException: If Supabase client cannot be created
    """
    global _client

    if _client is None:
        try:
            settings = get_settings()
            _client = create_client(settings.supabase_url, settings.supabase_secret_key)
            logger.info("Supabase client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            raise AppException(
                message="Database service not configured",
                details={"error": str(e)}
            )

    return _client


def check_database_connection() -> bool:
    """Cheap round trip used by the health check."""
    try:
        get_supabase_client().table("accounts").select("id").limit(1).execute()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
