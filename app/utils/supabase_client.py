"""Supabase client construction.

The client is created once by the application lifespan and passed to the
store adapter; nothing here caches it.
"""

from typing import Optional

from supabase import AsyncClient, acreate_client

from app.config.settings import settings
from app.config.logger import app_logger
from app.utils.exceptions import StoreNotConfiguredError


async def create_supabase_admin_client(
    url: Optional[str] = None,
    service_role_key: Optional[str] = None,
) -> AsyncClient:
    """Create an async Supabase client with the service role key.

    Args:
        url: Supabase project URL (defaults to SUPABASE_URL)
        service_role_key: Service role key (defaults to SUPABASE_SERVICE_ROLE_KEY)

    Returns:
        AsyncClient: Supabase client instance for audit inserts and queries

    Raises:
        StoreNotConfiguredError: If Supabase URL or service role key is not configured
    """
    url = (url if url is not None else settings.SUPABASE_URL).strip()
    service_role_key = (
        service_role_key if service_role_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
    ).strip()

    if not url or not service_role_key:
        raise StoreNotConfiguredError(
            "Supabase URL and SERVICE_ROLE_KEY must be configured for audit logging. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY in .env"
        )

    try:
        client = await acreate_client(url, service_role_key)
        app_logger.info("Supabase admin client initialized successfully")
        return client
    except Exception as e:
        app_logger.error(f"Failed to initialize Supabase admin client: {e}")
        raise
