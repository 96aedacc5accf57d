"""Supabase client construction for the registration store."""
import logging
from typing import Optional

from supabase import AsyncClient, acreate_client

from sspl_backend.config import Settings

logger = logging.getLogger(__name__)


async def create_supabase_client(settings: Settings) -> Optional[AsyncClient]:
    """
    Create the async Supabase client used for registration updates.

    Returns:
        The client, or None when SUPABASE_URL / SUPABASE_KEY are not set.
        Without a client, reconciliation runs in log-only mode.
    """
    if not settings.supabase_configured:
        logger.warning(
            "Supabase credentials not configured. "
            "Set SUPABASE_URL and SUPABASE_KEY; registration updates will be skipped."
        )
        return None

    client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    logger.info("Supabase client initialized")
    return client
