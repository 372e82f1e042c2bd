"""Supabase client service."""

import logging
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client

from billing_pilot.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


@lru_cache
def get_supabase_client() -> Client:
    """Get Supabase client with service role key (admin access)."""
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )


@lru_cache
def get_supabase_anon_client() -> Client:
    """Get Supabase client with anon key (RLS enforced)."""
    return create_client(
        settings.supabase_url,
        settings.supabase_anon_key,
    )


# Table names (match the web app's migrations)
TABLES = {
    "billing_models": "billing_models",
    "meters": "usage_meters",
    "usage_events": "usage_events",
}


def get_user_from_token(access_token: str) -> Optional[dict]:
    """
    Validate a Supabase access token with the identity provider.

    Returns {"id", "email"} for a valid session, None otherwise.
    """
    try:
        response = get_supabase_anon_client().auth.get_user(access_token)
    except Exception as e:
        logger.warning(f"Token validation failed: {e}")
        return None

    user = getattr(response, "user", None)
    if user is None:
        return None
    return {"id": user.id, "email": user.email}


async def get_meter(meter_name: str) -> dict | None:
    """Get a usage meter by name."""
    client = get_supabase_client()
    result = (
        client.table(TABLES["meters"])
        .select("*")
        .eq("name", meter_name)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


async def insert_usage_event(event: dict) -> dict | None:
    """Insert a usage event row and return it."""
    client = get_supabase_client()
    result = client.table(TABLES["usage_events"]).insert(event).execute()
    return result.data[0] if result.data else None


async def update_usage_event(event_id: str, values: dict) -> bool:
    client = get_supabase_client()
    result = (
        client.table(TABLES["usage_events"])
        .update(values)
        .eq("id", event_id)
        .execute()
    )
    return bool(result.data)
