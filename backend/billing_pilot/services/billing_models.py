"""
Billing models persistence service.

CRUD for saved billing models. Every query is scoped to the owning user;
line items are stored as a JSON column.
"""

import logging
from typing import Optional

from billing_pilot.models.stripe import BillingModel, BillingModelCreate
from billing_pilot.services.supabase import get_supabase_client, TABLES

logger = logging.getLogger(__name__)


def _row_to_model(row: dict) -> BillingModel:
    return BillingModel(
        id=str(row["id"]),
        user_id=row["user_id"],
        name=row["name"],
        description=row.get("description") or "",
        type=row["type"],
        items=row.get("items") or [],
        created_at=row.get("created_at"),
    )


async def save_billing_model(user_id: str, model: BillingModelCreate) -> BillingModel:
    """
    Save a billing model for a user.

    Raises ValueError if the insert returns nothing.
    """
    client = get_supabase_client()

    data = {
        "user_id": user_id,
        "name": model.name,
        "description": model.description,
        "type": model.type.value,
        "items": [item.model_dump(mode="json") for item in model.items],
    }

    result = client.table(TABLES["billing_models"]).insert(data).execute()
    if not result.data:
        raise ValueError("Failed to save billing model")

    saved = _row_to_model(result.data[0])
    logger.info(f"Saved billing model {saved.id} ({len(model.items)} items) for user {user_id}")
    return saved


async def get_billing_models(user_id: str, limit: int = 50) -> list[BillingModel]:
    """Get a user's billing models, newest first."""
    client = get_supabase_client()
    result = (
        client.table(TABLES["billing_models"])
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return [_row_to_model(row) for row in result.data or []]


async def get_billing_model(user_id: str, model_id: str) -> Optional[BillingModel]:
    client = get_supabase_client()
    result = (
        client.table(TABLES["billing_models"])
        .select("*")
        .eq("id", model_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return _row_to_model(result.data[0])


async def delete_billing_model(user_id: str, model_id: str) -> bool:
    """Delete a billing model. Returns False if the user has no such model."""
    client = get_supabase_client()
    result = (
        client.table(TABLES["billing_models"])
        .delete()
        .eq("id", model_id)
        .eq("user_id", user_id)
        .execute()
    )
    deleted = bool(result.data)
    if deleted:
        logger.info(f"Deleted billing model {model_id} for user {user_id}")
    return deleted
