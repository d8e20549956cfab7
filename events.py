"""
Background event functions, served to Inngest at /api/inngest.

The identity provider emits `clerk/user.created` and `clerk/user.deleted`;
Inngest calls back into the functions below with the event payload.
"""
import logging
from typing import Any, Dict

import inngest

from auth import is_admin_email
from config import APP_ENV, INNGEST_APP_ID, INNGEST_SIGNING_KEY
from database import db, now

logger = logging.getLogger(__name__)

inngest_client = inngest.Inngest(
    app_id=INNGEST_APP_ID,
    is_production=APP_ENV == "production",
    signing_key=INNGEST_SIGNING_KEY or None,
    logger=logger,
)


def sync_user(data: Dict[str, Any]) -> None:
    clerk_id = data.get("id")
    if not clerk_id:
        logger.warning("clerk/user.created without an id, ignored")
        return
    emails = data.get("email_addresses") or []
    email = emails[0].get("email_address") if emails else None
    name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip() or "User"
    ts = now()
    db["user"].update_one(
        {"clerk_id": clerk_id},
        {
            "$set": {
                "email": email,
                "name": name,
                "image_url": data.get("image_url"),
                "is_admin": is_admin_email(email),
                "updated_at": ts,
            },
            "$setOnInsert": {"addresses": [], "wishlist": [], "created_at": ts},
        },
        upsert=True,
    )
    logger.info("Synced user %s", clerk_id)


def delete_user(data: Dict[str, Any]) -> None:
    clerk_id = data.get("id")
    if not clerk_id:
        logger.warning("clerk/user.deleted without an id, ignored")
        return
    db["user"].delete_one({"clerk_id": clerk_id})
    db["cart"].delete_many({"clerk_id": clerk_id})
    logger.info("Deleted user %s", clerk_id)


@inngest_client.create_function(
    fn_id="sync-user",
    trigger=inngest.TriggerEvent(event="clerk/user.created"),
)
async def sync_user_fn(ctx: inngest.Context, step: inngest.Step) -> None:
    sync_user(ctx.event.data)


@inngest_client.create_function(
    fn_id="delete-user-from-db",
    trigger=inngest.TriggerEvent(event="clerk/user.deleted"),
)
async def delete_user_fn(ctx: inngest.Context, step: inngest.Step) -> None:
    delete_user(ctx.event.data)


FUNCTIONS = [sync_user_fn, delete_user_fn]
