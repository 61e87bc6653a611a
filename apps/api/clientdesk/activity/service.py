from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from clientdesk.activity.models import Activity
from clientdesk.metrics import observe_activity


logger = logging.getLogger("clientdesk.activity")


class ActivityAction:
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    STATUS_CHANGED = "STATUS_CHANGED"
    ASSIGNED = "ASSIGNED"
    CONVERTED = "CONVERTED"
    ATTACHMENT_ADDED = "ATTACHMENT_ADDED"
    ATTACHMENT_DELETED = "ATTACHMENT_DELETED"
    PRODUCT_ADDED = "PRODUCT_ADDED"
    PRODUCT_UPDATED = "PRODUCT_UPDATED"
    PRODUCT_REMOVED = "PRODUCT_REMOVED"
    PORTAL_CREATED = "PORTAL_CREATED"


def record_activity(
    session: Session,
    *,
    action: str,
    description: str,
    actor_id: uuid.UUID,
    lead_id: uuid.UUID | None = None,
    client_id: uuid.UUID | None = None,
    claim_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> Activity:
    """Append one audit row to the caller's transaction.

    Never commits: the row lands or disappears together with the mutation it
    describes.
    """
    activity = Activity(
        action=action,
        description=description,
        user_id=actor_id,
        lead_id=lead_id,
        client_id=client_id,
        claim_id=claim_id,
        event_metadata=metadata,
    )
    session.add(activity)
    observe_activity(action)
    logger.debug("activity.recorded", extra={"action": action, "actor_id": str(actor_id)})
    return activity


def recent_activity(session: Session, limit: int = 10, user_id: uuid.UUID | None = None) -> list[Activity]:
    stmt = select(Activity).options(selectinload(Activity.user)).order_by(Activity.created_at.desc())
    if user_id is not None:
        stmt = stmt.where(Activity.user_id == user_id)
    return list(session.scalars(stmt.limit(limit)).all())
