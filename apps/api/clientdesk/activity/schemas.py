from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, Field

from clientdesk.core.schemas import CamelModel


class ActivityUserRead(CamelModel):
    id: UUID
    first_name: str
    last_name: str


class ActivityRead(CamelModel):
    id: UUID
    action: str
    description: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias=AliasChoices("event_metadata", "metadata"))
    user_id: UUID
    lead_id: UUID | None
    client_id: UUID | None
    claim_id: UUID | None
    created_at: datetime
    user: ActivityUserRead | None = None
