from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from clientdesk.authz.policy import Identity
from clientdesk.clients.models import Client, ClientProduct
from clientdesk.core.errors import NotFoundError
from clientdesk.portal.schemas import PortalProfileRead, PortalProfileUpdate, PortalSubscriptionRead


logger = logging.getLogger("clientdesk.portal")

# Names are required columns; an explicit null leaves them untouched.
_REQUIRED_FIELDS = frozenset({"first_name", "last_name"})


class PortalService:
    def get_profile(self, session: Session, identity: Identity) -> PortalProfileRead:
        return PortalProfileRead.model_validate(self._own_client(session, identity))

    def update_profile(self, session: Session, identity: Identity, dto: PortalProfileUpdate) -> PortalProfileRead:
        client = self._own_client(session, identity)
        for field_name, value in dto.model_dump(exclude_unset=True).items():
            if field_name in _REQUIRED_FIELDS and value is None:
                continue
            setattr(client, field_name, value)
        session.commit()
        session.refresh(client)
        logger.info("portal.profile_updated", extra={"entity_id": str(client.id), "actor_id": str(identity.user_id)})
        return PortalProfileRead.model_validate(client)

    def subscriptions(self, session: Session, identity: Identity) -> list[PortalSubscriptionRead]:
        client = self._own_client(session, identity)
        rows = session.scalars(
            select(ClientProduct)
            .where(ClientProduct.client_id == client.id, ClientProduct.is_active.is_(True))
            .options(selectinload(ClientProduct.product))
            .order_by(ClientProduct.start_date.desc())
        ).all()
        return [PortalSubscriptionRead.model_validate(row) for row in rows]

    def _own_client(self, session: Session, identity: Identity) -> Client:
        client_id: uuid.UUID | None = identity.client_id
        client = session.get(Client, client_id) if client_id is not None else None
        if client is None:
            raise NotFoundError("Client profile not found")
        return client


portal_service = PortalService()
