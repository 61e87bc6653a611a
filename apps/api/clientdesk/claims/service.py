from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from clientdesk.activity.service import ActivityAction, record_activity
from clientdesk.authz.policy import Action, Identity, OwnerRef, ResourceKind, Role, authorize, is_manager
from clientdesk.claims import storage
from clientdesk.claims.models import Claim, ClaimAttachment
from clientdesk.claims.schemas import (
    AttachmentRead,
    ClaimAssign,
    ClaimCreate,
    ClaimDetailRead,
    ClaimPriority,
    ClaimRead,
    ClaimSortField,
    ClaimStats,
    ClaimStatus,
    ClaimStatusUpdate,
    ClaimUpdate,
    PortalClaimCreate,
)
from clientdesk.clients.models import Client
from clientdesk.common.pagination import PageParams, apply_sort, paginate, search_filter
from clientdesk.core.database import utcnow
from clientdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from clientdesk.core.schemas import PageMeta
from clientdesk.users.service import require_user


logger = logging.getLogger("clientdesk.claims")

CLAIM_STATUSES: tuple[ClaimStatus, ...] = ("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED")
CLAIM_PRIORITIES: tuple[ClaimPriority, ...] = ("LOW", "MEDIUM", "HIGH", "URGENT")
RESOLVED_STATUSES = frozenset({"RESOLVED", "CLOSED"})
OPEN_STATUSES = frozenset({"OPEN", "IN_PROGRESS"})
RESOLUTION_SAMPLE_SIZE = 100

_SORT_COLUMNS = {
    "createdAt": Claim.created_at,
    "updatedAt": Claim.updated_at,
    "title": Claim.title,
    "status": Claim.status,
    "priority": Claim.priority,
}


def claim_owner(claim: Claim) -> OwnerRef:
    return OwnerRef(created_by_id=claim.created_by_id, assigned_to_id=claim.assigned_to_id, client_id=claim.client_id)


def round_one_decimal(value: float) -> float:
    """Half-up rounding to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def average_resolution_hours(pairs: list[tuple[datetime, datetime]]) -> float:
    if not pairs:
        return 0.0
    total_seconds = sum((resolved - created).total_seconds() for created, resolved in pairs)
    return round_one_decimal(total_seconds / len(pairs) / 3600)


class ClaimService:
    def list_claims(
        self,
        session: Session,
        identity: Identity,
        params: PageParams,
        *,
        status: ClaimStatus | None = None,
        priority: ClaimPriority | None = None,
        client_id: uuid.UUID | None = None,
        assigned_to_id: uuid.UUID | None = None,
        sort_by: ClaimSortField = "createdAt",
    ) -> tuple[list[ClaimRead], PageMeta]:
        stmt = self._scoped(select(Claim), identity).options(
            selectinload(Claim.client), selectinload(Claim.assigned_to)
        )
        if is_manager(identity.role):
            if client_id is not None:
                stmt = stmt.where(Claim.client_id == client_id)
            if assigned_to_id is not None:
                stmt = stmt.where(Claim.assigned_to_id == assigned_to_id)
        if status is not None:
            stmt = stmt.where(Claim.status == status)
        if priority is not None:
            stmt = stmt.where(Claim.priority == priority)
        if params.search:
            stmt = stmt.where(search_filter(params.search, Claim.title, Claim.description))

        rows, meta = paginate(session, apply_sort(stmt, _SORT_COLUMNS[sort_by], params.sort_order), params)
        return [ClaimRead.model_validate(row) for row in rows], meta

    def get_claim(self, session: Session, identity: Identity, claim_id: uuid.UUID) -> ClaimDetailRead:
        claim = self._load_authorized(session, identity, claim_id, Action.READ)
        return ClaimDetailRead.model_validate(claim)

    def create_claim(self, session: Session, identity: Identity, dto: ClaimCreate) -> ClaimDetailRead:
        client = session.get(Client, dto.client_id)
        if client is None:
            raise BadRequestError("Client not found")
        if dto.assigned_to_id is not None:
            if not is_manager(identity.role) and dto.assigned_to_id != identity.user_id:
                raise ForbiddenError("Only admins and supervisors can assign claims")
            require_user(session, dto.assigned_to_id, "Assignee user not found")

        claim = Claim(
            title=dto.title,
            description=dto.description,
            priority=dto.priority,
            client_id=client.id,
            created_by_id=identity.user_id,
            assigned_to_id=dto.assigned_to_id,
        )
        return self._persist_new(session, identity, claim, f'Claim "{dto.title}" created')

    def create_portal_claim(self, session: Session, identity: Identity, dto: PortalClaimCreate) -> ClaimDetailRead:
        if identity.client_id is None:
            raise ForbiddenError("No client profile linked to this account")
        claim = Claim(
            title=dto.title,
            description=dto.description,
            priority=dto.priority,
            client_id=identity.client_id,
            created_by_id=identity.user_id,
        )
        return self._persist_new(session, identity, claim, f'Claim "{dto.title}" created via portal')

    def update_claim(self, session: Session, identity: Identity, claim_id: uuid.UUID, dto: ClaimUpdate) -> ClaimDetailRead:
        claim = self._load_authorized(session, identity, claim_id, Action.UPDATE)
        for field_name, value in dto.model_dump(exclude_unset=True).items():
            if field_name in {"title", "description", "priority"} and value is None:
                continue
            setattr(claim, field_name, value)

        record_activity(
            session,
            action=ActivityAction.UPDATED,
            description=f'Claim "{claim.title}" updated',
            actor_id=identity.user_id,
            claim_id=claim.id,
            client_id=claim.client_id,
        )
        session.commit()
        return self.get_claim(session, identity, claim_id)

    def delete_claim(self, session: Session, identity: Identity, claim_id: uuid.UUID) -> None:
        claim = self._load_authorized(
            session, identity, claim_id, Action.DELETE, "Only admins and supervisors can delete claims"
        )
        paths = [attachment.path for attachment in claim.attachments]
        record_activity(
            session,
            action=ActivityAction.DELETED,
            description=f'Claim "{claim.title}" deleted',
            actor_id=identity.user_id,
            client_id=claim.client_id,
            metadata={"claimId": str(claim.id)},
        )
        session.delete(claim)
        session.commit()

        for path in paths:
            storage.delete_file(path)
        logger.info("claim.deleted", extra={"entity_id": str(claim_id), "actor_id": str(identity.user_id)})

    def update_status(
        self,
        session: Session,
        identity: Identity,
        claim_id: uuid.UUID,
        dto: ClaimStatusUpdate,
    ) -> ClaimDetailRead:
        claim = self._load_authorized(session, identity, claim_id, Action.UPDATE)
        old_status = claim.status
        claim.status = dto.status
        if dto.resolution:
            claim.resolution = dto.resolution
        # First entry into a resolved state is stamped once and kept forever.
        if dto.status in RESOLVED_STATUSES and claim.resolved_at is None:
            claim.resolved_at = utcnow()

        record_activity(
            session,
            action=ActivityAction.STATUS_CHANGED,
            description=f"Claim status changed from {old_status} to {dto.status}",
            actor_id=identity.user_id,
            claim_id=claim.id,
            client_id=claim.client_id,
            metadata={"oldStatus": old_status, "newStatus": dto.status},
        )
        session.commit()
        return self.get_claim(session, identity, claim_id)

    def assign(self, session: Session, identity: Identity, claim_id: uuid.UUID, dto: ClaimAssign) -> ClaimDetailRead:
        claim = self._load_authorized(
            session, identity, claim_id, Action.ASSIGN, "Only admins and supervisors can assign claims"
        )
        assignee = require_user(session, dto.assigned_to_id, "Assignee user not found") if dto.assigned_to_id is not None else None
        claim.assigned_to_id = assignee.id if assignee is not None else None
        record_activity(
            session,
            action=ActivityAction.ASSIGNED,
            description=f"Claim assigned to {assignee.full_name}" if assignee is not None else "Claim unassigned",
            actor_id=identity.user_id,
            claim_id=claim.id,
            client_id=claim.client_id,
            metadata={"assignedToId": str(assignee.id) if assignee is not None else None},
        )
        session.commit()
        return self.get_claim(session, identity, claim_id)

    def add_attachment(
        self,
        session: Session,
        identity: Identity,
        claim_id: uuid.UUID,
        *,
        content: bytes,
        original_name: str | None,
        mime_type: str | None,
    ) -> AttachmentRead:
        claim = self._load_authorized(session, identity, claim_id, Action.READ)
        stored = storage.store_file(content, original_name, mime_type)
        attachment = ClaimAttachment(
            claim_id=claim.id,
            filename=stored.filename,
            original_name=stored.original_name,
            mime_type=stored.mime_type,
            size=stored.size,
            path=stored.path,
        )
        session.add(attachment)
        record_activity(
            session,
            action=ActivityAction.ATTACHMENT_ADDED,
            description=f'Attachment "{stored.original_name}" added',
            actor_id=identity.user_id,
            claim_id=claim.id,
            client_id=claim.client_id,
        )
        try:
            session.commit()
        except Exception:
            session.rollback()
            storage.delete_file(stored.path)
            raise
        session.refresh(attachment)
        return AttachmentRead.model_validate(attachment)

    def get_attachment(
        self,
        session: Session,
        identity: Identity,
        claim_id: uuid.UUID,
        attachment_id: uuid.UUID,
    ) -> ClaimAttachment:
        # Ownership is re-checked on every download.
        self._load_authorized(session, identity, claim_id, Action.READ)
        attachment = self._load_attachment(session, claim_id, attachment_id)
        if not storage.file_exists(attachment.path):
            raise NotFoundError("File not found")
        return attachment

    def delete_attachment(
        self,
        session: Session,
        identity: Identity,
        claim_id: uuid.UUID,
        attachment_id: uuid.UUID,
    ) -> None:
        claim = self._load_authorized(
            session, identity, claim_id, Action.DELETE, "Only admins and supervisors can delete attachments"
        )
        attachment = self._load_attachment(session, claim_id, attachment_id)
        path = attachment.path
        original_name = attachment.original_name
        session.delete(attachment)
        record_activity(
            session,
            action=ActivityAction.ATTACHMENT_DELETED,
            description=f'Attachment "{original_name}" deleted',
            actor_id=identity.user_id,
            claim_id=claim.id,
            client_id=claim.client_id,
        )
        session.commit()
        storage.delete_file(path)

    def stats(self, session: Session, identity: Identity) -> ClaimStats:
        base = self._scoped(select(Claim), identity).subquery()
        status_counts = dict(session.execute(select(base.c.status, func.count()).group_by(base.c.status)).all())
        priority_counts = dict(session.execute(select(base.c.priority, func.count()).group_by(base.c.priority)).all())
        by_status = {status: int(status_counts.get(status, 0)) for status in CLAIM_STATUSES}
        by_priority = {priority: int(priority_counts.get(priority, 0)) for priority in CLAIM_PRIORITIES}

        now = utcnow()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        resolved_this_month = session.scalar(
            select(func.count()).select_from(base).where(base.c.resolved_at >= start_of_month)
        )
        recent = session.execute(
            select(base.c.created_at, base.c.resolved_at)
            .where(base.c.resolved_at.is_not(None))
            .order_by(base.c.resolved_at.desc())
            .limit(RESOLUTION_SAMPLE_SIZE)
        ).all()

        return ClaimStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_priority=by_priority,
            average_resolution_time=average_resolution_hours([(row[0], row[1]) for row in recent]),
            resolved_this_month=int(resolved_this_month or 0),
            open_claims=sum(count for status, count in by_status.items() if status in OPEN_STATUSES),
        )

    def _scoped(self, stmt: Select[tuple[Claim]], identity: Identity) -> Select[tuple[Claim]]:
        if identity.role is Role.CLIENT:
            if identity.client_id is None:
                return stmt.where(Claim.id.is_(None))
            return stmt.where(Claim.client_id == identity.client_id)
        if identity.role is Role.OPERATOR:
            return stmt.where(Claim.assigned_to_id == identity.user_id)
        return stmt

    def _persist_new(self, session: Session, identity: Identity, claim: Claim, description: str) -> ClaimDetailRead:
        session.add(claim)
        session.flush()
        record_activity(
            session,
            action=ActivityAction.CREATED,
            description=description,
            actor_id=identity.user_id,
            claim_id=claim.id,
            client_id=claim.client_id,
        )
        session.commit()
        logger.info("claim.created", extra={"entity_id": str(claim.id), "actor_id": str(identity.user_id)})
        return ClaimDetailRead.model_validate(self._load(session, claim.id))

    def _load(self, session: Session, claim_id: uuid.UUID) -> Claim:
        claim = session.scalar(
            select(Claim)
            .where(Claim.id == claim_id)
            .options(
                selectinload(Claim.client),
                selectinload(Claim.created_by),
                selectinload(Claim.assigned_to),
                selectinload(Claim.attachments),
            )
        )
        if claim is None:
            raise NotFoundError("Claim not found")
        return claim

    def _load_authorized(
        self,
        session: Session,
        identity: Identity,
        claim_id: uuid.UUID,
        action: Action,
        message: str = "Access denied to this claim",
    ) -> Claim:
        claim = self._load(session, claim_id)
        authorize(identity, ResourceKind.CLAIM, claim_owner(claim), action, message)
        return claim

    def _load_attachment(self, session: Session, claim_id: uuid.UUID, attachment_id: uuid.UUID) -> ClaimAttachment:
        attachment = session.get(ClaimAttachment, attachment_id)
        if attachment is None or attachment.claim_id != claim_id:
            raise NotFoundError("Attachment not found")
        return attachment


claim_service = ClaimService()
