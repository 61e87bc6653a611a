from __future__ import annotations

import logging
import uuid

from opentelemetry.trace import Status, StatusCode
from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

from clientdesk.activity.service import ActivityAction, record_activity
from clientdesk.authz.policy import Action, Identity, OwnerRef, ResourceKind, Role, authorize, is_manager
from clientdesk.clients.models import Client
from clientdesk.common.pagination import PageParams, apply_sort, paginate, search_filter
from clientdesk.core.database import unit_of_work, utcnow
from clientdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from clientdesk.core.schemas import PageMeta
from clientdesk.core.security import generate_throwaway_password, hash_password
from clientdesk.leads.models import Lead
from clientdesk.leads.schemas import (
    LeadAssign,
    LeadConversionResult,
    LeadConvert,
    LeadCreate,
    LeadRead,
    LeadSortField,
    LeadStats,
    LeadStatus,
    LeadStatusUpdate,
    LeadUpdate,
)
from clientdesk.metrics import observe_lead_converted
from clientdesk.otel import get_tracer
from clientdesk.users.models import User
from clientdesk.users.service import require_user


logger = logging.getLogger("clientdesk.leads")
tracer = get_tracer("clientdesk.leads")

LEAD_STATUSES: tuple[LeadStatus, ...] = ("NEW", "CONTACTED", "QUALIFIED", "CONVERTED", "LOST")

_SORT_COLUMNS = {
    "createdAt": Lead.created_at,
    "firstName": Lead.first_name,
    "lastName": Lead.last_name,
    "status": Lead.status,
    "estimatedValue": Lead.estimated_value,
}


def lead_owner(lead: Lead) -> OwnerRef:
    return OwnerRef(created_by_id=lead.created_by_id, assigned_to_id=lead.assigned_to_id)


class LeadService:
    def list_leads(
        self,
        session: Session,
        identity: Identity,
        params: PageParams,
        *,
        status: LeadStatus | None = None,
        source: str | None = None,
        assigned_to_id: uuid.UUID | None = None,
        sort_by: LeadSortField = "createdAt",
    ) -> tuple[list[LeadRead], PageMeta]:
        stmt = self._scoped(select(Lead), identity).options(
            selectinload(Lead.created_by), selectinload(Lead.assigned_to)
        )
        if status is not None:
            stmt = stmt.where(Lead.status == status)
        if source:
            stmt = stmt.where(search_filter(source, Lead.source))
        if assigned_to_id is not None:
            stmt = stmt.where(Lead.assigned_to_id == assigned_to_id)
        if params.search:
            stmt = stmt.where(
                search_filter(params.search, Lead.first_name, Lead.last_name, Lead.email, Lead.company)
            )

        rows, meta = paginate(session, apply_sort(stmt, _SORT_COLUMNS[sort_by], params.sort_order), params)
        return [LeadRead.model_validate(row) for row in rows], meta

    def get_lead(self, session: Session, identity: Identity, lead_id: uuid.UUID) -> LeadRead:
        lead = self._load(session, lead_id)
        authorize(identity, ResourceKind.LEAD, lead_owner(lead), Action.READ, "Access denied to this lead")
        return LeadRead.model_validate(lead)

    def create_lead(self, session: Session, identity: Identity, dto: LeadCreate) -> LeadRead:
        if dto.assigned_to_id is not None:
            if not is_manager(identity.role):
                raise ForbiddenError("Only admins and supervisors can assign leads")
            require_user(session, dto.assigned_to_id, "Assignee user not found")

        lead = Lead(
            **dto.model_dump(exclude={"email"}),
            email=dto.email.lower(),
            status="NEW",
            created_by_id=identity.user_id,
        )
        session.add(lead)
        session.flush()
        record_activity(
            session,
            action=ActivityAction.CREATED,
            description=f'Lead "{lead.full_name}" created',
            actor_id=identity.user_id,
            lead_id=lead.id,
        )
        session.commit()
        logger.info("lead.created", extra={"entity_id": str(lead.id), "actor_id": str(identity.user_id)})
        return LeadRead.model_validate(self._load(session, lead.id))

    def update_lead(self, session: Session, identity: Identity, lead_id: uuid.UUID, dto: LeadUpdate) -> LeadRead:
        lead = self._load(session, lead_id)
        authorize(identity, ResourceKind.LEAD, lead_owner(lead), Action.UPDATE, "Access denied to this lead")

        changes = dto.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = changes["email"].lower()
        for field_name, value in changes.items():
            if field_name in {"first_name", "last_name", "email"} and value is None:
                continue
            setattr(lead, field_name, value)

        record_activity(
            session,
            action=ActivityAction.UPDATED,
            description=f'Lead "{lead.full_name}" updated',
            actor_id=identity.user_id,
            lead_id=lead.id,
        )
        session.commit()
        return LeadRead.model_validate(self._load(session, lead.id))

    def delete_lead(self, session: Session, identity: Identity, lead_id: uuid.UUID) -> None:
        lead = self._load(session, lead_id)
        authorize(identity, ResourceKind.LEAD, lead_owner(lead), Action.DELETE, "Only admins and supervisors can delete leads")

        # The activity outlives the lead, so it carries no lead reference.
        record_activity(
            session,
            action=ActivityAction.DELETED,
            description=f'Lead "{lead.full_name}" deleted',
            actor_id=identity.user_id,
            metadata={"leadId": str(lead.id)},
        )
        session.delete(lead)
        session.commit()
        logger.info("lead.deleted", extra={"entity_id": str(lead_id), "actor_id": str(identity.user_id)})

    def update_status(
        self,
        session: Session,
        identity: Identity,
        lead_id: uuid.UUID,
        dto: LeadStatusUpdate,
    ) -> LeadRead:
        lead = self._load(session, lead_id)
        authorize(identity, ResourceKind.LEAD, lead_owner(lead), Action.UPDATE, "Access denied to this lead")
        if lead.status == "CONVERTED":
            raise BadRequestError("Cannot change status of converted leads")

        old_status = lead.status
        lead.status = dto.status
        record_activity(
            session,
            action=ActivityAction.STATUS_CHANGED,
            description=f"Lead status changed from {old_status} to {dto.status}",
            actor_id=identity.user_id,
            lead_id=lead.id,
            metadata={"oldStatus": old_status, "newStatus": dto.status},
        )
        session.commit()
        return LeadRead.model_validate(self._load(session, lead.id))

    def assign(self, session: Session, identity: Identity, lead_id: uuid.UUID, dto: LeadAssign) -> LeadRead:
        lead = self._load(session, lead_id)
        authorize(identity, ResourceKind.LEAD, lead_owner(lead), Action.ASSIGN, "Only admins and supervisors can assign leads")

        assignee = require_user(session, dto.assigned_to_id, "Assignee user not found") if dto.assigned_to_id is not None else None
        lead.assigned_to_id = assignee.id if assignee is not None else None
        record_activity(
            session,
            action=ActivityAction.ASSIGNED,
            description=f"Lead assigned to {assignee.full_name}" if assignee is not None else "Lead unassigned",
            actor_id=identity.user_id,
            lead_id=lead.id,
            metadata={"assignedToId": str(assignee.id) if assignee is not None else None},
        )
        session.commit()
        return LeadRead.model_validate(self._load(session, lead.id))

    def convert(self, session: Session, identity: Identity, lead_id: uuid.UUID, dto: LeadConvert) -> LeadConversionResult:
        if not is_manager(identity.role):
            raise ForbiddenError("Only admins and supervisors can convert leads")

        with tracer.start_as_current_span("leads.convert") as span:
            span.set_attribute("lead.id", str(lead_id))
            lead = self._load(session, lead_id)
            if lead.status == "CONVERTED":
                raise BadRequestError("Lead is already converted")
            email = lead.email.lower()
            if session.scalar(select(Client.id).where(Client.email == email)) is not None:
                raise BadRequestError("A client with this email already exists")
            if dto.create_portal_account and session.scalar(select(User.id).where(User.email == email)) is not None:
                raise BadRequestError("A user account with this email already exists")

            try:
                with unit_of_work(session):
                    portal_user = self._create_portal_user(session, lead) if dto.create_portal_account else None
                    client = self._create_client_from_lead(session, lead, dto, portal_user)
                    self._mark_converted(session, lead)
                    record_activity(
                        session,
                        action=ActivityAction.CONVERTED,
                        description=f'Lead converted to client "{client.full_name}"',
                        actor_id=identity.user_id,
                        lead_id=lead.id,
                        client_id=client.id,
                    )
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise

            span.set_attribute("client.id", str(client.id))

        observe_lead_converted()
        logger.info("lead.converted", extra={"entity_id": str(lead_id), "actor_id": str(identity.user_id)})
        return LeadConversionResult(lead=LeadRead.model_validate(self._load(session, lead_id)), client_id=client.id)

    def stats(self, session: Session, identity: Identity) -> LeadStats:
        base = self._scoped(select(Lead), identity).subquery()
        counts = dict(session.execute(select(base.c.status, func.count()).group_by(base.c.status)).all())
        by_status = {status: int(counts.get(status, 0)) for status in LEAD_STATUSES}
        total = sum(by_status.values())
        estimated = session.scalar(select(func.coalesce(func.sum(base.c.estimated_value), 0)))
        conversion_rate = round(by_status["CONVERTED"] / total * 100, 1) if total else 0.0
        return LeadStats(
            total=total,
            by_status=by_status,
            total_estimated_value=float(estimated or 0),
            conversion_rate=conversion_rate,
        )

    def sources(self, session: Session) -> list[str]:
        stmt = select(Lead.source).where(Lead.source.is_not(None)).distinct().order_by(Lead.source.asc())
        return [source for source in session.scalars(stmt).all() if source]

    def _scoped(self, stmt: Select[tuple[Lead]], identity: Identity) -> Select[tuple[Lead]]:
        if identity.role is Role.OPERATOR:
            return stmt.where(or_(Lead.created_by_id == identity.user_id, Lead.assigned_to_id == identity.user_id))
        if identity.role is Role.CLIENT:
            return stmt.where(Lead.id.is_(None))
        return stmt

    def _load(self, session: Session, lead_id: uuid.UUID) -> Lead:
        lead = session.scalar(
            select(Lead)
            .where(Lead.id == lead_id)
            .options(selectinload(Lead.created_by), selectinload(Lead.assigned_to))
        )
        if lead is None:
            raise NotFoundError("Lead not found")
        return lead

    def _create_portal_user(self, session: Session, lead: Lead) -> User:
        user = User(
            email=lead.email.lower(),
            password_hash=hash_password(generate_throwaway_password()),
            first_name=lead.first_name,
            last_name=lead.last_name,
            phone=lead.phone,
            role=Role.CLIENT.value,
        )
        session.add(user)
        session.flush()
        return user

    def _create_client_from_lead(self, session: Session, lead: Lead, dto: LeadConvert, portal_user: User | None) -> Client:
        client = Client(
            first_name=lead.first_name,
            last_name=lead.last_name,
            email=lead.email.lower(),
            phone=lead.phone,
            company=lead.company,
            address=dto.address,
            city=dto.city,
            state=dto.state,
            zip_code=dto.zip_code,
            country=dto.country,
            tax_id=dto.tax_id,
            converted_from_id=lead.id,
            user_id=portal_user.id if portal_user is not None else None,
        )
        session.add(client)
        session.flush()
        return client

    def _mark_converted(self, session: Session, lead: Lead) -> None:
        lead.status = "CONVERTED"
        lead.converted_at = utcnow()
        session.flush()


lead_service = LeadService()
