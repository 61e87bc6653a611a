from __future__ import annotations

import logging
import uuid

from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

from clientdesk.activity.schemas import ActivityRead
from clientdesk.activity.service import recent_activity
from clientdesk.authz.policy import Identity, Role
from clientdesk.claims.models import Claim
from clientdesk.clients.income import ZERO, subscription_monthly
from clientdesk.clients.models import Client, ClientProduct
from clientdesk.core.errors import ForbiddenError, NotFoundError
from clientdesk.dashboard.schemas import (
    ClaimSummaryStats,
    ClientDashboard,
    ClientSummaryStats,
    LeadSummaryStats,
    PortalClaimStats,
    PortalProfileSummary,
    PortalSubscriptionStats,
    RecentClaim,
    RevenueStats,
    RoleCount,
    StaffDashboard,
    UserSummaryStats,
)
from clientdesk.leads.models import Lead
from clientdesk.users.models import User


logger = logging.getLogger("clientdesk.dashboard")

RECENT_ACTIVITY_LIMIT = 10
RECENT_CLAIMS_LIMIT = 5


def _count(session: Session, stmt: Select) -> int:  # type: ignore[type-arg]
    return int(session.scalar(select(func.count()).select_from(stmt.subquery())) or 0)


class DashboardService:
    def admin(self, session: Session) -> StaffDashboard:
        dashboard = self.supervisor(session)
        by_role = session.execute(select(User.role, func.count()).group_by(User.role).order_by(User.role)).all()
        dashboard.users = UserSummaryStats(
            total=_count(session, select(User.id)),
            active=_count(session, select(User.id).where(User.is_active.is_(True))),
            by_role=[RoleCount(role=role, count=int(count)) for role, count in by_role],
        )
        return dashboard

    def supervisor(self, session: Session) -> StaffDashboard:
        return StaffDashboard(
            leads=self._lead_stats(session),
            clients=self._client_stats(session),
            claims=self._claim_stats(session),
            revenue=self._revenue(session),
            recent_activity=self._recent(session),
        )

    def operator(self, session: Session, identity: Identity) -> StaffDashboard:
        user_id = identity.user_id
        return StaffDashboard(
            leads=self._lead_stats(session, or_(Lead.assigned_to_id == user_id, Lead.created_by_id == user_id)),
            clients=ClientSummaryStats(total=0, active=0, with_subscriptions=0),
            claims=self._claim_stats(session, Claim.assigned_to_id == user_id),
            recent_activity=self._recent(session, user_id=user_id),
        )

    def client(self, session: Session, identity: Identity) -> ClientDashboard:
        if identity.client_id is None:
            raise ForbiddenError("No client profile linked to this account")
        client = session.scalar(
            select(Client)
            .where(Client.id == identity.client_id)
            .options(selectinload(Client.subscriptions).selectinload(ClientProduct.product))
        )
        if client is None:
            raise NotFoundError("Client not found")

        active = [subscription for subscription in client.subscriptions if subscription.is_active]
        monthly_spend = sum((subscription_monthly(subscription) for subscription in active), ZERO)
        claims = self._claim_stats(session, Claim.client_id == client.id)
        recent_claims = session.scalars(
            select(Claim).where(Claim.client_id == client.id).order_by(Claim.created_at.desc()).limit(RECENT_CLAIMS_LIMIT)
        ).all()

        return ClientDashboard(
            profile=PortalProfileSummary.model_validate(client),
            subscriptions=PortalSubscriptionStats(
                active=len(active),
                total=len(client.subscriptions),
                monthly_spend=float(monthly_spend),
            ),
            claims=PortalClaimStats(total=claims.total, open=claims.open + claims.in_progress, resolved=claims.resolved),
            recent_claims=[RecentClaim.model_validate(claim) for claim in recent_claims],
        )

    def for_identity(self, session: Session, identity: Identity) -> StaffDashboard | ClientDashboard:
        if identity.role is Role.ADMIN:
            return self.admin(session)
        if identity.role is Role.SUPERVISOR:
            return self.supervisor(session)
        if identity.role is Role.OPERATOR:
            return self.operator(session, identity)
        return self.client(session, identity)

    def _lead_stats(self, session: Session, *criteria: ColumnElement[bool]) -> LeadSummaryStats:
        base = select(Lead.id).where(*criteria)
        total = _count(session, base)
        converted = _count(session, base.where(Lead.status == "CONVERTED"))
        return LeadSummaryStats(
            total=total,
            new=_count(session, base.where(Lead.status == "NEW")),
            converted=converted,
            conversion_rate=round(converted / total * 100, 1) if total else 0.0,
        )

    def _client_stats(self, session: Session) -> ClientSummaryStats:
        with_subscriptions = select(Client.id).where(
            Client.subscriptions.any(ClientProduct.is_active.is_(True))
        )
        return ClientSummaryStats(
            total=_count(session, select(Client.id)),
            active=_count(session, select(Client.id).where(Client.is_active.is_(True))),
            with_subscriptions=_count(session, with_subscriptions),
        )

    def _claim_stats(self, session: Session, *criteria: ColumnElement[bool]) -> ClaimSummaryStats:
        base = select(Claim.id).where(*criteria)
        return ClaimSummaryStats(
            total=_count(session, base),
            open=_count(session, base.where(Claim.status == "OPEN")),
            in_progress=_count(session, base.where(Claim.status == "IN_PROGRESS")),
            resolved=_count(session, base.where(Claim.status.in_(("RESOLVED", "CLOSED")))),
        )

    def _revenue(self, session: Session) -> RevenueStats:
        subscriptions = session.scalars(
            select(ClientProduct).where(ClientProduct.is_active.is_(True)).options(selectinload(ClientProduct.product))
        ).all()
        monthly = sum((subscription_monthly(subscription) for subscription in subscriptions), ZERO)
        return RevenueStats(monthly_recurring=float(monthly), yearly_projected=float(monthly * 12))

    def _recent(self, session: Session, user_id: uuid.UUID | None = None) -> list[ActivityRead]:
        return [ActivityRead.model_validate(row) for row in recent_activity(session, RECENT_ACTIVITY_LIMIT, user_id)]


dashboard_service = DashboardService()
