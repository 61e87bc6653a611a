from __future__ import annotations

from datetime import datetime
from uuid import UUID

from clientdesk.activity.schemas import ActivityRead
from clientdesk.core.schemas import CamelModel


class RoleCount(CamelModel):
    role: str
    count: int


class UserSummaryStats(CamelModel):
    total: int
    active: int
    by_role: list[RoleCount]


class LeadSummaryStats(CamelModel):
    total: int
    new: int
    converted: int
    conversion_rate: float


class ClientSummaryStats(CamelModel):
    total: int
    active: int
    with_subscriptions: int


class ClaimSummaryStats(CamelModel):
    total: int
    open: int
    in_progress: int
    resolved: int


class RevenueStats(CamelModel):
    monthly_recurring: float
    yearly_projected: float


class StaffDashboard(CamelModel):
    users: UserSummaryStats | None = None
    leads: LeadSummaryStats
    clients: ClientSummaryStats
    claims: ClaimSummaryStats
    revenue: RevenueStats | None = None
    recent_activity: list[ActivityRead]


class PortalProfileSummary(CamelModel):
    first_name: str
    last_name: str
    email: str
    company: str | None


class PortalSubscriptionStats(CamelModel):
    active: int
    total: int
    monthly_spend: float


class PortalClaimStats(CamelModel):
    total: int
    open: int
    resolved: int


class RecentClaim(CamelModel):
    id: UUID
    title: str
    status: str
    created_at: datetime


class ClientDashboard(CamelModel):
    profile: PortalProfileSummary
    subscriptions: PortalSubscriptionStats
    claims: PortalClaimStats
    recent_claims: list[RecentClaim]
