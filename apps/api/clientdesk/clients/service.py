from __future__ import annotations

import logging
import uuid

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from clientdesk.activity.service import ActivityAction, record_activity
from clientdesk.authz.policy import Action, Identity, OwnerRef, ResourceKind, Role, authorize
from clientdesk.clients.income import ZERO, income_lines, summarize
from clientdesk.clients.models import Client, ClientProduct
from clientdesk.clients.schemas import (
    ClientCreate,
    ClientDetailRead,
    ClientIncomeRead,
    ClientRead,
    ClientSortField,
    ClientUpdate,
    IncomeLineRead,
    IncomeReportRead,
    ProductRevenueRead,
    SubscriptionCreate,
    SubscriptionUpdate,
    TopClientRead,
)
from clientdesk.common.pagination import PageParams, apply_sort, paginate, search_filter
from clientdesk.core.database import unit_of_work, utcnow
from clientdesk.core.errors import BadRequestError, NotFoundError
from clientdesk.core.schemas import PageMeta
from clientdesk.core.security import generate_throwaway_password, hash_password
from clientdesk.products.models import Product
from clientdesk.users.models import User


logger = logging.getLogger("clientdesk.clients")

TOP_CLIENTS_LIMIT = 10

_SORT_COLUMNS = {
    "createdAt": Client.created_at,
    "firstName": Client.first_name,
    "lastName": Client.last_name,
    "email": Client.email,
    "company": Client.company,
}


def client_owner(client: Client) -> OwnerRef:
    return OwnerRef(client_id=client.id)


class ClientService:
    def list_clients(
        self,
        session: Session,
        params: PageParams,
        *,
        is_active: bool | None = None,
        sort_by: ClientSortField = "createdAt",
    ) -> tuple[list[ClientRead], PageMeta]:
        stmt: Select[tuple[Client]] = select(Client)
        if is_active is not None:
            stmt = stmt.where(Client.is_active.is_(is_active))
        if params.search:
            stmt = stmt.where(
                search_filter(params.search, Client.first_name, Client.last_name, Client.email, Client.company)
            )

        rows, meta = paginate(session, apply_sort(stmt, _SORT_COLUMNS[sort_by], params.sort_order), params)
        return [ClientRead.model_validate(row) for row in rows], meta

    def get_client(self, session: Session, identity: Identity, client_id: uuid.UUID) -> ClientDetailRead:
        client = self._load(session, client_id, with_subscriptions=True)
        authorize(identity, ResourceKind.CLIENT, client_owner(client), Action.READ, "Access denied to this client")
        return ClientDetailRead.model_validate(client)

    def create_client(self, session: Session, identity: Identity, dto: ClientCreate) -> ClientRead:
        email = dto.email.lower()
        self._ensure_email_free(session, email)

        client = Client(**dto.model_dump(exclude={"email"}), email=email)
        session.add(client)
        session.flush()
        record_activity(
            session,
            action=ActivityAction.CREATED,
            description=f'Client "{client.full_name}" created',
            actor_id=identity.user_id,
            client_id=client.id,
        )
        session.commit()
        session.refresh(client)
        logger.info("client.created", extra={"entity_id": str(client.id), "actor_id": str(identity.user_id)})
        return ClientRead.model_validate(client)

    def update_client(self, session: Session, identity: Identity, client_id: uuid.UUID, dto: ClientUpdate) -> ClientRead:
        client = self._load(session, client_id)
        authorize(identity, ResourceKind.CLIENT, client_owner(client), Action.UPDATE, "Access denied to this client")

        changes = dto.model_dump(exclude_unset=True)
        email = changes.pop("email", None)
        if email is not None:
            email = email.lower()
            if email != client.email:
                self._ensure_email_free(session, email)
            client.email = email
        for field_name, value in changes.items():
            if field_name in {"first_name", "last_name", "is_active"} and value is None:
                continue
            setattr(client, field_name, value)

        record_activity(
            session,
            action=ActivityAction.UPDATED,
            description=f'Client "{client.full_name}" updated',
            actor_id=identity.user_id,
            client_id=client.id,
        )
        session.commit()
        session.refresh(client)
        return ClientRead.model_validate(client)

    def deactivate_client(self, session: Session, identity: Identity, client_id: uuid.UUID) -> None:
        client = self._load(session, client_id)
        authorize(identity, ResourceKind.CLIENT, client_owner(client), Action.DELETE)

        client.is_active = False
        record_activity(
            session,
            action=ActivityAction.DELETED,
            description=f'Client "{client.full_name}" deactivated',
            actor_id=identity.user_id,
            client_id=client.id,
        )
        session.commit()

    def add_subscription(
        self,
        session: Session,
        identity: Identity,
        client_id: uuid.UUID,
        dto: SubscriptionCreate,
    ) -> ClientDetailRead:
        client = self._load(session, client_id)
        product = session.get(Product, dto.product_id)
        if product is None:
            raise NotFoundError("Product not found")

        existing = session.scalar(
            select(ClientProduct.id).where(ClientProduct.client_id == client.id, ClientProduct.product_id == product.id)
        )
        if existing is not None:
            raise BadRequestError("Client already has this product")

        session.add(
            ClientProduct(
                client_id=client.id,
                product_id=product.id,
                quantity=dto.quantity,
                custom_price=dto.custom_price,
                start_date=dto.start_date or utcnow(),
                end_date=dto.end_date,
            )
        )
        record_activity(
            session,
            action=ActivityAction.PRODUCT_ADDED,
            description=f'Product "{product.name}" added to client',
            actor_id=identity.user_id,
            client_id=client.id,
            metadata={"productId": str(product.id), "quantity": dto.quantity},
        )
        session.commit()
        return self.get_client(session, identity, client.id)

    def update_subscription(
        self,
        session: Session,
        identity: Identity,
        client_id: uuid.UUID,
        product_id: uuid.UUID,
        dto: SubscriptionUpdate,
    ) -> ClientDetailRead:
        subscription = self._load_subscription(session, client_id, product_id)
        for field_name, value in dto.model_dump(exclude_unset=True).items():
            if field_name in {"quantity", "is_active"} and value is None:
                continue
            setattr(subscription, field_name, value)

        record_activity(
            session,
            action=ActivityAction.PRODUCT_UPDATED,
            description=f'Product "{subscription.product.name}" subscription updated',
            actor_id=identity.user_id,
            client_id=client_id,
            metadata={"productId": str(product_id)},
        )
        session.commit()
        return self.get_client(session, identity, client_id)

    def remove_subscription(self, session: Session, identity: Identity, client_id: uuid.UUID, product_id: uuid.UUID) -> ClientDetailRead:
        subscription = self._load_subscription(session, client_id, product_id)
        product_name = subscription.product.name
        session.delete(subscription)
        record_activity(
            session,
            action=ActivityAction.PRODUCT_REMOVED,
            description=f'Product "{product_name}" removed from client',
            actor_id=identity.user_id,
            client_id=client_id,
            metadata={"productId": str(product_id)},
        )
        session.commit()
        return self.get_client(session, identity, client_id)

    def client_income(self, session: Session, client_id: uuid.UUID) -> ClientIncomeRead:
        client = self._load(session, client_id)
        active = self._active_subscriptions(session, ClientProduct.client_id == client.id)
        lines = income_lines(active)
        monthly = sum((line.total_monthly for line in lines), ZERO)
        return ClientIncomeRead(
            client_id=client.id,
            client_name=client.full_name,
            monthly_income=float(monthly),
            yearly_income=float(monthly * 12),
            products=[
                IncomeLineRead(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    price=float(line.price),
                    quantity=line.quantity,
                    billing_cycle=line.billing_cycle,
                    total_monthly=float(line.total_monthly),
                )
                for line in lines
            ],
        )

    def income_report(self, session: Session) -> IncomeReportRead:
        summary = summarize(self._active_subscriptions(session))
        client_count = session.scalar(
            select(func.count(func.distinct(Client.id)))
            .join(ClientProduct, ClientProduct.client_id == Client.id)
            .where(Client.is_active.is_(True), ClientProduct.is_active.is_(True))
        )
        return IncomeReportRead(
            total_monthly_income=float(summary.total_monthly),
            total_yearly_income=float(summary.total_yearly),
            client_count=int(client_count or 0),
            active_subscriptions=summary.subscription_count,
            top_clients=[
                TopClientRead(client_id=item.client_id, client_name=item.client_name, total_monthly=float(item.total_monthly))
                for item in summary.clients[:TOP_CLIENTS_LIMIT]
            ],
            product_breakdown=[
                ProductRevenueRead(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    client_count=len(item.client_ids),
                    total_monthly_revenue=float(item.total_monthly),
                )
                for item in summary.products
            ],
        )

    def create_portal_account(self, session: Session, identity: Identity, client_id: uuid.UUID) -> ClientRead:
        client = self._load(session, client_id)
        if client.user_id is not None:
            raise BadRequestError("Client already has portal access")
        if session.scalar(select(User.id).where(User.email == client.email.lower())) is not None:
            raise BadRequestError("A user account with this email already exists")

        with unit_of_work(session):
            portal_user = User(
                email=client.email.lower(),
                password_hash=hash_password(generate_throwaway_password()),
                first_name=client.first_name,
                last_name=client.last_name,
                phone=client.phone,
                role=Role.CLIENT.value,
            )
            session.add(portal_user)
            session.flush()
            client.user_id = portal_user.id
            record_activity(
                session,
                action=ActivityAction.PORTAL_CREATED,
                description="Portal account created for client",
                actor_id=identity.user_id,
                client_id=client.id,
            )

        logger.info("client.portal_created", extra={"entity_id": str(client.id), "actor_id": str(identity.user_id)})
        session.refresh(client)
        return ClientRead.model_validate(client)

    def _active_subscriptions(self, session: Session, *criteria) -> list[ClientProduct]:  # type: ignore[no-untyped-def]
        stmt = (
            select(ClientProduct)
            .where(ClientProduct.is_active.is_(True), *criteria)
            .options(selectinload(ClientProduct.product), selectinload(ClientProduct.client))
            .order_by(ClientProduct.start_date.asc(), ClientProduct.id.asc())
        )
        return list(session.scalars(stmt).all())

    def _ensure_email_free(self, session: Session, email: str) -> None:
        if session.scalar(select(Client.id).where(Client.email == email)) is not None:
            raise BadRequestError("A client with this email already exists")

    def _load(self, session: Session, client_id: uuid.UUID, *, with_subscriptions: bool = False) -> Client:
        stmt = select(Client).where(Client.id == client_id)
        if with_subscriptions:
            stmt = stmt.options(selectinload(Client.subscriptions).selectinload(ClientProduct.product))
        client = session.scalar(stmt)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    def _load_subscription(self, session: Session, client_id: uuid.UUID, product_id: uuid.UUID) -> ClientProduct:
        subscription = session.scalar(
            select(ClientProduct)
            .where(ClientProduct.client_id == client_id, ClientProduct.product_id == product_id)
            .options(selectinload(ClientProduct.product))
        )
        if subscription is None:
            raise NotFoundError("Subscription not found")
        return subscription


client_service = ClientService()
