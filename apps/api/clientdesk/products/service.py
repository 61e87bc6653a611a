from __future__ import annotations

import logging
import uuid

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from clientdesk.clients.income import ZERO, subscription_monthly
from clientdesk.clients.models import ClientProduct
from clientdesk.common.pagination import PageParams, apply_sort, paginate, search_filter
from clientdesk.core.errors import BadRequestError, NotFoundError
from clientdesk.core.schemas import PageMeta
from clientdesk.products.models import Product
from clientdesk.products.schemas import (
    BillingCycle,
    ProductCreate,
    ProductDetailRead,
    ProductRead,
    ProductSortField,
    ProductStats,
    ProductUpdate,
)


logger = logging.getLogger("clientdesk.products")

_SORT_COLUMNS = {
    "createdAt": Product.created_at,
    "name": Product.name,
    "price": Product.price,
}


class ProductService:
    def list_products(
        self,
        session: Session,
        params: PageParams,
        *,
        is_active: bool | None = None,
        billing_cycle: BillingCycle | None = None,
        sort_by: ProductSortField = "name",
    ) -> tuple[list[ProductRead], PageMeta]:
        stmt: Select[tuple[Product]] = select(Product)
        if is_active is not None:
            stmt = stmt.where(Product.is_active.is_(is_active))
        if billing_cycle is not None:
            stmt = stmt.where(Product.billing_cycle == billing_cycle)
        if params.search:
            stmt = stmt.where(search_filter(params.search, Product.name, Product.description))

        rows, meta = paginate(session, apply_sort(stmt, _SORT_COLUMNS[sort_by], params.sort_order, default="asc"), params)
        return [ProductRead.model_validate(row) for row in rows], meta

    def list_active(self, session: Session) -> list[ProductRead]:
        rows = session.scalars(select(Product).where(Product.is_active.is_(True)).order_by(Product.name.asc())).all()
        return [ProductRead.model_validate(row) for row in rows]

    def get_product(self, session: Session, product_id: uuid.UUID) -> ProductDetailRead:
        product = self._get_or_404(session, product_id)
        payload = ProductRead.model_validate(product).model_dump()
        return ProductDetailRead.model_validate({**payload, "active_subscriptions": self._active_count(session, product.id)})

    def create_product(self, session: Session, dto: ProductCreate) -> ProductRead:
        self._ensure_name_free(session, dto.name)
        product = Product(**dto.model_dump())
        session.add(product)
        session.commit()
        session.refresh(product)
        logger.info("product.created", extra={"entity_id": str(product.id)})
        return ProductRead.model_validate(product)

    def update_product(self, session: Session, product_id: uuid.UUID, dto: ProductUpdate) -> ProductRead:
        product = self._get_or_404(session, product_id)
        changes = dto.model_dump(exclude_unset=True)
        name = changes.get("name")
        if name and name.lower() != product.name.lower():
            self._ensure_name_free(session, name, exclude_id=product.id)

        for field_name, value in changes.items():
            if field_name != "description" and value is None:
                continue
            setattr(product, field_name, value)

        session.commit()
        session.refresh(product)
        return ProductRead.model_validate(product)

    def deactivate_product(self, session: Session, product_id: uuid.UUID) -> None:
        product = self._get_or_404(session, product_id)
        active = self._active_count(session, product.id)
        if active > 0:
            raise BadRequestError(
                f"Cannot delete product with {active} active subscription(s). Deactivate it instead."
            )
        product.is_active = False
        session.commit()
        logger.info("product.deactivated", extra={"entity_id": str(product.id)})

    def usage_stats(self, session: Session, product_id: uuid.UUID) -> ProductStats:
        product = self._get_or_404(session, product_id)
        subscriptions = session.scalars(
            select(ClientProduct)
            .where(ClientProduct.product_id == product.id)
            .options(selectinload(ClientProduct.product))
        ).all()
        active = [item for item in subscriptions if item.is_active]
        revenue = sum((subscription_monthly(item) for item in active), ZERO)
        return ProductStats(
            active_clients=len(active),
            total_clients=len(subscriptions),
            monthly_revenue=float(revenue),
        )

    def _ensure_name_free(self, session: Session, name: str, exclude_id: uuid.UUID | None = None) -> None:
        stmt = select(Product.id).where(func.lower(Product.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Product.id != exclude_id)
        if session.scalar(stmt) is not None:
            raise BadRequestError("A product with this name already exists")

    def _active_count(self, session: Session, product_id: uuid.UUID) -> int:
        stmt = select(func.count(ClientProduct.id)).where(
            ClientProduct.product_id == product_id, ClientProduct.is_active.is_(True)
        )
        return int(session.scalar(stmt) or 0)

    def _get_or_404(self, session: Session, product_id: uuid.UUID) -> Product:
        product = session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product


product_service = ProductService()
