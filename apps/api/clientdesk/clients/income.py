"""Recurring revenue normalisation.

All arithmetic is ``Decimal`` so identical subscription rows always produce
identical figures; conversion to ``float`` happens only at the response edge.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from clientdesk.clients.models import ClientProduct


MONTHS_PER_YEAR = Decimal(12)
ZERO = Decimal(0)


def effective_price(custom_price: Decimal | None, list_price: Decimal) -> Decimal:
    return Decimal(custom_price) if custom_price is not None else Decimal(list_price)


def monthly_amount(price: Decimal, quantity: int, billing_cycle: str) -> Decimal:
    total = Decimal(price) * quantity
    if billing_cycle == "yearly":
        return total / MONTHS_PER_YEAR
    if billing_cycle == "one-time":
        return ZERO
    return total


def subscription_monthly(subscription: ClientProduct) -> Decimal:
    product = subscription.product
    price = effective_price(subscription.custom_price, product.price)
    return monthly_amount(price, subscription.quantity, product.billing_cycle)


@dataclass(slots=True)
class IncomeLine:
    product_id: uuid.UUID
    product_name: str
    price: Decimal
    quantity: int
    billing_cycle: str
    total_monthly: Decimal


@dataclass(slots=True)
class ClientTotal:
    client_id: uuid.UUID
    client_name: str
    total_monthly: Decimal = ZERO


@dataclass(slots=True)
class ProductTotal:
    product_id: uuid.UUID
    product_name: str
    client_ids: set[uuid.UUID] = field(default_factory=set)
    total_monthly: Decimal = ZERO


@dataclass(slots=True)
class IncomeSummary:
    total_monthly: Decimal
    subscription_count: int
    clients: list[ClientTotal]
    products: list[ProductTotal]

    @property
    def total_yearly(self) -> Decimal:
        return self.total_monthly * MONTHS_PER_YEAR


def income_lines(subscriptions: Iterable[ClientProduct]) -> list[IncomeLine]:
    lines: list[IncomeLine] = []
    for subscription in subscriptions:
        product = subscription.product
        lines.append(
            IncomeLine(
                product_id=product.id,
                product_name=product.name,
                price=effective_price(subscription.custom_price, product.price),
                quantity=subscription.quantity,
                billing_cycle=product.billing_cycle,
                total_monthly=subscription_monthly(subscription),
            )
        )
    return lines


def summarize(subscriptions: Iterable[ClientProduct]) -> IncomeSummary:
    """Aggregate subscriptions per client and per product, richest first."""
    per_client: dict[uuid.UUID, ClientTotal] = {}
    per_product: dict[uuid.UUID, ProductTotal] = {}
    total = ZERO
    count = 0

    for subscription in subscriptions:
        amount = subscription_monthly(subscription)
        total += amount
        count += 1

        client = subscription.client
        client_total = per_client.setdefault(client.id, ClientTotal(client_id=client.id, client_name=client.full_name))
        client_total.total_monthly += amount

        product = subscription.product
        product_total = per_product.setdefault(product.id, ProductTotal(product_id=product.id, product_name=product.name))
        product_total.client_ids.add(client.id)
        product_total.total_monthly += amount

    # Ties broken by name so the ordering is reproducible.
    clients = sorted(per_client.values(), key=lambda item: (-item.total_monthly, item.client_name, str(item.client_id)))
    products = sorted(per_product.values(), key=lambda item: (-item.total_monthly, item.product_name))
    return IncomeSummary(total_monthly=total, subscription_count=count, clients=clients, products=products)
