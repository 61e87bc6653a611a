from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clientdesk.authz.policy import Role
from clientdesk.claims.models import Claim
from clientdesk.clients.models import Client, ClientProduct
from clientdesk.core.config import get_settings
from clientdesk.core.database import Base, enforce_sqlite_foreign_keys, get_db
from clientdesk.core.security import hash_password, issue_token_pair
from clientdesk.leads.models import Lead
from clientdesk.main import app
from clientdesk.middleware.rate_limit import reset_rate_limiter
from clientdesk.products.models import Product
from clientdesk.users.models import User


DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:  # type: ignore[no-untyped-def]
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("UPLOAD_PATH", str(tmp_path / "uploads"))
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = enforce_sqlite_foreign_keys(
        create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class Factory:
    """Persists fixture rows straight through the ORM."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _save(self, instance):  # type: ignore[no-untyped-def]
        self.session.add(instance)
        self.session.commit()
        self.session.refresh(instance)
        return instance

    def user(
        self,
        role: Role = Role.OPERATOR,
        *,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
        first_name: str = "Test",
        last_name: str | None = None,
    ) -> User:
        return self._save(
            User(
                email=email or f"{role.value.lower()}-{uuid.uuid4().hex[:8]}@clientdesk.io",
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name or role.value.title(),
                role=role.value,
                is_active=is_active,
            )
        )

    def headers(self, user: User) -> dict[str, str]:
        tokens = issue_token_pair(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {tokens.access_token}"}

    def product(self, name: str | None = None, price: str = "100.00", billing_cycle: str = "monthly", is_active: bool = True) -> Product:
        return self._save(
            Product(
                name=name or f"Product {uuid.uuid4().hex[:6]}",
                price=Decimal(price),
                billing_cycle=billing_cycle,
                is_active=is_active,
            )
        )

    def client(self, *, email: str | None = None, user: User | None = None, first_name: str = "Ada", last_name: str = "Client") -> Client:
        return self._save(
            Client(
                first_name=first_name,
                last_name=last_name,
                email=email or f"client-{uuid.uuid4().hex[:8]}@clientdesk.io",
                user_id=user.id if user is not None else None,
            )
        )

    def portal_client(self) -> tuple[Client, User]:
        user = self.user(Role.CLIENT)
        return self.client(email=user.email, user=user), user

    def subscription(
        self,
        client: Client,
        product: Product,
        *,
        quantity: int = 1,
        custom_price: str | None = None,
        is_active: bool = True,
    ) -> ClientProduct:
        return self._save(
            ClientProduct(
                client_id=client.id,
                product_id=product.id,
                quantity=quantity,
                custom_price=Decimal(custom_price) if custom_price is not None else None,
                is_active=is_active,
            )
        )

    def lead(
        self,
        creator: User,
        *,
        status: str = "NEW",
        assigned_to: User | None = None,
        email: str | None = None,
        source: str | None = "website",
    ) -> Lead:
        return self._save(
            Lead(
                first_name="Grace",
                last_name="Lead",
                email=email or f"lead-{uuid.uuid4().hex[:8]}@clientdesk.io",
                status=status,
                source=source,
                created_by_id=creator.id,
                assigned_to_id=assigned_to.id if assigned_to is not None else None,
            )
        )

    def claim(
        self,
        client: Client,
        creator: User,
        *,
        assigned_to: User | None = None,
        status: str = "OPEN",
        title: str = "Broken invoice",
    ) -> Claim:
        return self._save(
            Claim(
                title=title,
                description="Invoice total does not match the order",
                status=status,
                client_id=client.id,
                created_by_id=creator.id,
                assigned_to_id=assigned_to.id if assigned_to is not None else None,
            )
        )


@pytest.fixture()
def factory(db_session: Session) -> Factory:
    return Factory(db_session)
