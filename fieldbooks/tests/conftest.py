"""Shared test fixtures.

Each test gets its own in-memory SQLite database, so tests never pollute each
other or a real database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from fieldbooks.app.core.database import Base, get_db
from fieldbooks.app.core.security import create_access_token
from fieldbooks.app.main import app
from fieldbooks.app.models.registry import (
    Company,
    Customer,
    Invoice,
    InvoiceStatus,
    RoleEnum,
    Staff,
    StockItem,
    User,
    WorkOrder,
    WorkOrderStatus,
    WorkOrderStockUsage,
)


# ─── DB session on a throwaway database ─────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Yield a session bound to a fresh in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, autoflush=False)

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ─── Tenancy & auth ─────────────────────────────────────────────────────────


@pytest.fixture()
def company(db: Session) -> Company:
    c = Company(name="Test Field Services")
    db.add(c)
    db.flush()
    return c


@pytest.fixture()
def other_company(db: Session) -> Company:
    c = Company(name="Competitor Ltd")
    db.add(c)
    db.flush()
    return c


def _user(db: Session, company: Company, username: str, role: RoleEnum) -> User:
    user = User(company_id=company.id, username=username, role=role)
    db.add(user)
    db.flush()
    return user


@pytest.fixture()
def admin_user(db: Session, company: Company) -> User:
    return _user(db, company, "test_admin", RoleEnum.ADMIN)


@pytest.fixture()
def manager_user(db: Session, company: Company) -> User:
    return _user(db, company, "test_manager", RoleEnum.MANAGER)


@pytest.fixture()
def staff_user(db: Session, company: Company) -> User:
    return _user(db, company, "test_staff", RoleEnum.STAFF)


@pytest.fixture()
def admin_token(admin_user: User) -> str:
    return create_access_token(subject=str(admin_user.id))


@pytest.fixture()
def manager_token(manager_user: User) -> str:
    return create_access_token(subject=str(manager_user.id))


@pytest.fixture()
def staff_token(staff_user: User) -> str:
    return create_access_token(subject=str(staff_user.id))


def auth(token: str) -> dict[str, str]:
    """Return Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


# ─── Parties & stock ────────────────────────────────────────────────────────


@pytest.fixture()
def customer(db: Session, company: Company) -> Customer:
    c = Customer(company_id=company.id, name="Alice Homeowner", email="alice@test.com")
    db.add(c)
    db.flush()
    return c


@pytest.fixture()
def technician(db: Session, company: Company) -> Staff:
    s = Staff(company_id=company.id, name="Bob Technician", hourly_rate=Decimal("30.0000"))
    db.add(s)
    db.flush()
    return s


@pytest.fixture()
def item_a(db: Session, company: Company) -> StockItem:
    s = StockItem(
        company_id=company.id,
        name="Copper Pipe",
        purchase_price=Decimal("10.0000"),
        stock_quantity=Decimal("50"),
        reorder_level=Decimal("5"),
    )
    db.add(s)
    db.flush()
    return s


@pytest.fixture()
def item_b(db: Session, company: Company) -> StockItem:
    s = StockItem(
        company_id=company.id,
        name="Valve",
        purchase_price=Decimal("5.0000"),
        stock_quantity=Decimal("2"),
        reorder_level=Decimal("3"),
    )
    db.add(s)
    db.flush()
    return s


# ─── Record builders ────────────────────────────────────────────────────────


def make_work_order(
    db: Session,
    company: Company,
    created_at: datetime,
    *,
    status: WorkOrderStatus = WorkOrderStatus.COMPLETED,
    customer: Customer | None = None,
    staff: Staff | None = None,
    usage: list[tuple[StockItem, Decimal]] | None = None,
    **extra: object,
) -> WorkOrder:
    wo = WorkOrder(
        company_id=company.id,
        status=status,
        customer_id=customer.id if customer else None,
        staff_id=staff.id if staff else None,
        created_at=created_at,
        **extra,
    )
    for position, (item, quantity) in enumerate(usage or []):
        wo.stock_usage.append(
            WorkOrderStockUsage(stock_item_id=item.id, quantity=quantity, position=position)
        )
    db.add(wo)
    db.flush()
    return wo


def make_invoice(
    db: Session,
    company: Company,
    number: str,
    total: Decimal,
    *,
    work_order: WorkOrder | None = None,
    customer: Customer | None = None,
    status: InvoiceStatus = InvoiceStatus.PAID,
    balance_due: Decimal = Decimal("0"),
    due_date: datetime | None = None,
    created_at: datetime | None = None,
) -> Invoice:
    inv = Invoice(
        company_id=company.id,
        work_order_id=work_order.id if work_order else None,
        customer_id=customer.id if customer else None,
        invoice_number=number,
        total=total,
        balance_due=balance_due,
        status=status,
        due_date=due_date,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(inv)
    db.flush()
    return inv
