"""Create the schema and seed a demo company with an admin user.

Usage:
    python -m fieldbooks.scripts.seed
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from fieldbooks.app.core.database import Base, SessionLocal, engine
from fieldbooks.app.core.security import create_access_token
from fieldbooks.app.models.registry import (
    Company,
    Customer,
    Invoice,
    InvoiceStatus,
    Lead,
    RoleEnum,
    Staff,
    StockItem,
    User,
    WorkOrder,
    WorkOrderStatus,
    WorkOrderStockUsage,
)

DEMO_COMPANY = "Demo Field Services"
ADMIN_USERNAME = "admin"


def seed(db: Session) -> User:
    """Insert demo records unless the admin user already exists. Returns the admin."""
    existing = db.query(User).filter(User.username == ADMIN_USERNAME).first()
    if existing:
        return existing

    company = Company(name=DEMO_COMPANY)
    db.add(company)
    db.flush()

    admin = User(company_id=company.id, username=ADMIN_USERNAME, role=RoleEnum.ADMIN)
    customer = Customer(company_id=company.id, name="Jane Homeowner", email="jane@example.com")
    tech = Staff(company_id=company.id, name="Sam Technician", hourly_rate=Decimal("35.0000"))
    filter_item = StockItem(
        company_id=company.id,
        name="HVAC Filter",
        purchase_price=Decimal("12.5000"),
        stock_quantity=Decimal("4"),
        reorder_level=Decimal("10"),
    )
    db.add_all([admin, customer, tech, filter_item])
    db.add(Lead(company_id=company.id, name="Walk-in enquiry", source="Website"))
    db.flush()

    now = datetime.now(timezone.utc)
    wo = WorkOrder(
        company_id=company.id,
        customer_id=customer.id,
        staff_id=tech.id,
        status=WorkOrderStatus.COMPLETED,
        service_type="Maintenance",
        scheduled_date=date.today(),
        scheduled_time="09:00",
        created_at=now,
    )
    wo.stock_usage.append(
        WorkOrderStockUsage(stock_item_id=filter_item.id, quantity=Decimal("2"), position=0)
    )
    db.add(wo)
    db.flush()

    db.add(Invoice(
        company_id=company.id,
        work_order_id=wo.id,
        customer_id=customer.id,
        invoice_number="INV-0001",
        total=Decimal("180.0000"),
        balance_due=Decimal("180.0000"),
        status=InvoiceStatus.SENT,
        due_date=now + timedelta(days=30),
    ))
    db.flush()
    return admin


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = seed(db)
        db.commit()
        print(f"Seeded company for user '{admin.username}'.")
        print(f"Access token: {create_access_token(subject=str(admin.id))}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
