from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldbooks.app.core.database import Base


class WorkOrderStatus(str, enum.Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    INVOICED = "Invoiced"
    CANCELLED = "Cancelled"


class WorkOrder(Base):
    """A unit of billable field work (a "job")."""

    __tablename__ = "work_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )
    staff_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("staff.id"), nullable=True
    )
    status: Mapped[WorkOrderStatus] = mapped_column(
        Enum(WorkOrderStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=WorkOrderStatus.SCHEDULED,
    )
    service_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    scheduled_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # HH:MM
    address_street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    customer: Mapped["Customer | None"] = relationship()  # noqa: F821
    staff: Mapped["Staff | None"] = relationship()  # noqa: F821
    stock_usage: Mapped[list[WorkOrderStockUsage]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderStockUsage.position",
    )

    __table_args__ = (
        Index("ix_work_orders_company_status_created", "company_id", "status", "created_at"),
        Index("ix_work_orders_scheduled_date", "scheduled_date"),
    )


class WorkOrderStockUsage(Base):
    """One material line consumed on a work order."""

    __tablename__ = "work_order_stock_usage"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    work_order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("work_orders.id"), nullable=False
    )
    stock_item_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stock_items.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    work_order: Mapped[WorkOrder] = relationship(back_populates="stock_usage")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_usage_quantity_non_negative"),
        Index("ix_stock_usage_work_order", "work_order_id"),
    )
