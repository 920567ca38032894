"""Service layer for the operational dashboard widgets."""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from fieldbooks.app.core.config import settings
from fieldbooks.app.models.customer import Customer, Lead
from fieldbooks.app.models.inventory import StockItem
from fieldbooks.app.models.invoice import Invoice, InvoiceStatus
from fieldbooks.app.models.work_order import WorkOrder, WorkOrderStatus

ZERO = Decimal("0")
UNKNOWN_CUSTOMER_NAME = "N/A"

REALISED_INVOICE_STATUSES = (InvoiceStatus.PAID, InvoiceStatus.COMPLETED)
UPCOMING_WORK_ORDER_STATUSES = (WorkOrderStatus.SCHEDULED, WorkOrderStatus.IN_PROGRESS)


def _customer_name(customer: Customer | None) -> str:
    return customer.name if customer else UNKNOWN_CUSTOMER_NAME


# ── Summary stats ───────────────────────────────────────────────────────────


def get_summary_stats(db: Session, company_id: UUID) -> dict[str, object]:
    total_customers = (
        db.query(func.count(Customer.id)).filter(Customer.company_id == company_id).scalar()
    ) or 0
    total_leads = (
        db.query(func.count(Lead.id)).filter(Lead.company_id == company_id).scalar()
    ) or 0
    total_completed = (
        db.query(func.count(WorkOrder.id))
        .filter(
            WorkOrder.company_id == company_id,
            WorkOrder.status == WorkOrderStatus.COMPLETED,
        )
        .scalar()
    ) or 0
    total_revenue = Decimal(str(
        db.query(func.coalesce(func.sum(Invoice.total), 0))
        .filter(
            Invoice.company_id == company_id,
            Invoice.status.in_(REALISED_INVOICE_STATUSES),
        )
        .scalar()
    ))
    low_stock_count = (
        db.query(func.count(StockItem.id))
        .filter(
            StockItem.company_id == company_id,
            StockItem.stock_quantity < StockItem.reorder_level,
        )
        .scalar()
    ) or 0

    return {
        "total_customers": total_customers,
        "total_leads": total_leads,
        "total_revenue": str(total_revenue),
        "total_completed_jobs": total_completed,
        "low_stock_items_count": low_stock_count,
    }


# ── Jobs overview ───────────────────────────────────────────────────────────


def get_jobs_overview(db: Session, company_id: UUID, day: date) -> dict[str, object]:
    """Work orders scheduled on *day* plus the count of later open ones."""
    jobs_today = (
        db.query(WorkOrder)
        .options(joinedload(WorkOrder.customer))
        .filter(
            WorkOrder.company_id == company_id,
            WorkOrder.scheduled_date == day,
            WorkOrder.status != WorkOrderStatus.CANCELLED,
        )
        .order_by(WorkOrder.scheduled_time, WorkOrder.id)
        .all()
    )
    upcoming_count = (
        db.query(func.count(WorkOrder.id))
        .filter(
            WorkOrder.company_id == company_id,
            WorkOrder.scheduled_date > day,
            WorkOrder.status.in_(UPCOMING_WORK_ORDER_STATUSES),
        )
        .scalar()
    ) or 0

    return {
        "total_jobs_today": len(jobs_today),
        "upcoming_jobs_count": upcoming_count,
        "jobs_today": [
            {
                "id": str(wo.id),
                "customer_name": _customer_name(wo.customer),
                "type": wo.service_type,
                "time": wo.scheduled_time,
                "status": wo.status.value,
                "address": {"street": wo.address_street, "city": wo.address_city},
            }
            for wo in jobs_today
        ],
    }


# ── Jobs by status ──────────────────────────────────────────────────────────


def get_jobs_by_status(db: Session, company_id: UUID) -> dict[str, int]:
    rows = (
        db.query(WorkOrder.status, func.count(WorkOrder.id).label("count"))
        .filter(WorkOrder.company_id == company_id)
        .group_by(WorkOrder.status)
        .all()
    )
    return {r.status.value: r.count for r in sorted(rows, key=lambda r: r.status.value)}


# ── Recent activity ─────────────────────────────────────────────────────────


def get_recent_activity(
    db: Session, company_id: UUID, limit: int | None = None,
) -> dict[str, list[dict[str, object]]]:
    limit = settings.RECENT_ACTIVITY_LIMIT if limit is None else limit

    latest_jobs = (
        db.query(WorkOrder)
        .options(joinedload(WorkOrder.customer))
        .filter(WorkOrder.company_id == company_id)
        .order_by(WorkOrder.created_at.desc(), WorkOrder.id)
        .limit(limit)
        .all()
    )
    latest_invoices = (
        db.query(Invoice)
        .options(joinedload(Invoice.customer))
        .filter(Invoice.company_id == company_id)
        .order_by(Invoice.created_at.desc(), Invoice.id)
        .limit(limit)
        .all()
    )
    new_leads = (
        db.query(Lead)
        .filter(Lead.company_id == company_id)
        .order_by(Lead.created_at.desc(), Lead.id)
        .limit(limit)
        .all()
    )

    return {
        "jobs": [
            {
                "id": str(wo.id),
                "type": wo.service_type,
                "customer": _customer_name(wo.customer),
                "date": wo.scheduled_date.isoformat() if wo.scheduled_date else None,
            }
            for wo in latest_jobs
        ],
        "invoices": [
            {
                "id": str(inv.id),
                "number": inv.invoice_number,
                "amount": str(inv.total),
                "customer": _customer_name(inv.customer),
            }
            for inv in latest_invoices
        ],
        "leads": [
            {"id": str(lead.id), "name": lead.name, "source": lead.source}
            for lead in new_leads
        ],
    }
