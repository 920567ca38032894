"""Read-only access to the records the financial rollup consumes.

The rollup never touches the ORM directly. It asks a ``RecordStore`` for plain
snapshot records, so the same aggregation code runs against the database
(``SqlRecordStore``) or against an in-memory snapshot (``SnapshotRecordStore``).
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, selectinload

from fieldbooks.app.models.customer import Customer
from fieldbooks.app.models.inventory import StockItem
from fieldbooks.app.models.invoice import Invoice, InvoiceStatus
from fieldbooks.app.models.staff import Staff
from fieldbooks.app.models.work_order import WorkOrder, WorkOrderStatus
from fieldbooks.app.services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ── Snapshot records ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StockUsage:
    stock_item_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class WorkOrderRecord:
    id: UUID
    company_id: UUID
    status: str
    created_at: datetime
    staff_id: UUID | None = None
    customer_id: UUID | None = None
    stock_usage: tuple[StockUsage, ...] = ()


@dataclass(frozen=True)
class InvoiceRecord:
    id: UUID
    company_id: UUID
    invoice_number: str
    total: Decimal
    balance_due: Decimal
    status: str
    work_order_id: UUID | None = None
    customer_id: UUID | None = None
    due_date: datetime | None = None


@dataclass(frozen=True)
class PartyRecord:
    """Display identity of a customer or staff member."""

    id: UUID
    company_id: UUID
    name: str


@dataclass(frozen=True)
class StockItemRecord:
    id: UUID
    company_id: UUID
    name: str
    unit_price: Decimal


class RecordStore(Protocol):
    def work_orders(
        self,
        company_id: UUID,
        statuses: Iterable[str],
        start: date,
        end: date,
        staff_id: UUID | None = None,
        customer_id: UUID | None = None,
    ) -> list[WorkOrderRecord]: ...

    def invoices_for_work_orders(self, work_order_ids: Iterable[UUID]) -> list[InvoiceRecord]: ...

    def invoices_by_status(
        self, company_id: UUID, statuses: Iterable[str],
    ) -> list[InvoiceRecord]: ...

    def customers(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, PartyRecord]: ...

    def staff(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, PartyRecord]: ...

    def stock_items(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, StockItemRecord]: ...


# ── Helpers ──────────────────────────────────────────────────────────────────


def _to_dt(d: date) -> datetime:
    """Convert a date to start-of-day UTC datetime."""
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Normalize a timestamp to UTC. Naive values are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _dec(value: object) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


def _status_value(status: object) -> str:
    return status.value if isinstance(status, (WorkOrderStatus, InvoiceStatus)) else str(status)


@contextmanager
def _store_call(operation: str) -> Iterator[None]:
    """Translate driver/pool failures into ``StoreUnavailable``."""
    try:
        yield
    except (DBAPIError, PoolTimeoutError) as exc:
        logger.error("Record store read failed during %s: %s", operation, exc)
        raise StoreUnavailable(f"Record store unavailable while reading {operation}") from exc


# ── SQLAlchemy-backed store ─────────────────────────────────────────────────


class SqlRecordStore:
    """Reads snapshot records through one SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def work_orders(
        self,
        company_id: UUID,
        statuses: Iterable[str],
        start: date,
        end: date,
        staff_id: UUID | None = None,
        customer_id: UUID | None = None,
    ) -> list[WorkOrderRecord]:
        query = (
            self.db.query(WorkOrder)
            .options(selectinload(WorkOrder.stock_usage))
            .filter(
                WorkOrder.company_id == company_id,
                WorkOrder.status.in_([WorkOrderStatus(s) for s in statuses]),
                WorkOrder.created_at >= _to_dt(start),
                WorkOrder.created_at < _to_dt(end + timedelta(days=1)),
            )
        )
        if staff_id:
            query = query.filter(WorkOrder.staff_id == staff_id)
        if customer_id:
            query = query.filter(WorkOrder.customer_id == customer_id)

        with _store_call("work orders"):
            rows = query.order_by(WorkOrder.created_at, WorkOrder.id).all()
            return [
                WorkOrderRecord(
                    id=wo.id,
                    company_id=wo.company_id,
                    status=_status_value(wo.status),
                    created_at=as_utc(wo.created_at),
                    staff_id=wo.staff_id,
                    customer_id=wo.customer_id,
                    stock_usage=tuple(
                        StockUsage(stock_item_id=u.stock_item_id, quantity=_dec(u.quantity))
                        for u in wo.stock_usage
                    ),
                )
                for wo in rows
            ]

    def invoices_for_work_orders(self, work_order_ids: Iterable[UUID]) -> list[InvoiceRecord]:
        ids = list(work_order_ids)
        if not ids:
            return []
        with _store_call("invoices by work order"):
            rows = (
                self.db.query(Invoice)
                .filter(Invoice.work_order_id.in_(ids))
                .order_by(Invoice.id)
                .all()
            )
            return [self._invoice_record(inv) for inv in rows]

    def invoices_by_status(
        self, company_id: UUID, statuses: Iterable[str],
    ) -> list[InvoiceRecord]:
        with _store_call("invoices by status"):
            rows = (
                self.db.query(Invoice)
                .filter(
                    Invoice.company_id == company_id,
                    Invoice.status.in_([InvoiceStatus(s) for s in statuses]),
                )
                .order_by(Invoice.id)
                .all()
            )
            return [self._invoice_record(inv) for inv in rows]

    def customers(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, PartyRecord]:
        return self._parties(Customer, company_id, ids, "customers")

    def staff(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, PartyRecord]:
        return self._parties(Staff, company_id, ids, "staff")

    def stock_items(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, StockItemRecord]:
        wanted = set(ids)
        if not wanted:
            return {}
        with _store_call("stock items"):
            rows = (
                self.db.query(StockItem)
                .filter(StockItem.company_id == company_id, StockItem.id.in_(wanted))
                .all()
            )
            return {
                s.id: StockItemRecord(
                    id=s.id,
                    company_id=s.company_id,
                    name=s.name,
                    unit_price=_dec(s.purchase_price),
                )
                for s in rows
            }

    def _parties(
        self,
        model: type[Customer] | type[Staff],
        company_id: UUID,
        ids: Iterable[UUID],
        label: str,
    ) -> dict[UUID, PartyRecord]:
        wanted = set(ids)
        if not wanted:
            return {}
        with _store_call(label):
            rows = (
                self.db.query(model)
                .filter(model.company_id == company_id, model.id.in_(wanted))
                .all()
            )
            return {
                p.id: PartyRecord(id=p.id, company_id=p.company_id, name=p.name)
                for p in rows
            }

    @staticmethod
    def _invoice_record(inv: Invoice) -> InvoiceRecord:
        return InvoiceRecord(
            id=inv.id,
            company_id=inv.company_id,
            invoice_number=inv.invoice_number,
            total=_dec(inv.total),
            balance_due=_dec(inv.balance_due),
            status=_status_value(inv.status),
            work_order_id=inv.work_order_id,
            customer_id=inv.customer_id,
            due_date=inv.due_date,
        )


# ── In-memory snapshot store ────────────────────────────────────────────────


@dataclass
class SnapshotRecordStore:
    """A fixed, already-loaded set of records.

    Applies the same company/status/date/identity filters as ``SqlRecordStore``
    so the rollup sees identical inputs from either store.
    """

    work_order_records: list[WorkOrderRecord] = field(default_factory=list)
    invoice_records: list[InvoiceRecord] = field(default_factory=list)
    customer_records: list[PartyRecord] = field(default_factory=list)
    staff_records: list[PartyRecord] = field(default_factory=list)
    stock_item_records: list[StockItemRecord] = field(default_factory=list)

    def work_orders(
        self,
        company_id: UUID,
        statuses: Iterable[str],
        start: date,
        end: date,
        staff_id: UUID | None = None,
        customer_id: UUID | None = None,
    ) -> list[WorkOrderRecord]:
        wanted = set(statuses)
        return [
            wo
            for wo in self.work_order_records
            if wo.company_id == company_id
            and wo.status in wanted
            and start <= as_utc(wo.created_at).date() <= end
            and (staff_id is None or wo.staff_id == staff_id)
            and (customer_id is None or wo.customer_id == customer_id)
        ]

    def invoices_for_work_orders(self, work_order_ids: Iterable[UUID]) -> list[InvoiceRecord]:
        ids = set(work_order_ids)
        return [inv for inv in self.invoice_records if inv.work_order_id in ids]

    def invoices_by_status(
        self, company_id: UUID, statuses: Iterable[str],
    ) -> list[InvoiceRecord]:
        wanted = set(statuses)
        return [
            inv
            for inv in self.invoice_records
            if inv.company_id == company_id and inv.status in wanted
        ]

    def customers(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, PartyRecord]:
        wanted = set(ids)
        return {
            c.id: c
            for c in self.customer_records
            if c.company_id == company_id and c.id in wanted
        }

    def staff(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, PartyRecord]:
        wanted = set(ids)
        return {
            s.id: s
            for s in self.staff_records
            if s.company_id == company_id and s.id in wanted
        }

    def stock_items(self, company_id: UUID, ids: Iterable[UUID]) -> dict[UUID, StockItemRecord]:
        wanted = set(ids)
        return {
            s.id: s
            for s in self.stock_item_records
            if s.company_id == company_id and s.id in wanted
        }
