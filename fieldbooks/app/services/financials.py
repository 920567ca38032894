"""Financial rollup for the dashboard.

Turns completed work orders, their invoices, staff/customer identities and
material usage into one summary for a date range::

    work orders ──► join_and_flatten ──► filter_by_stock_item ──► accumulate
                                                                   │
    invoices (company-wide) ──► aggregate_receivables              ▼
                                        │              complete_monthly_buckets
                                        └──────► assemble_summary ◄┘

Flattening emits one row per material line, so the invoice total of an order
with N lines appears on N rows. Revenue is therefore summed over
``dedupe_by_work_order(rows)`` (one row per order) while material cost is summed
over every row.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Generic, TypeVar
from uuid import UUID

from fieldbooks.app.core.config import settings
from fieldbooks.app.models.invoice import InvoiceStatus
from fieldbooks.app.models.work_order import WorkOrderStatus
from fieldbooks.app.services.errors import (
    DataIntegrityViolation,
    InvalidDateFormat,
    InvalidDateRange,
    InvalidFilterReference,
    MissingDateRange,
    UnknownFilterReference,
)
from fieldbooks.app.services.record_store import (
    InvoiceRecord,
    PartyRecord,
    RecordStore,
    StockItemRecord,
    WorkOrderRecord,
    as_utc,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PCT = Decimal("0.01")

REVENUE_WORK_ORDER_STATUSES = (
    WorkOrderStatus.COMPLETED.value,
    WorkOrderStatus.INVOICED.value,
)
OUTSTANDING_INVOICE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
)
OVERDUE_INVOICE_STATUSES = (InvoiceStatus.OVERDUE.value,)
UNKNOWN_CUSTOMER_NAME = "N/A"

K = TypeVar("K")


# ── Query ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FinancialQuery:
    company_id: UUID
    start_date: date
    end_date: date
    staff_id: UUID | None = None
    customer_id: UUID | None = None
    stock_id: UUID | None = None


def add_months(d: date, months: int) -> date:
    """Shift a first-of-month date by *months* calendar months."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def suggested_default_range(
    today: date | None = None, months: int | None = None,
) -> tuple[date, date]:
    """Window offered to callers that omit the date range.

    Ends today and starts on the first day of the month ``months - 1`` months
    back, so it spans ``months`` calendar months.
    """
    today = today or date.today()
    months = months or settings.FINANCIALS_DEFAULT_WINDOW_MONTHS
    return add_months(today.replace(day=1), -(months - 1)), today


def _parse_date(field: str, value: object) -> date:
    """ISO date, or an ISO timestamp reduced to its UTC day."""
    if isinstance(value, datetime):
        return as_utc(value).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return as_utc(datetime.fromisoformat(text)).date()
    except ValueError:
        raise InvalidDateFormat(field, value) from None


def _parse_id(field: str, value: object) -> UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidFilterReference(field, value) from None


def parse_financial_query(
    company_id: UUID,
    start_date: str | date | None,
    end_date: str | date | None,
    staff_id: str | UUID | None = None,
    customer_id: str | UUID | None = None,
    stock_id: str | UUID | None = None,
    today: date | None = None,
) -> FinancialQuery:
    """Validate raw request parameters.

    A missing bound is rejected with a suggested window rather than defaulted.
    """
    if not start_date or not end_date:
        raise MissingDateRange(*suggested_default_range(today))

    start = _parse_date("startDate", start_date)
    end = _parse_date("endDate", end_date)
    if start > end:
        raise InvalidDateRange(start, end)

    return FinancialQuery(
        company_id=company_id,
        start_date=start,
        end_date=end,
        staff_id=_parse_id("staffId", staff_id),
        customer_id=_parse_id("customerId", customer_id),
        stock_id=_parse_id("stockId", stock_id),
    )


# ── Join and flatten ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class JoinedRow:
    work_order_id: UUID
    month: str
    invoice_total: Decimal = ZERO
    staff_id: UUID | None = None
    staff_name: str | None = None
    customer_id: UUID | None = None
    customer_name: str | None = None
    stock_item_id: UUID | None = None
    stock_name: str | None = None
    quantity: Decimal = ZERO
    line_cost: Decimal = ZERO


def index_invoices_by_work_order(
    invoices: Iterable[InvoiceRecord],
) -> dict[UUID, InvoiceRecord]:
    """Map work order id → its invoice, refusing orders with several invoices."""
    grouped: dict[UUID, list[InvoiceRecord]] = {}
    for inv in invoices:
        if inv.work_order_id is not None:
            grouped.setdefault(inv.work_order_id, []).append(inv)

    indexed: dict[UUID, InvoiceRecord] = {}
    for wo_id, matches in grouped.items():
        if len(matches) > 1:
            raise DataIntegrityViolation(wo_id, sorted((m.id for m in matches), key=str))
        indexed[wo_id] = matches[0]
    return indexed


def join_and_flatten(
    work_orders: Iterable[WorkOrderRecord],
    invoices: Mapping[UUID, InvoiceRecord],
    staff: Mapping[UUID, PartyRecord],
    customers: Mapping[UUID, PartyRecord],
    stock_items: Mapping[UUID, StockItemRecord],
) -> list[JoinedRow]:
    """One row per material line; orders without material still yield one row."""
    rows: list[JoinedRow] = []
    for wo in work_orders:
        invoice = invoices.get(wo.id)
        staff_member = staff.get(wo.staff_id) if wo.staff_id else None
        customer = customers.get(wo.customer_id) if wo.customer_id else None
        base = {
            "work_order_id": wo.id,
            "month": as_utc(wo.created_at).strftime("%Y-%m"),
            "invoice_total": invoice.total if invoice else ZERO,
            "staff_id": staff_member.id if staff_member else None,
            "staff_name": staff_member.name if staff_member else None,
            "customer_id": customer.id if customer else None,
            "customer_name": customer.name if customer else None,
        }

        if not wo.stock_usage:
            rows.append(JoinedRow(**base))
            continue

        for usage in wo.stock_usage:
            item = stock_items.get(usage.stock_item_id)
            if item is None:
                logger.warning(
                    "Work order %s uses unknown stock item %s; costing it at zero",
                    wo.id, usage.stock_item_id,
                )
                rows.append(JoinedRow(**base, quantity=usage.quantity))
                continue
            rows.append(JoinedRow(
                **base,
                stock_item_id=item.id,
                stock_name=item.name,
                quantity=usage.quantity,
                line_cost=usage.quantity * item.unit_price,
            ))
    return rows


def filter_by_stock_item(rows: Iterable[JoinedRow], stock_id: UUID) -> list[JoinedRow]:
    """Keep only lines of *stock_id*.

    Applied after flattening, so it also drops the revenue of any order left
    without a surviving line.
    """
    return [r for r in rows if r.stock_item_id == stock_id]


def dedupe_by_work_order(rows: Iterable[JoinedRow]) -> list[JoinedRow]:
    """First row of each work order; the projection revenue is summed over."""
    seen: set[UUID] = set()
    unique: list[JoinedRow] = []
    for row in rows:
        if row.work_order_id not in seen:
            seen.add(row.work_order_id)
            unique.append(row)
    return unique


# ── Grouped accumulation ─────────────────────────────────────────────────────


class GroupAccumulator(Generic[K]):
    """Keyed running sums.

    ``upsert`` inserts a zeroed record carrying *labels* the first time a key is
    seen, then adds the numeric deltas. Labels of an existing record are never
    overwritten.
    """

    def __init__(self, *fields: str) -> None:
        self.fields = fields
        self._groups: dict[K, dict[str, object]] = {}

    def upsert(
        self,
        key: K,
        labels: Mapping[str, object] | None = None,
        **deltas: Decimal,
    ) -> dict[str, object]:
        group = self._groups.get(key)
        if group is None:
            group = dict(labels or {})
            group.update({f: ZERO for f in self.fields})
            self._groups[key] = group
        for name, amount in deltas.items():
            if name not in self.fields:
                raise KeyError(f"Unknown accumulator field: {name}")
            group[name] += amount  # type: ignore[operator]
        return group

    def get(self, key: K) -> dict[str, object] | None:
        return self._groups.get(key)

    def items(self) -> Iterator[tuple[K, dict[str, object]]]:
        return iter(self._groups.items())

    def __contains__(self, key: object) -> bool:
        return key in self._groups

    def __len__(self) -> int:
        return len(self._groups)


@dataclass
class Rollup:
    total_revenue: Decimal
    total_cogs: Decimal
    by_month: GroupAccumulator[str]
    by_staff: GroupAccumulator[UUID]
    by_customer: GroupAccumulator[UUID]
    by_stock: GroupAccumulator[UUID]


def accumulate(rows: list[JoinedRow]) -> Rollup:
    by_month: GroupAccumulator[str] = GroupAccumulator("revenue", "cogs")
    by_staff: GroupAccumulator[UUID] = GroupAccumulator("total_revenue")
    by_customer: GroupAccumulator[UUID] = GroupAccumulator("total_revenue")
    by_stock: GroupAccumulator[UUID] = GroupAccumulator("quantity_used", "total_cost")

    total_revenue = ZERO
    for row in dedupe_by_work_order(rows):
        total_revenue += row.invoice_total
        by_month.upsert(row.month, revenue=row.invoice_total)
        if row.staff_id is not None:
            by_staff.upsert(
                row.staff_id, {"staff_name": row.staff_name},
                total_revenue=row.invoice_total,
            )
        if row.customer_id is not None:
            by_customer.upsert(
                row.customer_id, {"customer_name": row.customer_name},
                total_revenue=row.invoice_total,
            )

    total_cogs = ZERO
    for row in rows:
        total_cogs += row.line_cost
        by_month.upsert(row.month, cogs=row.line_cost)
        if row.stock_item_id is not None:
            by_stock.upsert(
                row.stock_item_id, {"stock_name": row.stock_name},
                quantity_used=row.quantity,
                total_cost=row.line_cost,
            )

    return Rollup(
        total_revenue=total_revenue,
        total_cogs=total_cogs,
        by_month=by_month,
        by_staff=by_staff,
        by_customer=by_customer,
        by_stock=by_stock,
    )


# ── Bucket completion ────────────────────────────────────────────────────────


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def month_keys(start: date, end: date) -> list[str]:
    """``YYYY-MM`` for every month whose first day lies in [floor(start), end]."""
    current = start.replace(day=1)
    keys: list[str] = []
    while current <= end:
        keys.append(current.strftime("%Y-%m"))
        current = add_months(current, 1)
    return keys


def complete_monthly_buckets(
    by_month: GroupAccumulator[str], start: date, end: date,
) -> list[dict[str, str]]:
    """One entry per month of [floor(start), end]; keys outside it are dropped."""
    result: list[dict[str, str]] = []
    for month in month_keys(start, end):
        sums = by_month.upsert(month)
        revenue = sums["revenue"]
        cogs = sums["cogs"]
        result.append({
            "month": month,
            "revenue": str(revenue),
            "cogs": str(cogs),
            "profit": str(revenue - cogs),  # type: ignore[operator]
        })
    return result


# ── Outstanding / overdue ────────────────────────────────────────────────────


def aggregate_receivables(
    store: RecordStore, company_id: UUID, top_n: int | None = None,
) -> dict[str, object]:
    """Company-wide receivables; ignores the date range and row filters."""
    top_n = settings.OVERDUE_TOP_N if top_n is None else top_n

    outstanding = sum(
        (
            inv.balance_due
            for inv in store.invoices_by_status(company_id, OUTSTANDING_INVOICE_STATUSES)
            if inv.balance_due > ZERO
        ),
        ZERO,
    )

    overdue = [
        inv
        for inv in store.invoices_by_status(company_id, OVERDUE_INVOICE_STATUSES)
        if inv.balance_due > ZERO
    ]
    overdue_total = sum((inv.balance_due for inv in overdue), ZERO)

    top = sorted(
        overdue, key=lambda inv: (-inv.balance_due, inv.invoice_number, str(inv.id)),
    )[:top_n]
    names = store.customers(
        company_id, {inv.customer_id for inv in top if inv.customer_id is not None},
    )

    overdue_invoices = []
    for inv in top:
        customer = names.get(inv.customer_id) if inv.customer_id else None
        overdue_invoices.append({
            "invoice_id": str(inv.id),
            "invoice_number": inv.invoice_number,
            "customer_name": customer.name if customer else UNKNOWN_CUSTOMER_NAME,
            "due_date": inv.due_date.isoformat() if inv.due_date else None,
            "balance_due": str(inv.balance_due),
        })

    return {
        "outstanding_balance": str(outstanding),
        "overdue_balance": str(overdue_total),
        "overdue_invoices": overdue_invoices,
    }


# ── Assembly ─────────────────────────────────────────────────────────────────


def profit_margin(total_revenue: Decimal, gross_profit: Decimal) -> Decimal:
    if total_revenue == ZERO:
        return ZERO
    return (gross_profit / total_revenue * HUNDRED).quantize(PCT, rounding=ROUND_HALF_UP)


def _ranked(
    groups: GroupAccumulator[UUID], metric: str, label: str,
) -> list[tuple[UUID, dict[str, object]]]:
    return sorted(
        groups.items(),
        key=lambda kv: (-kv[1][metric], kv[1][label] or "", str(kv[0])),  # type: ignore[operator]
    )


def assemble_summary(
    rollup: Rollup,
    revenue_by_month: list[dict[str, str]],
    receivables: Mapping[str, object],
) -> dict[str, object]:
    gross_profit = rollup.total_revenue - rollup.total_cogs
    return {
        "total_revenue": str(rollup.total_revenue),
        "total_cogs": str(rollup.total_cogs),
        "gross_profit": str(gross_profit),
        "profit_margin": str(profit_margin(rollup.total_revenue, gross_profit)),
        "outstanding_balance": receivables["outstanding_balance"],
        "overdue_balance": receivables["overdue_balance"],
        "overdue_invoices": receivables["overdue_invoices"],
        "revenue_by_month": revenue_by_month,
        "staff_performance": [
            {
                "staff_id": str(key),
                "staff_name": sums["staff_name"],
                "total_revenue": str(sums["total_revenue"]),
            }
            for key, sums in _ranked(rollup.by_staff, "total_revenue", "staff_name")
        ],
        "customer_performance": [
            {
                "customer_id": str(key),
                "customer_name": sums["customer_name"],
                "total_revenue": str(sums["total_revenue"]),
            }
            for key, sums in _ranked(rollup.by_customer, "total_revenue", "customer_name")
        ],
        "stock_usage_costs": [
            {
                "stock_id": str(key),
                "stock_name": sums["stock_name"],
                "quantity_used": str(sums["quantity_used"]),
                "total_cost": str(sums["total_cost"]),
            }
            for key, sums in _ranked(rollup.by_stock, "total_cost", "stock_name")
        ],
    }


def _log_unknown_filters(store: RecordStore, query: FinancialQuery) -> None:
    checks = (
        ("staffId", query.staff_id, store.staff),
        ("customerId", query.customer_id, store.customers),
        ("stockId", query.stock_id, store.stock_items),
    )
    for field, value, lookup in checks:
        if value is not None and not lookup(query.company_id, [value]):
            logger.warning(
                "%s; treating it as matching no rows",
                UnknownFilterReference(field, value),
            )


def get_financial_summary(store: RecordStore, query: FinancialQuery) -> dict[str, object]:
    """Compute the dashboard financial summary. All-or-nothing."""
    logger.info(
        "Financial summary for company %s from %s to %s (staff=%s customer=%s stock=%s)",
        query.company_id, query.start_date, query.end_date,
        query.staff_id, query.customer_id, query.stock_id,
    )
    _log_unknown_filters(store, query)

    work_orders = store.work_orders(
        query.company_id,
        REVENUE_WORK_ORDER_STATUSES,
        query.start_date,
        query.end_date,
        staff_id=query.staff_id,
        customer_id=query.customer_id,
    )
    invoices = index_invoices_by_work_order(
        store.invoices_for_work_orders([wo.id for wo in work_orders])
    )
    staff = store.staff(
        query.company_id, {wo.staff_id for wo in work_orders if wo.staff_id},
    )
    customers = store.customers(
        query.company_id, {wo.customer_id for wo in work_orders if wo.customer_id},
    )
    stock_items = store.stock_items(
        query.company_id,
        {u.stock_item_id for wo in work_orders for u in wo.stock_usage},
    )

    rows = join_and_flatten(work_orders, invoices, staff, customers, stock_items)
    if query.stock_id is not None:
        rows = filter_by_stock_item(rows, query.stock_id)

    rollup = accumulate(rows)
    revenue_by_month = complete_monthly_buckets(
        rollup.by_month, query.start_date, query.end_date,
    )
    receivables = aggregate_receivables(store, query.company_id)

    return assemble_summary(rollup, revenue_by_month, receivables)
