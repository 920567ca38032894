"""Pydantic response schemas for the dashboard API.

Fields are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Financials ───────────────────────────────────────────────────────────────

class OverdueInvoiceOut(CamelModel):
    invoice_id: str
    invoice_number: str
    customer_name: str
    due_date: str | None
    balance_due: str


class MonthlyRevenueOut(CamelModel):
    month: str
    revenue: str
    cogs: str
    profit: str


class StaffPerformanceOut(CamelModel):
    staff_id: str
    staff_name: str | None
    total_revenue: str


class CustomerPerformanceOut(CamelModel):
    customer_id: str
    customer_name: str | None
    total_revenue: str


class StockUsageCostOut(CamelModel):
    stock_id: str
    stock_name: str | None
    quantity_used: str
    total_cost: str


class FinancialSummaryResponse(CamelModel):
    total_revenue: str
    total_cogs: str = Field(alias="totalCOGS")
    gross_profit: str
    profit_margin: str
    outstanding_balance: str
    overdue_balance: str
    overdue_invoices: list[OverdueInvoiceOut]
    revenue_by_month: list[MonthlyRevenueOut]
    staff_performance: list[StaffPerformanceOut]
    customer_performance: list[CustomerPerformanceOut]
    stock_usage_costs: list[StockUsageCostOut]


# ── Operational widgets ─────────────────────────────────────────────────────

class SummaryStatsResponse(CamelModel):
    total_customers: int
    total_leads: int
    total_revenue: str
    total_completed_jobs: int
    low_stock_items_count: int


class JobAddress(CamelModel):
    street: str | None
    city: str | None


class JobTodayOut(CamelModel):
    id: str
    customer_name: str
    type: str | None
    time: str | None
    status: str
    address: JobAddress


class JobsOverviewResponse(CamelModel):
    total_jobs_today: int
    upcoming_jobs_count: int
    jobs_today: list[JobTodayOut]


class RecentJobOut(CamelModel):
    id: str
    type: str | None
    customer: str
    date: str | None


class RecentInvoiceOut(CamelModel):
    id: str
    number: str
    amount: str
    customer: str


class RecentLeadOut(CamelModel):
    id: str
    name: str
    source: str | None


class RecentActivityResponse(CamelModel):
    jobs: list[RecentJobOut]
    invoices: list[RecentInvoiceOut]
    leads: list[RecentLeadOut]
