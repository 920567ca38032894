"""Typed errors raised by the financial rollup.

Every error carries a machine-readable ``code`` and a human-readable message so
the API layer can translate it without parsing strings. ``retryable`` tells the
caller whether repeating the identical request may succeed.
"""
from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID


class FinancialReportError(Exception):
    code = "FINANCIAL_REPORT_ERROR"
    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class MissingDateRange(FinancialReportError):
    """Caller omitted start and/or end date. Carries a suggested window."""

    code = "MISSING_DATE_RANGE"

    def __init__(self, default_start: date, default_end: date) -> None:
        self.default_start = default_start
        self.default_end = default_end
        super().__init__(
            "startDate and endDate are required parameters for this "
            "financial report. Please provide them."
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["default_start"] = self.default_start.isoformat()
        data["default_end"] = self.default_end.isoformat()
        return data


class InvalidDateFormat(FinancialReportError):
    code = "INVALID_DATE_FORMAT"

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}")


class InvalidDateRange(FinancialReportError):
    code = "INVALID_DATE_RANGE"

    def __init__(self, start: date, end: date) -> None:
        self.start = start
        self.end = end
        super().__init__(
            f"startDate {start.isoformat()} is after endDate {end.isoformat()}"
        )


class InvalidFilterReference(FinancialReportError):
    """A filter id is not a well-formed identifier."""

    code = "INVALID_FILTER_REFERENCE"

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} is not a valid identifier: {value!r}")


class UnknownFilterReference(FinancialReportError):
    """A well-formed filter id matches no record.

    Never surfaced to the caller as a failure: the rollup logs it and treats
    the filter as matching no rows.
    """

    code = "UNKNOWN_FILTER_REFERENCE"

    def __init__(self, field: str, value: UUID) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} {value} does not match any record")


class StoreUnavailable(FinancialReportError):
    """The record store failed or timed out. The rollup does not retry."""

    code = "STORE_UNAVAILABLE"
    retryable = True


class DataIntegrityViolation(FinancialReportError):
    """More than one invoice references the same work order."""

    code = "DATA_INTEGRITY_VIOLATION"

    def __init__(self, work_order_id: UUID, invoice_ids: list[UUID]) -> None:
        self.work_order_id = work_order_id
        self.invoice_ids = invoice_ids
        super().__init__(
            f"Work order {work_order_id} is referenced by "
            f"{len(invoice_ids)} invoices; expected at most one"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["work_order_id"] = str(self.work_order_id)
        data["invoice_ids"] = [str(i) for i in self.invoice_ids]
        return data
