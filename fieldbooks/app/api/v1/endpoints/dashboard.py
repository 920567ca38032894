from __future__ import annotations

from datetime import date
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from fieldbooks.app.api.deps import get_current_user, require_roles
from fieldbooks.app.core.database import get_db
from fieldbooks.app.models.user import RoleEnum, User
from fieldbooks.app.schemas.dashboard import (
    FinancialSummaryResponse,
    JobsOverviewResponse,
    RecentActivityResponse,
    SummaryStatsResponse,
)
from fieldbooks.app.services.dashboard import (
    get_jobs_by_status as _get_jobs_by_status,
    get_jobs_overview as _get_jobs_overview,
    get_recent_activity as _get_recent_activity,
    get_summary_stats as _get_summary_stats,
)
from fieldbooks.app.services.errors import (
    DataIntegrityViolation,
    FinancialReportError,
    StoreUnavailable,
)
from fieldbooks.app.services.financials import (
    get_financial_summary as _get_financial_summary,
    parse_financial_query,
)
from fieldbooks.app.services.record_store import SqlRecordStore

router = APIRouter()

STORE_RETRY_AFTER_SECONDS = "30"


def _raise_http(exc: FinancialReportError) -> NoReturn:
    if isinstance(exc, StoreUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=exc.to_dict(),
            headers={"Retry-After": STORE_RETRY_AFTER_SECONDS},
        ) from exc
    if isinstance(exc, DataIntegrityViolation):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_dict()) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict()) from exc


# ── Financials ──────────────────────────────────────────────────────────────


@router.get("/financials", response_model=FinancialSummaryResponse)
def financials(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    staff_id: str | None = Query(None, alias="staffId"),
    customer_id: str | None = Query(None, alias="customerId"),
    stock_id: str | None = Query(None, alias="stockId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(RoleEnum.ADMIN, RoleEnum.MANAGER)),
) -> dict[str, object]:
    try:
        query = parse_financial_query(
            current_user.company_id,
            start_date,
            end_date,
            staff_id=staff_id,
            customer_id=customer_id,
            stock_id=stock_id,
        )
        return _get_financial_summary(SqlRecordStore(db), query)
    except FinancialReportError as e:
        _raise_http(e)


# ── Operational widgets ─────────────────────────────────────────────────────


@router.get("/summary-stats", response_model=SummaryStatsResponse)
def summary_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, object]:
    return _get_summary_stats(db, current_user.company_id)


@router.get("/jobs-overview", response_model=JobsOverviewResponse)
def jobs_overview(
    day: date | None = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, object]:
    if day is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Date parameter is required.",
        )
    return _get_jobs_overview(db, current_user.company_id, day)


@router.get("/jobs-by-status")
def jobs_by_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, int]:
    return _get_jobs_by_status(db, current_user.company_id)


@router.get("/recent-activity", response_model=RecentActivityResponse)
def recent_activity(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, object]:
    return _get_recent_activity(db, current_user.company_id)
