"""Tests for the demo seed script."""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from fieldbooks.app.core.security import create_access_token
from fieldbooks.app.models.registry import Company, Invoice, User
from fieldbooks.scripts.seed import seed
from fieldbooks.tests.conftest import auth


def test_seed_is_idempotent(db):
    first = seed(db)
    second = seed(db)
    assert first.id == second.id
    assert db.query(Company).count() == 1
    assert db.query(User).count() == 1
    assert db.query(Invoice).count() == 1


def test_seeded_admin_sees_financials(client, db):
    admin = seed(db)
    today = date.today()
    res = client.get(
        "/api/v1/dashboard/financials",
        params={
            "startDate": (today - timedelta(days=1)).isoformat(),
            "endDate": (today + timedelta(days=1)).isoformat(),
        },
        headers=auth(create_access_token(subject=str(admin.id))),
    )
    assert res.status_code == 200
    data = res.json()
    assert Decimal(data["totalRevenue"]) == Decimal("180")
    assert Decimal(data["totalCOGS"]) == Decimal("25")
    assert Decimal(data["outstandingBalance"]) == Decimal("180")
