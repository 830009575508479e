from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from leakstopper.models import Customer, LeakedCustomer

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_customer() -> Callable[..., Customer]:
    counter = {"n": 0}

    def _make(
        days_ago: float = 200,
        revenue: float = 1000.0,
        purchase_count: int | None = None,
        **overrides: object,
    ) -> Customer:
        counter["n"] += 1
        values: dict[str, object] = {
            "id": f"c{counter['n']}",
            "name": f"Customer {counter['n']}",
            "email": f"c{counter['n']}@example.com",
            "last_purchase_date": NOW - timedelta(days=days_ago),
            "total_revenue": revenue,
            "purchase_count": purchase_count,
        }
        values.update(overrides)
        return Customer(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def make_leaked() -> Callable[..., LeakedCustomer]:
    def _make(
        id: str = "l1",
        leak_score: int = 65,
        risk_level: str = "high",
        revenue: float = 1200.0,
        lost: float = 900.0,
        days: int = 200,
    ) -> LeakedCustomer:
        return LeakedCustomer(
            id=id,
            name=f"Leaked {id}",
            email=f"{id}@example.com",
            last_purchase_date=NOW - timedelta(days=days),
            total_revenue=revenue,
            favorite_product="Vitamin D3",
            purchase_count=4,
            days_since_last_purchase=days,
            leak_score=leak_score,
            estimated_lost_revenue=lost,
            risk_level=risk_level,  # type: ignore[arg-type]
        )

    return _make
