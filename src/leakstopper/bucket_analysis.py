# src/leakstopper/bucket_analysis.py
"""
Leak scoring engine.

Turns a customer export plus filter options into a ranked, aggregated
analysis. Everything here is pure: inputs are never mutated, no I/O happens,
and "now" is sampled once per call so every customer in one result is
evaluated against the same instant.

Score = 0.3 * recency + 0.5 * revenue + 0.2 * frequency   (each 0..100)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from typing import Literal, Sequence

import numpy as np
import pandas as pd

from . import config
from .models import AnalysisResult, Customer, FilterOptions, LeakedCustomer, RiskLevel

# Minimum-severity inclusion sets; "all" keeps everyone.
RISK_FILTER_LEVELS: dict[str, frozenset[str] | None] = {
    "all": None,
    "critical": frozenset({"critical"}),
    "high": frozenset({"critical", "high"}),
    "medium": frozenset({"critical", "high", "medium"}),
}

_CUSTOMER_FIELDS = tuple(f.name for f in fields(Customer))
_DAY = timedelta(days=1)


@dataclass(frozen=True)
class FilteredLeaks:
    """Narrowed slice of the leaked population."""

    top: tuple[LeakedCustomer, ...]
    matched_count: int
    lost_revenue: int
    leak_velocity: float


@dataclass(frozen=True)
class HealthStatus:
    label: str
    color: Literal["emerald", "green", "yellow", "orange", "red"]
    emoji: str


def round_half_up(value: float) -> int:
    """Round .5 upwards (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def _as_utc(when: datetime) -> datetime:
    """Plain aware datetime in UTC; naive values are taken as UTC."""
    if isinstance(when, pd.Timestamp):
        when = when.to_pydatetime()
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def days_since(when: datetime, now: datetime) -> int:
    """
    Whole days between two instants, rounded up; future dates count by magnitude.

    Works on stdlib datetimes so any year a datetime can hold is accepted.
    """
    delta = abs(_as_utc(now) - _as_utc(when))
    return math.ceil(delta / _DAY)


def get_risk_level(leak_score: float) -> RiskLevel:
    if leak_score >= config.CRITICAL_MIN:
        return "critical"
    elif leak_score >= config.HIGH_MIN:
        return "high"
    elif leak_score >= config.MEDIUM_MIN:
        return "medium"
    else:
        return "low"


def score_customers(customers: Sequence[Customer], now: datetime) -> pd.DataFrame:
    """
    Vectorised scoring of the whole population, one row per customer in input order.

    Population maxima (revenue, purchase count) span active and leaked
    customers alike.
    """
    w = config.WEIGHTS
    saturation = config.RECENCY_SATURATION_DAYS

    now = _as_utc(now)
    revenue = pd.Series([c.total_revenue for c in customers], dtype="float64")
    counts = pd.Series(
        [np.nan if c.purchase_count is None else c.purchase_count for c in customers],
        dtype="float64",
    )

    days = pd.Series([days_since(c.last_purchase_date, now) for c in customers], dtype="int64")

    recency_score = (days / saturation * 100).clip(upper=100).where(days < saturation, 100.0)

    max_revenue = float(revenue.max()) if len(revenue) else 0.0
    if max_revenue > 0:
        revenue_score = revenue / max_revenue * 100
    else:
        revenue_score = pd.Series(0.0, index=revenue.index)

    max_purchase_count = float(counts.fillna(0).max()) if len(counts) else 0.0
    has_count = counts.fillna(0) > 0
    if max_purchase_count > 0:
        frequency_score = (counts / max_purchase_count * 100).where(
            has_count, config.NEUTRAL_FREQUENCY_SCORE
        )
    else:
        frequency_score = pd.Series(config.NEUTRAL_FREQUENCY_SCORE, index=counts.index)

    weighted = (
        recency_score * w["recency"]
        + revenue_score * w["revenue"]
        + frequency_score * w["frequency"]
    )
    leak_score = weighted.map(round_half_up).astype("int64")

    months_inactive = days / config.DAYS_PER_MONTH
    repeat_buyer = counts.fillna(0) > 1
    cadence_loss = (revenue / counts) * np.floor(months_inactive / config.PURCHASE_CADENCE_MONTHS)
    annual_loss = revenue * (months_inactive / 12)
    estimated_lost_revenue = cadence_loss.where(repeat_buyer, annual_loss)

    risk_level = leak_score.map(get_risk_level)

    return pd.DataFrame(
        {
            "days_since_last_purchase": days,
            "recency_score": recency_score,
            "revenue_score": revenue_score,
            "frequency_score": frequency_score,
            "leak_score": leak_score,
            "estimated_lost_revenue": estimated_lost_revenue,
            "risk_level": risk_level,
        }
    )


def classify(
    customers: Sequence[Customer], threshold_days: int, now: datetime
) -> tuple[list[LeakedCustomer], list[Customer]]:
    """Split customers into (leaked, active) by recency alone, keeping input order."""
    if not customers:
        return [], []

    scored = score_customers(customers, now)
    leaked: list[LeakedCustomer] = []
    active: list[Customer] = []

    for customer, row in zip(customers, scored.itertuples(index=False)):
        if row.days_since_last_purchase > threshold_days:
            leaked.append(
                LeakedCustomer(
                    **{name: getattr(customer, name) for name in _CUSTOMER_FIELDS},
                    days_since_last_purchase=int(row.days_since_last_purchase),
                    leak_score=int(row.leak_score),
                    estimated_lost_revenue=float(row.estimated_lost_revenue),
                    risk_level=str(row.risk_level),  # type: ignore[arg-type]
                )
            )
        else:
            active.append(customer)

    return leaked, active


def apply_filters(
    leaked: Sequence[LeakedCustomer], filters: FilterOptions, total_revenue: float
) -> FilteredLeaks:
    """
    Narrow an already-scored leaked population by spending floor and risk.

    Scores are never recomputed here. Lost revenue and velocity cover every
    matching customer, not only the capped top list.
    """
    allowed = RISK_FILTER_LEVELS.get(filters.risk_level)

    matched = [
        c
        for c in leaked
        if c.total_revenue >= filters.min_spending
        and (allowed is None or c.risk_level in allowed)
    ]
    # sorted() is stable, so equal scores keep input order
    ranked = sorted(matched, key=lambda c: c.leak_score, reverse=True)

    lost = sum(c.estimated_lost_revenue for c in matched)
    if total_revenue:
        velocity = min(config.MAX_LEAK_VELOCITY, lost / total_revenue * config.VELOCITY_AMPLIFIER)
    else:
        velocity = 0.0

    return FilteredLeaks(
        top=tuple(ranked[: config.TOP_LEAKED_LIMIT]),
        matched_count=len(matched),
        lost_revenue=round_half_up(lost),
        leak_velocity=float(velocity),
    )


def analyze_bucket(
    customers: Sequence[Customer],
    filters: FilterOptions | None = None,
    now: datetime | None = None,
) -> AnalysisResult | None:
    """
    Full analysis run. Returns None for an empty customer list.

    Customer counts, leak rate and bucket health describe the whole leaked
    population (threshold only); the spending and risk filters only narrow
    the ranked list, lost revenue and velocity.
    """
    if not customers:
        return None

    filters = filters or FilterOptions()
    now_ts = _as_utc(now) if now is not None else datetime.now(timezone.utc)

    leaked, active = classify(customers, filters.threshold_days, now_ts)
    total_revenue = sum(c.total_revenue for c in customers)
    filtered = apply_filters(leaked, filters, total_revenue)

    leak_rate = len(leaked) / len(customers) * 100
    bucket_health = max(0.0, min(100.0, 100 - leak_rate * config.HEALTH_AMPLIFIER))

    return AnalysisResult(
        total_customers=len(customers),
        active_customers=len(active),
        leaked_customers=len(leaked),
        leak_rate=round_half_up(leak_rate * 10) / 10,
        total_revenue=total_revenue,
        lost_revenue=filtered.lost_revenue,
        bucket_health=round_half_up(bucket_health),
        leak_velocity=filtered.leak_velocity,
        top_leaked_customers=filtered.top,
    )


def get_health_status(health: float) -> HealthStatus:
    if health >= 80:
        return HealthStatus("Excellent", "emerald", "🟢")
    elif health >= 60:
        return HealthStatus("Good", "green", "🟡")
    elif health >= 40:
        return HealthStatus("Needs Attention", "yellow", "🟠")
    elif health >= 20:
        return HealthStatus("Critical", "orange", "🔴")
    else:
        return HealthStatus("Top Priority", "red", "🚨")


def format_currency(amount: float, symbol: str = "₺") -> str:
    """Whole-unit amount with dot thousands separators, e.g. ₺12.500."""
    value = round_half_up(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,}".replace(",", ".")
