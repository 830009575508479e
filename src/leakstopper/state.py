# src/leakstopper/state.py
"""
Application state owned by the presentation layer.

Loaded once at startup and saved whenever the user changes something. The
scoring engine never reads this; it only receives customers and filters.
API keys are read from the environment and are never written to disk.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Sequence

from . import config
from .models import SECTORS, Customer, FilterOptions, LeakedCustomer, SectorType

logger = logging.getLogger("leakstopper.state")

API_KEY_ENV = {
    "google": config.GOOGLE_API_KEY_ENV,
    "openai": config.OPENAI_API_KEY_ENV,
}


@dataclass(frozen=True)
class AppState:
    provider: str = config.DEFAULT_PROVIDER
    model_name: str = config.DEFAULT_MODELS[config.DEFAULT_PROVIDER]
    company_name: str = ""
    sector: SectorType = "Pharma"
    filters: FilterOptions = field(default_factory=FilterOptions)
    customers: tuple[Customer, ...] = ()

    def with_provider(self, provider: str) -> AppState:
        """Switching provider resets the model to that provider's default."""
        if provider not in config.DEFAULT_MODELS:
            raise ValueError(f"Unknown message provider: {provider}")
        return replace(self, provider=provider, model_name=config.DEFAULT_MODELS[provider])

    @property
    def slider_threshold_days(self) -> int:
        """Persisted threshold clamped into the dashboard slider's range."""
        return min(
            max(self.filters.threshold_days, config.THRESHOLD_SLIDER_MIN),
            config.THRESHOLD_SLIDER_MAX,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model_name": self.model_name,
            "company_name": self.company_name,
            "sector": self.sector,
            "filters": self.filters.to_dict(),
            "customers": [c.to_dict() for c in self.customers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppState:
        defaults = cls()
        provider = data.get("provider", defaults.provider)
        if provider not in config.DEFAULT_MODELS:
            provider = defaults.provider
        sector = data.get("sector", defaults.sector)
        if sector not in SECTORS:
            sector = defaults.sector
        return cls(
            provider=provider,
            model_name=data.get("model_name") or config.DEFAULT_MODELS[provider],
            company_name=data.get("company_name") or "",
            sector=sector,
            filters=FilterOptions.from_dict(data.get("filters")),
            customers=tuple(Customer.from_dict(c) for c in data.get("customers") or []),
        )


def customer_choices(customers: Sequence[LeakedCustomer]) -> dict[str, str]:
    """Selectbox labels keyed by customer id; names and scores may repeat."""
    return {c.id: f"{c.name} ({c.leak_score})" for c in customers}


def resolve_api_key(provider: str) -> str | None:
    env_name = API_KEY_ENV.get(provider)
    return os.environ.get(env_name) if env_name else None


def load_state(path: Path | None = None) -> AppState:
    """Read persisted state; a missing or unreadable file yields defaults."""
    state_path = Path(path) if path else Path(config.STATE_PATH)
    if not state_path.exists():
        return AppState()

    try:
        data = json.loads(state_path.read_text(encoding="utf-8"))
        return AppState.from_dict(data)
    except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", state_path, exc)
        return AppState()


def save_state(state: AppState, path: Path | None = None) -> Path:
    state_path = Path(path) if path else Path(config.STATE_PATH)
    state_path.parent.mkdir(parents=True, exist_ok=True)
    state_path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
    return state_path
