from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from leakstopper.models import FilterOptions
from leakstopper.state import AppState, customer_choices, load_state, resolve_api_key, save_state


def test_missing_state_file_gives_defaults(tmp_path: Path) -> None:
    state = load_state(tmp_path / "nope.json")

    assert state == AppState()
    assert state.filters == FilterOptions(threshold_days=90, min_spending=0, risk_level="all")


def test_state_round_trip(tmp_path: Path, make_customer) -> None:
    customers = (make_customer(days_ago=120, revenue=99.5, purchase_count=3, phone="555"),)
    state = AppState(
        provider="openai",
        model_name="gpt-4o-mini",
        company_name="Acme",
        sector="SaaS",
        filters=FilterOptions(threshold_days=60, min_spending=250, risk_level="high"),
        customers=customers,
    )

    path = save_state(state, tmp_path / "nested" / "state.json")
    restored = load_state(path)

    assert restored.filters == state.filters
    assert restored.company_name == "Acme"
    assert restored.sector == "SaaS"
    assert restored.model_name == "gpt-4o-mini"
    assert len(restored.customers) == 1
    original, loaded = customers[0], restored.customers[0]
    assert loaded.id == original.id
    assert loaded.phone == "555"
    assert loaded.purchase_count == 3
    assert loaded.last_purchase_date == original.last_purchase_date


def test_api_keys_are_never_persisted(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-secret")
    path = save_state(AppState(provider="openai"), tmp_path / "state.json")

    assert "sk-secret" not in path.read_text(encoding="utf-8")
    assert resolve_api_key("openai") == "sk-secret"


def test_missing_api_key_resolves_to_none(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    assert resolve_api_key("google") is None
    assert resolve_api_key("unknown") is None


def test_corrupt_state_file_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_state(path) == AppState()


def test_invalid_values_fall_back_per_field(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        '{"provider": "anthropic", "sector": "Retail", '
        '"filters": {"threshold_days": "x", "risk_level": "low", "min_spending": 10}}',
        encoding="utf-8",
    )

    state = load_state(path)

    assert state.provider == "google"
    assert state.model_name == "gemini-2.5-flash"
    assert state.sector == "Pharma"
    assert state.filters == FilterOptions(min_spending=10)


def test_switching_provider_resets_model() -> None:
    state = AppState(model_name="gemini-2.5-pro")

    switched = state.with_provider("openai")

    assert switched.provider == "openai"
    assert switched.model_name == "gpt-4o"
    with pytest.raises(ValueError):
        state.with_provider("anthropic")


@pytest.mark.parametrize("persisted, shown", [(3, 7), (90, 90), (1000, 365)])
def test_slider_threshold_is_clamped(persisted: int, shown: int) -> None:
    state = AppState(filters=FilterOptions(threshold_days=persisted))

    assert state.slider_threshold_days == shown


def test_customer_choices_keep_duplicate_names(make_leaked) -> None:
    twins = [make_leaked(id="a"), make_leaked(id="b")]
    twins = [replace(c, name="Ada") for c in twins]

    labels = customer_choices(twins)

    assert list(labels) == ["a", "b"]
    assert labels["a"] == labels["b"] == "Ada (65)"
