# src/leakstopper/data_prep.py
"""
Ingestion helpers that turn a free-form customer export (CSV) into typed
Customer records ready for the leak scoring engine.

Column names are matched heuristically (English and Turkish aliases), dates
and amounts are parsed leniently, and unusable values fall back to neutral
defaults instead of failing the whole file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Union

import pandas as pd

from . import config
from .models import EPOCH, Customer

logger = logging.getLogger("leakstopper.data_prep")

CsvSource = Union[str, Path, IO[str], IO[bytes]]
ColumnMapping = dict[str, str]

UNKNOWN_NAME = "Unknown"

# Tried in order; a source column is only ever assigned to one field. Purchase
# count is matched before the date so "purchase_count" is not taken as a date.
COLUMN_PATTERNS: dict[str, tuple[str, ...]] = {
    "name": (r"^(müşteri|musteri|customer|isim|ad|name|adi|müşteriadi|musteriadi)",),
    "email": (r"^(email|eposta|mail|epost|emailaddress)",),
    "phone": (r"^(phone|tel|telefon|gsm|mobile|telefonno|telefonnumarasi)",),
    "company_name": (r"^(company|firma|şirket|sirket|kurum|şirketadi|sirketadi)",),
    "purchase_count": (
        r"^(count|sayı|sayi|adet|sipariş|siparis|satinalmansayisi|satinalmassayisi)",
        r"^(purchasecount|ordercount|orders|numberofpurchases)",
    ),
    "last_purchase_date": (r"^(son|last|satinalma|purchase|tarih|date|sonalis|sonsatinalma)",),
    "total_revenue": (r"^(revenue|ciro|total|toplam|gelir|tutar|toplamtutar|toplamciro)",),
    "favorite_product": (r"^(product|ürün|urun|favori|favoriurun|favorite)",),
}

_DMY = re.compile(r"(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2,4})")
_LEADING_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^\s*[+-]?\d+")
_CURRENCY_NOISE = re.compile(r"[₺$€\s]")


class CSVParseError(ValueError):
    """Raised when a customer export cannot be read at all."""


@dataclass(frozen=True)
class CSVParseResult:
    customers: list[Customer]
    mapping: ColumnMapping
    raw_data: pd.DataFrame


def read_csv_rows(source: CsvSource) -> pd.DataFrame:
    """Load every column as text; blank lines are skipped."""
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError as exc:
        raise CSVParseError("CSV file is empty or invalid") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise CSVParseError(f"CSV parsing failed: {exc}") from exc

    df.columns = [str(col).strip() for col in df.columns]
    return df


def _normalize_column(name: str) -> str:
    return re.sub(r"[_\-\s]", "", name.lower())


def fallback_column_mapping(columns: list[str]) -> ColumnMapping:
    """Guess which source column feeds each Customer field from its name."""
    mapping: ColumnMapping = {}
    normalized = [_normalize_column(col) for col in columns]

    for target, patterns in COLUMN_PATTERNS.items():
        for pattern in patterns:
            regex = re.compile(pattern, re.IGNORECASE)
            index = next((i for i, col in enumerate(normalized) if regex.search(col)), None)
            if index is not None and columns[index] not in mapping.values():
                mapping[target] = columns[index]
                break

    return mapping


def _parse_day_first(text: str) -> datetime:
    match = _DMY.search(text)
    if not match:
        return EPOCH
    day, month, year = match.groups()
    full_year = f"20{year}" if len(year) == 2 else year
    try:
        return datetime(int(full_year), int(month), int(day))
    except ValueError:
        logger.debug("Unparseable date %r, using epoch", text)
        return EPOCH


def parse_date(text: str | None) -> datetime:
    """
    ISO 8601 first, then day/month/year; anything else is the epoch sentinel.

    Years outside MIN_PURCHASE_YEAR..MAX_PURCHASE_YEAR are typos and also
    become the epoch.
    """
    if not text or not text.strip():
        return EPOCH
    text = text.strip()

    try:
        parsed = pd.to_datetime(text, format="ISO8601").to_pydatetime()
    except pd.errors.OutOfBoundsDatetime:
        logger.debug("Out-of-range date %r, using epoch", text)
        return EPOCH
    except (ValueError, TypeError):
        parsed = _parse_day_first(text)

    if not config.MIN_PURCHASE_YEAR <= parsed.year <= config.MAX_PURCHASE_YEAR:
        logger.debug("Out-of-range date %r, using epoch", text)
        return EPOCH
    return parsed


def parse_number(text: str | None) -> float:
    """Parse amounts like '₺1.250,50' or '$ 300'; unparseable -> 0."""
    if not text:
        return 0.0
    cleaned = _CURRENCY_NOISE.sub("", text).replace(".", "").replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    return float(match.group(0)) if match else 0.0


def _parse_int(text: str | None) -> int:
    match = _LEADING_INT.match(text or "")
    return int(match.group(0)) if match else 0


def map_to_customers(raw_data: pd.DataFrame, mapping: ColumnMapping) -> list[Customer]:
    """Convert raw rows into Customers, dropping rows with neither name nor email."""

    def cell(row: dict[str, str], field_name: str) -> str | None:
        column = mapping.get(field_name)
        return (row.get(column) or None) if column else None

    customers: list[Customer] = []
    for index, row in enumerate(raw_data.to_dict(orient="records")):
        name = cell(row, "name") or UNKNOWN_NAME
        email = cell(row, "email") or ""
        if name == UNKNOWN_NAME and not email:
            continue

        customers.append(
            Customer(
                id=f"customer-{index + 1}",
                name=name,
                email=email,
                phone=cell(row, "phone"),
                company_name=cell(row, "company_name"),
                last_purchase_date=parse_date(cell(row, "last_purchase_date")),
                total_revenue=parse_number(cell(row, "total_revenue")),
                favorite_product=cell(row, "favorite_product"),
                purchase_count=(
                    _parse_int(cell(row, "purchase_count"))
                    if "purchase_count" in mapping
                    else None
                ),
            )
        )

    return customers


def parse_customer_csv(source: CsvSource) -> CSVParseResult:
    """Read a customer export and map it to typed records."""
    raw_data = read_csv_rows(source)
    if raw_data.empty:
        raise CSVParseError("CSV file is empty or invalid")

    mapping = fallback_column_mapping(list(raw_data.columns))
    customers = map_to_customers(raw_data, mapping)
    logger.info(
        "Parsed %d customers from %d rows (mapped columns: %s)",
        len(customers),
        len(raw_data),
        sorted(mapping),
    )
    return CSVParseResult(customers=customers, mapping=mapping, raw_data=raw_data)
