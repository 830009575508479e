# src/leakstopper/leak_report.py
"""
Score a customer export and write reclamation target files.
Outputs:
  • leak_scores_<date>.csv           (every leaked customer, before narrowing)
  • reclamation_targets_<date>.csv   (ranked, filtered outreach list)
"""

from __future__ import annotations

import argparse
from dataclasses import asdict, dataclass
from pathlib import Path

import pandas as pd

from . import config
from .bucket_analysis import analyze_bucket, classify, format_currency, get_health_status
from .data_prep import CsvSource, parse_customer_csv
from .models import RISK_FILTERS, AnalysisResult, FilterOptions


@dataclass(frozen=True)
class ReportOutputs:
    analysis: AnalysisResult | None
    scores_path: Path | None
    targets_path: Path | None


def run(
    source: CsvSource,
    filters: FilterOptions | None = None,
    as_of: str | None = None,
    out_dir: Path | None = None,
    reports_dir: Path | None = None,
) -> ReportOutputs:
    filters = filters or FilterOptions()
    as_of_ts = pd.Timestamp(as_of) if as_of else pd.Timestamp.now(tz="UTC").normalize()
    if as_of_ts.tzinfo is None:
        as_of_ts = as_of_ts.tz_localize("UTC")

    parsed = parse_customer_csv(source)
    analysis = analyze_bucket(parsed.customers, filters, now=as_of_ts)
    if analysis is None:
        print("No customers found in the export; nothing to score.")
        return ReportOutputs(analysis=None, scores_path=None, targets_path=None)

    out_dir = Path(out_dir or config.PROCESSED_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)
    reports_dir = Path(reports_dir or config.REPORTS_OUTREACH_DIR)
    reports_dir.mkdir(parents=True, exist_ok=True)

    leaked, _ = classify(parsed.customers, filters.threshold_days, as_of_ts)
    scores = pd.DataFrame([asdict(c) for c in leaked], columns=analysis.to_frame().columns)
    scores_path = out_dir / f"leak_scores_{as_of_ts.date()}.csv"
    scores.to_csv(scores_path, index=False)

    targets_path = reports_dir / f"reclamation_targets_{as_of_ts.date()}.csv"
    analysis.to_frame().to_csv(targets_path, index=False)

    _print_summary(analysis)
    print(f"Wrote: {scores_path}")
    print(f"Wrote: {targets_path}")
    return ReportOutputs(analysis=analysis, scores_path=scores_path, targets_path=targets_path)


def _print_summary(analysis: AnalysisResult) -> None:
    status = get_health_status(analysis.bucket_health)
    print(
        f"Customers: {analysis.total_customers} "
        f"(active {analysis.active_customers}, leaked {analysis.leaked_customers}, "
        f"leak rate {analysis.leak_rate:.1f}%)"
    )
    print(f"Bucket health: {analysis.bucket_health}/100 {status.emoji} {status.label}")
    print(
        f"Lost revenue: {format_currency(analysis.lost_revenue)} of "
        f"{format_currency(analysis.total_revenue)}; leak velocity {analysis.leak_velocity:.2f}"
    )
    top = analysis.to_frame().head(10)
    if not top.empty:
        print(top[["name", "leak_score", "risk_level", "days_since_last_purchase"]])


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Find and rank leaked customers in a CSV export.")
    parser.add_argument("csv", type=Path, help="Customer export (CSV).")
    parser.add_argument(
        "--threshold-days",
        type=int,
        default=config.DEFAULT_THRESHOLD_DAYS,
        help="Customers inactive longer than this are leaked.",
    )
    parser.add_argument(
        "--min-spending",
        type=float,
        default=config.DEFAULT_MIN_SPENDING,
        help="Only list leaked customers with at least this lifetime revenue.",
    )
    parser.add_argument(
        "--risk-level",
        choices=RISK_FILTERS,
        default=config.DEFAULT_RISK_LEVEL,
        help="Minimum risk level to list.",
    )
    parser.add_argument(
        "--as_of",
        "--as-of",
        dest="as_of",
        type=str,
        default=None,
        help="Optional reference date (YYYY-MM-DD). Defaults to today.",
    )
    args = parser.parse_args(argv)
    if args.threshold_days <= 0:
        parser.error("--threshold-days must be positive")

    filters = FilterOptions(
        threshold_days=args.threshold_days,
        min_spending=args.min_spending,
        risk_level=args.risk_level,
    )
    run(args.csv, filters=filters, as_of=args.as_of)


if __name__ == "__main__":
    main()
