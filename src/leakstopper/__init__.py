"""Convenience exports for core leak analysis utilities."""

from .bucket_analysis import analyze_bucket, apply_filters
from .data_prep import parse_customer_csv
from .models import AnalysisResult, Customer, FilterOptions, LeakedCustomer

__all__ = [
    "AnalysisResult",
    "Customer",
    "FilterOptions",
    "LeakedCustomer",
    "analyze_bucket",
    "apply_filters",
    "parse_customer_csv",
]
