"""Core utilities for the news digest pipeline."""

from .dates import DATE_FORMAT, age_in_days, ensure_aware, today, utcnow
from .io import load_json, save_json

__all__ = [
    # I/O
    "load_json",
    "save_json",
    # Dates
    "today",
    "utcnow",
    "ensure_aware",
    "age_in_days",
    "DATE_FORMAT",
]
