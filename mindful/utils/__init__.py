"""Utility modules for Mindful API."""

from mindful.utils.dates import ensure_utc_aware, parse_datetime, utcnow
from mindful.utils.percent import percent_of


__all__ = ["ensure_utc_aware", "parse_datetime", "percent_of", "utcnow"]
