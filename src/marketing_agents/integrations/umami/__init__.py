"""Umami analytics integration."""

from .client import DateRange, Metric, PageviewSeries, SeriesPoint, StatValue, UmamiClient, WebsiteStats

__all__ = [
    "DateRange",
    "Metric",
    "PageviewSeries",
    "SeriesPoint",
    "StatValue",
    "UmamiClient",
    "WebsiteStats",
]
