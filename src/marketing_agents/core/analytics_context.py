"""Analytics facade: parallel read-only Umami queries rendered as markdown."""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel

from ..integrations.umami import DateRange, Metric, PageviewSeries, UmamiClient, WebsiteStats
from .task import Task

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 30
MAX_DAYS = 365
TOP_LIMIT = 10

_UNIT_PATTERNS = (
    (re.compile(r"(\d+)\s*(?:jours?|days?)\b"), 1),
    (re.compile(r"(\d+)\s*(?:semaines?|weeks?)\b"), 7),
    (re.compile(r"(\d+)\s*(?:mois|months?)\b"), 30),
    (re.compile(r"(\d+)\s*(?:ans?|years?)\b"), 365),
)

_KEYWORD_DAYS = (
    (("cette semaine", "this week"), 7),
    (("ce mois", "this month"), 30),
    (("ce trimestre", "this quarter"), 90),
    (("cette année", "this year", "ytd"), 365),
    (("hier", "yesterday"), 1),
    (("aujourd'hui", "today"), 1),
)

_MONTHS = {
    "janvier": 1, "january": 1, "février": 2, "february": 2, "mars": 3, "march": 3,
    "avril": 4, "april": 4, "mai": 5, "may": 5, "juin": 6, "june": 6,
    "juillet": 7, "july": 7, "août": 8, "august": 8, "septembre": 9, "september": 9,
    "octobre": 10, "october": 10, "novembre": 11, "november": 11, "décembre": 12, "december": 12,
}

# Also ordinary words; only read as a month when a year is present
_AMBIGUOUS_MONTHS = frozenset({"may", "mars"})


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(word)}(?!\w)", text) is not None


def detect_days(text: str, now: Optional[datetime] = None) -> int:
    """Number of days of data a task asks for, from time-range phrases.

    Understands "7 days", "2 semaines", "3 months", "this quarter",
    "since January 2025" and friends. Defaults to 30, never above 365.
    """
    lowered = (text or "").lower()

    for pattern, multiplier in _UNIT_PATTERNS:
        match = pattern.search(lowered)
        if match:
            return max(1, min(int(match.group(1)) * multiplier, MAX_DAYS))

    for keywords, days in _KEYWORD_DAYS:
        if any(_has_word(lowered, k) for k in keywords):
            return days

    now = now or datetime.now(timezone.utc)
    year_match = re.search(r"\b20\d{2}\b", lowered)
    for name, month in _MONTHS.items():
        if _has_word(lowered, name):
            if name in _AMBIGUOUS_MONTHS and not year_match:
                continue
            year = int(year_match.group(0)) if year_match else now.year
            start = datetime(year, month, 1, tzinfo=timezone.utc)
            diff_days = (now - start).days + 1
            return max(1, min(diff_days, MAX_DAYS))

    return DEFAULT_DAYS


def date_range_for_days(days: int, now: Optional[datetime] = None) -> DateRange:
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=days)
    return DateRange(start_at=int(start.timestamp() * 1000), end_at=int(now.timestamp() * 1000))


def unit_for_days(days: int) -> str:
    if days <= 7:
        return "hour"
    if days <= 90:
        return "day"
    return "month"


class AnalyticsSummary(BaseModel):
    date_range: DateRange
    stats: WebsiteStats
    top_pages: List[Metric]
    top_referrers: List[Metric]
    top_countries: List[Metric]
    top_browsers: List[Metric]
    top_devices: List[Metric]


def _change(value: float, previous: float) -> str:
    if not previous:
        return "n/a"
    return f"{(value - previous) / previous * 100:+.1f}%"


def _metric_table(title: str, column: str, rows: List[Metric]) -> List[str]:
    lines = [f"### {title}", "", f"| {column} | Count |", "|------|-------|"]
    lines += [f"| {r.label} | {r.count} |" for r in rows]
    lines.append("")
    return lines


def format_summary_as_markdown(summary: AnalyticsSummary) -> str:
    """Render a summary as markdown tables."""
    stats = summary.stats
    lines = [
        "# Analytics Report",
        f"**Period:** {summary.date_range.start_date} to {summary.date_range.end_date}",
        "",
        "| Metric | Value | Previous period | Change |",
        "|--------|-------|-----------------|--------|",
    ]
    for label, stat in (
        ("Page views", stats.pageviews),
        ("Visitors", stats.visitors),
        ("Visits", stats.visits),
        ("Bounces", stats.bounces),
        ("Total time (s)", stats.totaltime),
    ):
        lines.append(
            f"| {label} | {stat.value:,.0f} | {stat.previous:,.0f} | {_change(stat.value, stat.previous)} |"
        )

    visits = stats.visits.value
    if visits:
        lines.append(f"| Bounce rate | {stats.bounces.value / visits * 100:.1f}% | | |")
        lines.append(f"| Avg visit duration | {stats.totaltime.value / visits:.1f}s | | |")
    lines.append("")

    lines += _metric_table("Top Pages", "Page", summary.top_pages)
    lines += _metric_table("Top Referrers", "Referrer", summary.top_referrers)
    lines += _metric_table("Top Countries", "Country", summary.top_countries)
    lines += _metric_table("Top Browsers", "Browser", summary.top_browsers)
    lines += _metric_table("Top Devices", "Device", summary.top_devices)
    return "\n".join(lines).rstrip()


def format_pageviews_as_markdown(series: PageviewSeries) -> str:
    if not series.pageviews:
        return ""
    lines = ["## Page views over time", "", "| Date | Page views | Sessions |", "|------|------------|----------|"]
    for i, point in enumerate(series.pageviews):
        sessions = series.sessions[i].y if i < len(series.sessions) else 0
        lines.append(f"| {point.t} | {point.y} | {sessions} |")
    return "\n".join(lines)


class AnalyticsService:
    """Runs the blocking Umami queries concurrently in worker threads."""

    def __init__(self, umami: UmamiClient, now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.umami = umami
        self._now = now

    async def get_summary(self, date_range: DateRange, limit: int = TOP_LIMIT) -> AnalyticsSummary:
        stats, pages, referrers, countries, browsers, devices = await asyncio.gather(
            asyncio.to_thread(self.umami.get_stats, date_range),
            asyncio.to_thread(self.umami.get_top_pages, date_range, limit),
            asyncio.to_thread(self.umami.get_top_referrers, date_range, limit),
            asyncio.to_thread(self.umami.get_top_countries, date_range, limit),
            asyncio.to_thread(self.umami.get_top_browsers, date_range, limit),
            asyncio.to_thread(self.umami.get_top_devices, date_range, limit),
        )
        return AnalyticsSummary(
            date_range=date_range,
            stats=stats,
            top_pages=pages,
            top_referrers=referrers,
            top_countries=countries,
            top_browsers=browsers,
            top_devices=devices,
        )

    async def build_context(self, task: Task) -> str:
        """Markdown block for a task's prompt, covering the period the task asks about."""
        now = self._now()
        days = detect_days(f"{task.title} {task.description}", now=now)
        date_range = date_range_for_days(days, now=now)
        logger.debug(f"Analytics range for {task.card_id}: {days} days")

        summary, series, active = await asyncio.gather(
            self.get_summary(date_range),
            asyncio.to_thread(self.umami.get_pageviews, date_range, unit_for_days(days)),
            asyncio.to_thread(self.umami.get_active_visitors),
        )

        lines = [
            f"### Period analysed: {date_range.start_date} to {date_range.end_date} ({days} days)",
            f"### Active visitors right now: {active}",
            "",
            format_summary_as_markdown(summary),
        ]
        pageviews = format_pageviews_as_markdown(series)
        if pageviews:
            lines += ["", pageviews]
        return "\n".join(lines)
