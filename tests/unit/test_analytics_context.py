"""Tests for time-range detection and analytics markdown rendering."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import make_task
from marketing_agents.core.analytics_context import (
    AnalyticsService,
    AnalyticsSummary,
    date_range_for_days,
    detect_days,
    format_pageviews_as_markdown,
    format_summary_as_markdown,
    unit_for_days,
)
from marketing_agents.integrations.umami import (
    DateRange,
    Metric,
    PageviewSeries,
    SeriesPoint,
    StatValue,
    WebsiteStats,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestDetectDays:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Traffic over the last 7 days", 7),
            ("Bilan des 2 semaines", 14),
            ("Compare the past 3 months", 90),
            ("Trend over 2 years", 365),
            ("Performance this quarter", 90),
            ("Rapport de cette semaine", 7),
            ("What happened yesterday?", 1),
            ("", 30),
            ("0 days of data", 1),
        ],
    )
    def test_phrases(self, text, expected):
        assert detect_days(text, now=NOW) == expected

    def test_since_month_and_year(self):
        # Jan 1 to Mar 10 noon is 68 full days, inclusive of the start day
        assert detect_days("Traffic since January 2025", now=NOW) == 69

    def test_month_without_year_uses_current_year(self):
        assert detect_days("Depuis janvier", now=NOW) == 69

    def test_future_month_clamps_to_one(self):
        assert detect_days("Launch in December 2025", now=NOW) == 1

    def test_keywords_match_whole_words_only(self):
        assert detect_days("Review the site hierarchy", now=NOW) == 30

    def test_ambiguous_month_needs_a_year(self):
        assert detect_days("We may need a traffic report", now=NOW) == 30

    def test_never_above_a_year(self):
        assert detect_days("Compare 500 days", now=NOW) == 365


class TestHelpers:
    def test_date_range_spans_requested_days(self):
        date_range = date_range_for_days(7, now=NOW)

        assert date_range.end_at - date_range.start_at == 7 * 24 * 3600 * 1000
        assert date_range.start_date == "2025-03-03"
        assert date_range.end_date == "2025-03-10"

    @pytest.mark.parametrize("days, unit", [(1, "hour"), (7, "hour"), (30, "day"), (90, "day"), (365, "month")])
    def test_unit_for_days(self, days, unit):
        assert unit_for_days(days) == unit


def _make_summary():
    return AnalyticsSummary(
        date_range=date_range_for_days(7, now=NOW),
        stats=WebsiteStats(
            pageviews=StatValue(value=1200, previous=1000),
            visitors=StatValue(value=300, previous=0),
            visits=StatValue(value=400, previous=350),
            bounces=StatValue(value=100, previous=90),
            totaltime=StatValue(value=8000, previous=7000),
        ),
        top_pages=[Metric(label="/blog", count=500)],
        top_referrers=[Metric(label="google.com", count=80)],
        top_countries=[],
        top_browsers=[],
        top_devices=[],
    )


class TestMarkdown:
    def test_summary_tables(self):
        text = format_summary_as_markdown(_make_summary())

        assert "# Analytics Report" in text
        assert "**Period:** 2025-03-03 to 2025-03-10" in text
        assert "| Page views | 1,200 | 1,000 | +20.0% |" in text
        assert "| Visitors | 300 | 0 | n/a |" in text
        assert "| Bounce rate | 25.0% | | |" in text
        assert "| Avg visit duration | 20.0s | | |" in text
        assert "| /blog | 500 |" in text
        assert "### Top Referrers" in text

    def test_no_visits_skips_ratios(self):
        summary = _make_summary()
        summary.stats.visits = StatValue()

        assert "Bounce rate" not in format_summary_as_markdown(summary)

    def test_pageviews_table(self):
        series = PageviewSeries(
            pageviews=[SeriesPoint(t="2025-03-09", y=10), SeriesPoint(t="2025-03-10", y=12)],
            sessions=[SeriesPoint(t="2025-03-09", y=4)],
        )

        text = format_pageviews_as_markdown(series)

        assert "| 2025-03-09 | 10 | 4 |" in text
        assert "| 2025-03-10 | 12 | 0 |" in text

    def test_empty_pageviews_render_nothing(self):
        assert format_pageviews_as_markdown(PageviewSeries()) == ""


def _make_umami():
    umami = MagicMock()
    umami.get_stats.return_value = WebsiteStats(pageviews=StatValue(value=50))
    for name in ("get_top_pages", "get_top_referrers", "get_top_countries", "get_top_browsers", "get_top_devices"):
        getattr(umami, name).return_value = [Metric(label="x", count=1)]
    umami.get_pageviews.return_value = PageviewSeries(pageviews=[SeriesPoint(t="2025-03-10 10:00", y=3)])
    umami.get_active_visitors.return_value = 4
    return umami


class TestAnalyticsService:
    @pytest.mark.asyncio
    async def test_build_context_uses_task_period(self):
        umami = _make_umami()
        service = AnalyticsService(umami, now=lambda: NOW)
        task = make_task(title="Traffic report for the last 7 days", description="")

        context = await service.build_context(task)

        assert "(7 days)" in context
        assert "### Active visitors right now: 4" in context
        assert "# Analytics Report" in context
        assert "| 2025-03-10 10:00 | 3 | 0 |" in context
        date_range, unit = umami.get_pageviews.call_args.args
        assert unit == "hour"
        assert isinstance(date_range, DateRange)

    @pytest.mark.asyncio
    async def test_get_summary_queries_every_breakdown(self):
        umami = _make_umami()
        service = AnalyticsService(umami, now=lambda: NOW)

        summary = await service.get_summary(date_range_for_days(30, now=NOW), limit=5)

        assert summary.stats.pageviews.value == 50
        umami.get_top_devices.assert_called_once()
        assert umami.get_top_pages.call_args.args[1] == 5

    @pytest.mark.asyncio
    async def test_query_errors_propagate(self):
        umami = _make_umami()
        umami.get_stats.side_effect = RuntimeError("umami down")
        service = AnalyticsService(umami, now=lambda: NOW)

        with pytest.raises(RuntimeError):
            await service.build_context(make_task())
