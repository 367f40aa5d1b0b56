"""Umami web analytics API client (read-only)."""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

import requests
from pydantic import BaseModel, Field

from ...core.config import UmamiConfig
from ...errors import UnexpectedResponseError
from ...utils.http import secure_request_ok

logger = logging.getLogger(__name__)

MetricType = Literal["url", "referrer", "browser", "os", "device", "country", "language", "event"]
TimeUnit = Literal["hour", "day", "month", "year"]


class DateRange(BaseModel):
    """Inclusive window in epoch milliseconds, as the Umami API expects."""
    start_at: int
    end_at: int

    @property
    def start_date(self) -> str:
        return datetime.fromtimestamp(self.start_at / 1000, tz=timezone.utc).date().isoformat()

    @property
    def end_date(self) -> str:
        return datetime.fromtimestamp(self.end_at / 1000, tz=timezone.utc).date().isoformat()


class StatValue(BaseModel):
    value: float = 0
    previous: float = 0


class WebsiteStats(BaseModel):
    pageviews: StatValue = Field(default_factory=StatValue)
    visitors: StatValue = Field(default_factory=StatValue)
    visits: StatValue = Field(default_factory=StatValue)
    bounces: StatValue = Field(default_factory=StatValue)
    totaltime: StatValue = Field(default_factory=StatValue)


class Metric(BaseModel):
    label: str
    count: int


class SeriesPoint(BaseModel):
    t: str
    y: int


class PageviewSeries(BaseModel):
    pageviews: List[SeriesPoint] = Field(default_factory=list)
    sessions: List[SeriesPoint] = Field(default_factory=list)


def _stat(raw: Any) -> StatValue:
    if isinstance(raw, dict):
        return StatValue(
            value=raw.get("value") or 0,
            # Older servers report the comparison period as "prev"
            previous=raw.get("previous", raw.get("prev")) or 0,
        )
    if isinstance(raw, (int, float)):
        return StatValue(value=raw)
    return StatValue()


class UmamiClient:
    """Umami REST client with bearer-token login on first use."""

    def __init__(self, config: UmamiConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._auth_lock = threading.Lock()

    @property
    def _base(self) -> str:
        return self.config.server_url.rstrip("/")

    def _ensure_auth(self) -> str:
        # Queries run in worker threads; only one of them should log in
        with self._auth_lock:
            if self._token:
                return self._token
            response = secure_request_ok(
                "POST",
                f"{self._base}/api/auth/login",
                timeout=self.config.timeout,
                session=self.session,
                json={"username": self.config.username, "password": self.config.password},
            )
            token = (response.json() or {}).get("token")
            if not token:
                raise UnexpectedResponseError("Umami login returned no token")
            self._token = token
            return token

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        token = self._ensure_auth()
        response = secure_request_ok(
            "GET",
            f"{self._base}/api/websites/{self.config.website_id}{path}",
            timeout=self.config.timeout,
            session=self.session,
            headers={"Authorization": f"Bearer {token}"},
            params=params,
        )
        try:
            return response.json()
        except ValueError as e:
            raise UnexpectedResponseError(f"Umami returned non-JSON body for {path}") from e

    def get_stats(self, date_range: DateRange) -> WebsiteStats:
        """Pageviews, visitors, visits, bounces and total time, with the previous period."""
        data = self._get("/stats", {"startAt": date_range.start_at, "endAt": date_range.end_at})
        if not isinstance(data, dict):
            raise UnexpectedResponseError("Umami stats response is not an object")
        comparison = data.get("comparison") if isinstance(data.get("comparison"), dict) else {}
        fields = {}
        for name in WebsiteStats.model_fields:
            stat = _stat(data.get(name))
            if comparison and name in comparison:
                stat.previous = comparison.get(name) or 0
            fields[name] = stat
        return WebsiteStats(**fields)

    def get_pageviews(self, date_range: DateRange, unit: TimeUnit = "day") -> PageviewSeries:
        data = self._get("/pageviews", {
            "startAt": date_range.start_at,
            "endAt": date_range.end_at,
            "unit": unit,
            "timezone": self.config.timezone,
        })
        if not isinstance(data, dict):
            raise UnexpectedResponseError("Umami pageviews response is not an object")
        return PageviewSeries(
            pageviews=[SeriesPoint(t=str(p.get("x", "")), y=p.get("y") or 0) for p in data.get("pageviews") or []],
            sessions=[SeriesPoint(t=str(p.get("x", "")), y=p.get("y") or 0) for p in data.get("sessions") or []],
        )

    def get_metrics(self, date_range: DateRange, metric_type: MetricType, limit: int = 10) -> List[Metric]:
        data = self._get("/metrics", {
            "startAt": date_range.start_at,
            "endAt": date_range.end_at,
            "type": metric_type,
            "limit": limit,
        })
        rows = data.get("data") if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise UnexpectedResponseError(f"Umami {metric_type} metrics response is not a list")
        return [Metric(label=str(r.get("x") or "(none)"), count=r.get("y") or 0) for r in rows][:limit]

    def get_active_visitors(self) -> int:
        data = self._get("/active")
        if isinstance(data, dict):
            value = data.get("visitors", data.get("x"))
        elif isinstance(data, list) and data and isinstance(data[0], dict):
            value = data[0].get("x")
        else:
            value = None
        if value is None:
            raise UnexpectedResponseError("Umami active visitors response has no count")
        return int(value)

    def get_top_pages(self, date_range: DateRange, limit: int = 10) -> List[Metric]:
        return self.get_metrics(date_range, "url", limit)

    def get_top_referrers(self, date_range: DateRange, limit: int = 10) -> List[Metric]:
        return self.get_metrics(date_range, "referrer", limit)

    def get_top_countries(self, date_range: DateRange, limit: int = 10) -> List[Metric]:
        return self.get_metrics(date_range, "country", limit)

    def get_top_browsers(self, date_range: DateRange, limit: int = 10) -> List[Metric]:
        return self.get_metrics(date_range, "browser", limit)

    def get_top_devices(self, date_range: DateRange, limit: int = 10) -> List[Metric]:
        return self.get_metrics(date_range, "device", limit)
