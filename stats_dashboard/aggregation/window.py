"""
Day-Window Resolver

Maps a product's series, anchored at its own last update date, onto the
fixed trailing window where slot 0 is always "today". Records refreshed
less recently get leading "no data" slots; records older than the window
contribute nothing.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

import numpy as np

if TYPE_CHECKING:
    from stats_dashboard.ingestion.records import ProductRecord

WINDOW_DAYS = 30

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class DayWindow:
    """How a product's raw series lands in the window"""
    elements_to_take: int
    leading_gap_count: int

    @property
    def is_empty(self) -> bool:
        return self.elements_to_take == 0


def to_utc_date(value: DateLike) -> date:
    """
    Truncate a timestamp to its UTC calendar date.

    Naive datetimes are taken to be UTC already. Both the anchor and "today"
    go through here so they are truncated identically.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def resolve_window(last_update: DateLike, today: Optional[DateLike] = None) -> DayWindow:
    """
    Compute which raw entries are still inside the window.

    A future-dated anchor is treated as today rather than producing a
    negative gap.
    """
    today_date = to_utc_date(today) if today is not None else utc_today()
    days_diff = (today_date - to_utc_date(last_update)).days
    elements_to_take = min(WINDOW_DAYS, max(0, WINDOW_DAYS - days_diff))
    return DayWindow(
        elements_to_take=elements_to_take,
        leading_gap_count=WINDOW_DAYS - elements_to_take,
    )


def resolve(product: "ProductRecord", today: Optional[DateLike] = None) -> DayWindow:
    """Day window of a single product record"""
    return resolve_window(product.last_update, today)


def pad_series(raw: Sequence[Optional[float]], window: DayWindow) -> np.ndarray:
    """
    Place the first ``elements_to_take`` raw entries after the leading gap.

    Returns a float array of width WINDOW_DAYS with NaN marking "no data":
    the gap, null entries, and slots past the end of a short raw series.
    """
    series = np.full(WINDOW_DAYS, np.nan)
    taken = [np.nan if v is None else v for v in raw[: window.elements_to_take]]
    if taken:
        start = window.leading_gap_count
        series[start:start + len(taken)] = taken
    return series


def window_dates(today: Optional[DateLike] = None) -> List[str]:
    """ISO dates of slots 0..29, newest first"""
    today_date = to_utc_date(today) if today is not None else utc_today()
    return [(today_date - timedelta(days=i)).isoformat() for i in range(WINDOW_DAYS)]
