"""
Date alignment for lagged tables.

Dates are optional. When supplied they must hold one entry per raw table row,
be strictly increasing within each series and, when a frequency is stated,
sit exactly on the grid that starts at the first date of the series.
"""
import re
import structlog

import numpy as np
import pandas as pd

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from pandas.tseries.frequencies import to_offset

from direct_lags.exceptions import DateAlignmentError

logger = structlog.get_logger()

FREQUENCY_REGEX = re.compile(r"^\s*(\d+)?\s*([A-Za-z]+)\s*$")

# unit -> (DateOffset keyword, multiplier)
FREQUENCY_UNITS = {
    "sec": ("seconds", 1), "second": ("seconds", 1),
    "min": ("minutes", 1), "minute": ("minutes", 1),
    "hour": ("hours", 1),
    "day": ("days", 1),
    "week": ("weeks", 1),
    "month": ("months", 1),
    "quarter": ("months", 3),
    "year": ("years", 1),
}


@dataclass(frozen=True)
class Frequency:
    """A fixed date step, either calendar based ("1 month") or a pandas alias ("MS")."""

    count: int
    unit: Optional[str] = None
    alias: Optional[str] = None

    def sequence(self, start: pd.Timestamp, periods: int) -> pd.DatetimeIndex:
        """`periods` dates on this grid, starting at `start`."""
        if self.unit is None:
            return pd.date_range(start=start, periods=periods, freq=self.alias)
        # Offsets are taken from the start so month ends do not drift.
        return pd.DatetimeIndex(
            [start + pd.DateOffset(**{self.unit: self.count * i}) for i in range(periods)]
        )

    def extend(self, last: pd.Timestamp, periods: int) -> pd.DatetimeIndex:
        """The `periods` dates following `last`."""
        if self.unit is None:
            # date_range would roll an off-anchor `last` forward and lose a period.
            offset = to_offset(self.alias)
            return pd.DatetimeIndex([last + offset * i for i in range(1, periods + 1)])
        return self.sequence(last, periods + 1)[1:]


def parse_frequency(value: str) -> Frequency:
    """
    Parses an interval string such as "1 month", "3 days" or "2 weeks".

    Pandas offset aliases ("MS", "D", "W-MON") are accepted as a fallback.
    """
    if not isinstance(value, str) or not value.strip():
        raise DateAlignmentError(f"Date frequency must be a non-empty string, got {value!r}")

    match = FREQUENCY_REGEX.match(value)
    if match:
        count = int(match.group(1) or 1)
        unit = match.group(2).lower()
        if unit.endswith("s") and unit[:-1] in FREQUENCY_UNITS:
            unit = unit[:-1]
        if unit in FREQUENCY_UNITS:
            if count < 1:
                raise DateAlignmentError(f"Date frequency must step forward, got {value!r}")
            keyword, multiplier = FREQUENCY_UNITS[unit]
            return Frequency(count=count * multiplier, unit=keyword)

    try:
        offset = to_offset(value.strip())
    except ValueError as e:
        raise DateAlignmentError(f"Unrecognised date frequency: {value!r}") from e
    return Frequency(count=1, alias=offset.freqstr)

def _as_datetime_index(dates: Iterable[Any]) -> pd.DatetimeIndex:
    try:
        index = pd.DatetimeIndex(pd.to_datetime(list(dates)))
    except (ValueError, TypeError) as e:
        raise DateAlignmentError("Dates could not be parsed as datetimes") from e
    if index.hasnans:
        raise DateAlignmentError("Dates contain missing values.")
    return index

def _series_positions(n_rows: int, groups: Optional[np.ndarray]):
    if groups is None:
        yield np.arange(n_rows)
        return
    for gid in pd.unique(groups):
        yield np.flatnonzero(groups == gid)

def validate_dates(
    dates: Iterable[Any],
    n_rows: int,
    frequency: Optional[Frequency] = None,
    groups: Optional[np.ndarray] = None,
) -> pd.DatetimeIndex:
    """
    Checks that dates align with the raw table and returns them as a DatetimeIndex.

    Raises:
        DateAlignmentError: on a length mismatch, non-increasing dates or
            dates off the stated frequency grid.
    """
    index = _as_datetime_index(dates)

    if len(index) != n_rows:
        raise DateAlignmentError(
            f"Got {len(index)} dates for a raw table with {n_rows} rows."
        )

    for positions in _series_positions(n_rows, groups):
        series_dates = index[positions]
        if len(series_dates) > 1 and not (np.diff(series_dates.asi8) > 0).all():
            raise DateAlignmentError("Dates must be strictly increasing within each series.")

        if frequency is not None:
            expected = frequency.sequence(series_dates[0], len(series_dates))
            mismatched = np.flatnonzero(expected != series_dates)
            if mismatched.size:
                first = mismatched[0]
                raise DateAlignmentError(
                    f"Date {series_dates[first].date()} is off the stated frequency; "
                    f"expected {expected[first].date()}."
                )

    logger.debug("dates_validated", rows=n_rows, frequency=str(frequency) if frequency else None)
    return index

def resolve_frequency(dates: pd.DatetimeIndex, frequency: Optional[Frequency]) -> Frequency:
    """The stated frequency, or one inferred from the dates when none was given."""
    if frequency is not None:
        return frequency

    inferred = pd.infer_freq(dates) if len(dates) >= 3 else None
    if inferred is None:
        raise DateAlignmentError(
            "A date frequency is required to index forecast rows and could not be inferred."
        )
    logger.info("date_frequency_inferred", frequency=inferred)
    return Frequency(count=1, alias=inferred)
