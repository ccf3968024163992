"""
Lagged table builder.

Materializes one table per forecast horizon from the filtered lag spec.

Train tables
------------
Row i is a forecast origin. For every retained (feature, k) the column
``feature_lag_k`` holds the raw value at row i - k, and each outcome column
holds the raw value at row i + h, the value to be predicted h steps ahead.
Dynamic features appear as ``feature_lag_0`` (the value at row i).

Rows without a full lag history (i < max retained lag) and rows without an
outcome (i + h past the last row) are dropped unless
``EngineConfig.drop_incomplete_rows`` is off, in which case they are kept
with missing values.

Forecast tables
---------------
Forecast tables use the train layout with the last observed row as the
forecast origin: one row per series, so ``feature_lag_k`` holds the raw value
at row n - 1 - k and dynamic features hold the value at row n - 1. The row is
indexed by its target, the date h steps past the last observation (or
position n - 1 + h without dates), and the horizon column holds h. A model fit
on the train table for h scores the forecast table for h unchanged. Forecast
tables carry no outcome column.

With groups, each series is shifted and trimmed on its own.
"""
import structlog

import numpy as np
import pandas as pd

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from direct_lags.config import EngineConfig
from direct_lags.dates import Frequency
from direct_lags.features import lag_column_name
from direct_lags.schemas.lag_spec import FeatureLags, FilteredLagSpec

logger = structlog.get_logger()

RETAINED = "retained"
DROPPED = "dropped"
REMOVED = "removed"

PROFILE_COLUMNS = ["feature", "horizon", "lag", "status", "dynamic", "column"]


class TableKind(str, Enum):
    TRAIN = "train"
    FORECAST = "forecast"

    @classmethod
    def coerce(cls, value) -> "TableKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"kind must be one of {[k.value for k in cls]}, got {value!r}"
            ) from None


def _empty_profile() -> pd.DataFrame:
    return pd.DataFrame(columns=PROFILE_COLUMNS)


@dataclass(frozen=True, eq=False)
class LaggedTable:
    """
    The lagged predictors (and outcome, for train tables) for one horizon.

    `feature_lags` maps each feature with at least one column to its retained
    offsets; `feature_columns` maps the same features to the generated column
    names. `lag_profile` lists, per feature, which requested offsets were
    retained, dropped by the horizon filter or removed, for plotting.
    """

    horizon: int
    kind: TableKind
    frame: pd.DataFrame
    outcome_columns: Tuple[str, ...]
    predictor_columns: Tuple[str, ...]
    feature_lags: Dict[str, Tuple[int, ...]]
    feature_columns: Dict[str, Tuple[str, ...]]
    dynamic_features: Tuple[str, ...] = ()
    group_columns: Tuple[str, ...] = ()
    lag_profile: pd.DataFrame = field(default_factory=_empty_profile, repr=False)

    @property
    def is_empty(self) -> bool:
        """True when no predictor column survived filtering."""
        return not self.predictor_columns

    def columns_for(self, feature: str) -> List[str]:
        return list(self.feature_columns.get(feature, ()))

    def predictors(self) -> pd.DataFrame:
        return self.frame[list(self.predictor_columns)]

    def outcome(self) -> pd.DataFrame:
        return self.frame[list(self.outcome_columns)]

    def __len__(self) -> int:
        return len(self.frame)


def build_lag_profile(feature_lags: Iterable[FeatureLags], template: str) -> pd.DataFrame:
    """Long-format lag profile: one row per (feature, horizon, lag)."""
    records = []
    for fl in feature_lags:
        if fl.removed:
            records.append({
                "feature": fl.feature, "horizon": fl.horizon, "lag": None,
                "status": REMOVED, "dynamic": fl.dynamic, "column": None,
            })
            continue
        for lag in sorted(fl.retained + fl.dropped):
            kept = lag in fl.retained
            records.append({
                "feature": fl.feature, "horizon": fl.horizon, "lag": lag,
                "status": RETAINED if kept else DROPPED, "dynamic": fl.dynamic,
                "column": lag_column_name(fl.feature, lag, template) if kept else None,
            })

    profile = pd.DataFrame.from_records(records, columns=PROFILE_COLUMNS)
    profile["lag"] = profile["lag"].astype("Int64")
    profile["horizon"] = profile["horizon"].astype("int64")
    profile["dynamic"] = profile["dynamic"].astype(bool)
    return profile

def _shift(frame: pd.DataFrame, column: str, periods: int, group_columns: Sequence[str]) -> pd.Series:
    if group_columns:
        return frame.groupby(list(group_columns), sort=False, dropna=False)[column].shift(periods)
    return frame[column].shift(periods)

def _series_positions(frame: pd.DataFrame, group_columns: Sequence[str]) -> List[np.ndarray]:
    if not group_columns:
        return [np.arange(len(frame))]
    grouped = frame.groupby(list(group_columns), sort=False, dropna=False)
    return list(grouped.indices.values())

def _train_frame(
    frame: pd.DataFrame,
    feature_lags: Sequence[FeatureLags],
    horizon: int,
    max_lag: int,
    outcome_columns: Sequence[str],
    group_columns: Sequence[str],
    dates: Optional[pd.DatetimeIndex],
    config: EngineConfig,
) -> pd.DataFrame:
    columns: Dict[str, pd.Series] = {}
    for group in group_columns:
        columns[group] = frame[group]
    for outcome in outcome_columns:
        columns[outcome] = _shift(frame, outcome, -horizon, group_columns)
    for fl in feature_lags:
        for lag in fl.retained:
            name = lag_column_name(fl.feature, lag, config.lag_column_template)
            columns[name] = _shift(frame, fl.feature, lag, group_columns)

    table = pd.DataFrame(columns, index=frame.index)

    if group_columns:
        grouped = frame.groupby(list(group_columns), sort=False, dropna=False)
        position = grouped.cumcount().to_numpy()
        remaining = grouped.cumcount(ascending=False).to_numpy()
    else:
        position = np.arange(len(frame))
        remaining = len(frame) - 1 - position

    if dates is not None:
        table.index = pd.DatetimeIndex(dates, name=config.date_index_name)

    if config.drop_incomplete_rows:
        keep = (position >= max_lag) & (remaining >= horizon)
        table = table[keep]
    return table

def _forecast_frame(
    frame: pd.DataFrame,
    feature_lags: Sequence[FeatureLags],
    horizon: int,
    group_columns: Sequence[str],
    dates: Optional[pd.DatetimeIndex],
    frequency: Optional[Frequency],
    config: EngineConfig,
) -> pd.DataFrame:
    rows = []
    targets = []
    for positions in _series_positions(frame, group_columns):
        n = len(positions)
        origin = positions[-1]
        row = {config.horizon_column: horizon}
        for group in group_columns:
            row[group] = frame[group].iloc[origin]
        for fl in feature_lags:
            series = frame[fl.feature].iloc[positions]
            for lag in fl.retained:
                name = lag_column_name(fl.feature, lag, config.lag_column_template)
                # Series shorter than the lag have no observed value for it.
                row[name] = series.iloc[n - 1 - lag] if lag < n else np.nan
        rows.append(row)

        if dates is not None:
            targets.append(frequency.extend(dates[origin], horizon)[-1])
        else:
            targets.append(n - 1 + horizon)

    table = pd.DataFrame.from_records(rows)
    if dates is not None:
        table.index = pd.DatetimeIndex(targets, name=config.date_index_name)
    else:
        table.index = pd.Index(targets)
    return table

def build_horizon_table(
    frame: pd.DataFrame,
    filtered: FilteredLagSpec,
    horizon: int,
    kind: TableKind = TableKind.TRAIN,
    outcome_columns: Sequence[str] = (),
    group_columns: Sequence[str] = (),
    dates: Optional[pd.DatetimeIndex] = None,
    frequency: Optional[Frequency] = None,
    config: Optional[EngineConfig] = None,
) -> LaggedTable:
    """
    Builds the lagged table for a single horizon.

    Reads `frame` and `filtered` without modifying them, so horizons can be
    built concurrently.
    """
    config = config or EngineConfig()
    kind = TableKind.coerce(kind)
    feature_lags = filtered.for_horizon(horizon)
    template = config.lag_column_template

    # Bound here rather than by the caller: worker threads start with an empty context.
    with structlog.contextvars.bound_contextvars(kind=kind.value, horizon=horizon):
        if kind is TableKind.TRAIN:
            table = _train_frame(
                frame, feature_lags, horizon, filtered.max_lag(horizon),
                outcome_columns, group_columns, dates, config,
            )
            outcomes = tuple(outcome_columns)
        else:
            table = _forecast_frame(frame, feature_lags, horizon, group_columns, dates, frequency, config)
            outcomes = ()

        retained = filtered.retained(horizon)
        feature_columns = {
            feature: tuple(lag_column_name(feature, lag, template) for lag in lags)
            for feature, lags in retained.items()
        }
        predictor_columns = tuple(name for names in feature_columns.values() for name in names)

        logger.debug("horizon_table_built", rows=len(table), predictor_columns=len(predictor_columns))

    return LaggedTable(
        horizon=horizon,
        kind=kind,
        frame=table,
        outcome_columns=outcomes,
        predictor_columns=predictor_columns,
        feature_lags=retained,
        feature_columns=feature_columns,
        dynamic_features=filtered.dynamic_features,
        group_columns=tuple(group_columns),
        lag_profile=build_lag_profile(feature_lags, template),
    )

def lag_profile(tables: Dict[int, LaggedTable]) -> pd.DataFrame:
    """Lag profiles of all horizons in one frame, ordered by horizon."""
    profiles = [tables[h].lag_profile for h in sorted(tables)]
    if not profiles:
        return _empty_profile()
    return pd.concat(profiles, ignore_index=True)
