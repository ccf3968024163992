import warnings
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import structlog

from direct_lags.builder import LaggedTable, TableKind, build_horizon_table
from direct_lags.config import EngineConfig
from direct_lags.data import (
    ColumnRef,
    RawTable,
    as_frame,
    group_ids,
    predictor_columns,
    resolve_group_columns,
    resolve_outcome_columns,
)
from direct_lags.dates import parse_frequency, resolve_frequency, validate_dates
from direct_lags.exceptions import DataValidationError, EmptyResultWarning
from direct_lags.features import lag_column_name
from direct_lags.horizon_filter import filter_lag_spec
from direct_lags.resolver import resolve_lag_spec
from direct_lags.schemas.lag_spec import FilteredLagSpec


logger = structlog.get_logger()

def _check_column_collisions(
    filtered: FilteredLagSpec,
    reserved: Sequence[str],
    config: EngineConfig,
) -> None:
    """Generated column names must not clash with each other or with carried columns."""
    seen = set(reserved)
    for h in filtered.horizons:
        names = set(seen)
        for fl in filtered.for_horizon(h):
            for lag in fl.retained:
                name = lag_column_name(fl.feature, lag, config.lag_column_template)
                if name in names:
                    raise DataValidationError(
                        f"Generated column '{name}' for horizon {h} clashes with an existing column."
                    )
                names.add(name)

def build_lagged_tables(
    raw_table: RawTable,
    kind: Union[TableKind, str],
    outcome_columns: Union[ColumnRef, Sequence[ColumnRef]],
    horizons: Union[int, Iterable[int]],
    lag_spec: Any,
    dates: Optional[Iterable[Any]] = None,
    date_frequency: Optional[str] = None,
    dynamic_features: Optional[Sequence[str]] = None,
    groups: Optional[Union[ColumnRef, Sequence[ColumnRef]]] = None,
    config: Optional[EngineConfig] = None,
) -> Dict[int, LaggedTable]:
    """
    Builds one lagged table per forecast horizon for direct forecasting.

    Everything is validated before the first table is built, so a failure
    never leaves partial output behind. Lags shorter than a horizon are
    dropped from that horizon's table without error; a horizon left with no
    predictor columns still gets a table (outcome-only for train) and an
    EmptyResultWarning.

    Args:
        raw_table: DataFrame, mapping of columns or sequence of row mappings.
        kind: "train" or "forecast".
        outcome_columns: Target column names or 0-based positions.
        horizons: Positive forecast horizons.
        lag_spec: Lag offsets per horizon and feature, see ``direct_lags.resolver``.
        dates: One date per raw row, used as the table index.
        date_frequency: Interval string such as "1 month".
        dynamic_features: Predictors used at offset 0 at every horizon.
        groups: Columns identifying independent series stacked in the table.
        config: Layout and execution options.

    Returns:
        Mapping of horizon to LaggedTable, in ascending horizon order.
    """
    config = config or EngineConfig.from_settings()
    kind = TableKind.coerce(kind)

    # ---- Validation: nothing is built until all of it passes ----
    frame = as_frame(raw_table)
    outcomes = resolve_outcome_columns(frame.columns, outcome_columns)
    group_columns = resolve_group_columns(frame.columns, groups, outcomes)
    predictors = predictor_columns(frame.columns, outcomes, group_columns)

    frequency = parse_frequency(date_frequency) if date_frequency is not None else None
    date_index = None
    if dates is not None:
        ids = group_ids(frame, group_columns)
        date_index = validate_dates(dates, len(frame), frequency, ids)
        if kind is TableKind.FORECAST:
            first_series = date_index if ids is None else date_index[ids == ids[0]]
            frequency = resolve_frequency(first_series, frequency)

    resolved = resolve_lag_spec(predictors, horizons, lag_spec, dynamic_features)
    filtered = filter_lag_spec(resolved)

    reserved = list(group_columns)
    if kind is TableKind.TRAIN:
        reserved += outcomes
    else:
        if config.horizon_column in group_columns:
            raise DataValidationError(
                f"Group column '{config.horizon_column}' clashes with the forecast horizon column."
            )
        reserved.append(config.horizon_column)
    _check_column_collisions(filtered, reserved, config)

    logger.info(
        "building_lagged_tables",
        kind=kind.value,
        rows=len(frame),
        horizons=list(filtered.horizons),
        predictors=len(predictors),
        groups=group_columns or None,
    )

    # ---- Construction: a pure map over horizons ----
    build = partial(
        build_horizon_table,
        frame,
        filtered,
        kind=kind,
        outcome_columns=outcomes,
        group_columns=group_columns,
        dates=date_index,
        frequency=frequency,
        config=config,
    )

    if config.max_workers > 1 and len(filtered.horizons) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            built = list(pool.map(build, filtered.horizons))
    else:
        built = [build(h) for h in filtered.horizons]
    tables = dict(zip(filtered.horizons, built))

    carried = "an outcome-only table" if kind is TableKind.TRAIN else "a table without predictors"
    for h, table in tables.items():
        if table.is_empty and config.warn_on_empty:
            logger.warning("horizon_has_no_predictors", horizon=h, kind=kind.value, rows=len(table))
            warnings.warn(
                f"Horizon {h} has no predictor columns after filtering; returning {carried}.",
                EmptyResultWarning,
                stacklevel=2,
            )

    logger.info(
        "lagged_tables_built",
        tables={h: len(t.predictor_columns) for h, t in tables.items()},
    )
    return tables
