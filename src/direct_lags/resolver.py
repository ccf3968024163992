"""
Lag specification resolver.

Turns a user supplied lag spec into a ``ResolvedLagSpec`` where every horizon
maps every predictor column to either ``Offsets`` or ``Removed``.

Accepted forms
--------------
- Shorthand applied to every predictor at every horizon: an int, a ``range``,
  an iterable of ints, a string ``"1:12"`` (inclusive) or ``"1,6,12"``,
  an ``Offsets`` instance or ``REMOVE``.
- A mapping of feature name to shorthand, applied to every horizon.
- A mapping of horizon to per-horizon entry.
- A list of per-horizon entries, positional over the sorted horizons.

A per-horizon entry is shorthand for all predictors, a mapping of feature
name to slot, or a list positional over the predictor columns. A slot is
shorthand or ``REMOVE``; ``None`` means "unspecified" and is rejected.
"""
import structlog

import numpy as np

from collections.abc import Iterable, Mapping
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from direct_lags.data import did_you_mean
from direct_lags.exceptions import InvalidHorizonError, InvalidLagError, SpecMismatchError
from direct_lags.schemas.lag_spec import Offsets, Removed, ResolvedLagSpec, REMOVE

logger = structlog.get_logger()

RANGE_SEPARATOR = ":"
SET_SEPARATOR = ","


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))

def validate_horizons(horizons: Union[int, Iterable[int]]) -> Tuple[int, ...]:
    """Sorted, de-duplicated positive integer horizons."""
    if _is_int(horizons):
        horizons = [horizons]
    if isinstance(horizons, (str, bytes)) or not isinstance(horizons, Iterable):
        raise InvalidHorizonError(f"Horizons must be positive integers, got {horizons!r}")

    validated = set()
    for h in horizons:
        if not _is_int(h) or h < 1:
            raise InvalidHorizonError(f"Horizon must be a positive integer, got {h!r}")
        validated.add(int(h))

    if not validated:
        raise InvalidHorizonError("At least one forecast horizon is required.")
    return tuple(sorted(validated))

def _parse_lag(value: Any, where: str) -> int:
    if not _is_int(value):
        raise InvalidLagError(f"{where}: lag offsets must be integers, got {value!r}")
    if value < 0:
        raise InvalidLagError(f"{where}: lag offsets must be non-negative, got {value}")
    return int(value)

def _parse_lag_string(text: str, where: str) -> Tuple[int, ...]:
    text = text.strip()
    try:
        if RANGE_SEPARATOR in text:
            start, _, stop = text.partition(RANGE_SEPARATOR)
            lo, hi = sorted((int(start), int(stop)))
            lags = tuple(range(lo, hi + 1))
        else:
            lags = tuple(int(part) for part in text.split(SET_SEPARATOR) if part.strip())
    except ValueError as e:
        raise InvalidLagError(f"{where}: cannot parse lag shorthand {text!r}") from e
    return tuple(_parse_lag(lag, where) for lag in lags)

def parse_offsets(value: Any, where: str = "lag spec") -> Offsets:
    """Normalizes an int, range, string or iterable of ints into ``Offsets``."""
    if isinstance(value, Offsets):
        return value
    if isinstance(value, str):
        return Offsets(lags=_parse_lag_string(value, where))
    if _is_int(value):
        return Offsets.of(_parse_lag(value, where))
    if isinstance(value, Mapping) or not isinstance(value, Iterable):
        raise InvalidLagError(f"{where}: unsupported lag offsets {value!r}")
    return Offsets(lags=tuple(_parse_lag(lag, where) for lag in value))

def _is_shorthand(value: Any) -> bool:
    """True for values that describe one offset set rather than a nested structure."""
    if isinstance(value, (Offsets, Removed, str, range)) or _is_int(value):
        return True
    if isinstance(value, Mapping) or not isinstance(value, Iterable):
        return False
    return all(_is_int(v) for v in value)

def _resolve_slot(value: Any, horizon: int, feature: str) -> Union[Offsets, Removed]:
    where = f"horizon {horizon}, feature '{feature}'"
    if value is None:
        raise SpecMismatchError(
            f"{where}: lag slot is unspecified. Use REMOVE to build no columns for it."
        )
    if isinstance(value, Removed):
        return REMOVE
    return parse_offsets(value, where)

def _resolve_entry(entry: Any, predictors: Sequence[str], horizon: int) -> Dict[str, Union[Offsets, Removed]]:
    if entry is None:
        raise SpecMismatchError(f"Lag spec entry for horizon {horizon} is unspecified.")

    if isinstance(entry, Mapping):
        unknown = [k for k in entry if k not in predictors]
        if unknown:
            hints = "".join(did_you_mean(k, predictors) for k in unknown)
            raise SpecMismatchError(
                f"Lag spec for horizon {horizon} names non-predictor columns {unknown}.{hints}"
            )
        missing = [p for p in predictors if p not in entry]
        if missing:
            raise SpecMismatchError(
                f"Lag spec for horizon {horizon} is missing predictor columns {missing}."
            )
        return {p: _resolve_slot(entry[p], horizon, p) for p in predictors}

    if isinstance(entry, (Offsets, Removed, str, range)) or _is_int(entry):
        return {p: _resolve_slot(entry, horizon, p) for p in predictors}

    if not isinstance(entry, Iterable):
        raise SpecMismatchError(f"Lag spec entry for horizon {horizon} has unsupported type {type(entry).__name__}.")

    slots = list(entry)
    if len(slots) != len(predictors):
        raise SpecMismatchError(
            f"Lag spec for horizon {horizon} has {len(slots)} entries "
            f"for {len(predictors)} predictor columns."
        )
    return {p: _resolve_slot(slot, horizon, p) for p, slot in zip(predictors, slots)}

def _entries_by_horizon(lag_spec: Any, horizons: Tuple[int, ...], predictors: Sequence[str]) -> Dict[int, Any]:
    if lag_spec is None:
        raise SpecMismatchError("A lag spec is required.")
    # Generators and other one-shot iterables are read exactly once.
    if isinstance(lag_spec, Iterable) and not isinstance(
        lag_spec, (Offsets, Removed, Mapping, Sequence, range)
    ):
        lag_spec = list(lag_spec)

    if _is_shorthand(lag_spec):
        return {h: lag_spec for h in horizons}

    if isinstance(lag_spec, Mapping):
        keys = list(lag_spec)
        if keys and all(isinstance(k, str) for k in keys):
            return {h: lag_spec for h in horizons}
        if not all(_is_int(k) for k in keys):
            raise SpecMismatchError(
                "Lag spec keys must be all horizons (ints) or all feature names (strings)."
            )
        extra = sorted(int(k) for k in keys if int(k) not in horizons)
        if extra:
            raise SpecMismatchError(f"Lag spec has entries for horizons {extra} that were not requested.")
        by_horizon = {int(k): v for k, v in lag_spec.items()}
        missing = [h for h in horizons if h not in by_horizon]
        if missing:
            raise SpecMismatchError(f"Lag spec has no entry for horizons {missing}.")
        return by_horizon

    if isinstance(lag_spec, Iterable):
        entries = list(lag_spec)
        if len(entries) != len(horizons):
            raise SpecMismatchError(
                f"Lag spec has {len(entries)} horizon entries for {len(horizons)} horizons."
            )
        return dict(zip(horizons, entries))

    raise SpecMismatchError(f"Unsupported lag spec type: {type(lag_spec).__name__}")

def _validate_dynamic_features(dynamic_features: Optional[Sequence[str]], predictors: Sequence[str]) -> Tuple[str, ...]:
    if dynamic_features is None:
        return ()
    if isinstance(dynamic_features, str):
        dynamic_features = [dynamic_features]

    resolved = []
    for name in dynamic_features:
        if name not in predictors:
            raise SpecMismatchError(
                f"Dynamic feature '{name}' is not a predictor column.{did_you_mean(name, predictors)}"
            )
        if name not in resolved:
            resolved.append(name)
    return tuple(resolved)

def resolve_lag_spec(
    predictors: Sequence[str],
    horizons: Union[int, Iterable[int]],
    lag_spec: Any,
    dynamic_features: Optional[Sequence[str]] = None,
) -> ResolvedLagSpec:
    """
    Validates and normalizes a lag spec for the given predictor columns.

    Dynamic features are forced to offset 0 at every horizon, whatever the
    spec asks for them, including REMOVE. Entries for them must still be
    present so that the spec shape matches the predictor columns.

    Raises:
        InvalidHorizonError: if a horizon is not a positive integer.
        SpecMismatchError: if the spec does not cover exactly the predictor
            columns for every horizon.
        InvalidLagError: if an offset is negative or not an integer.
    """
    predictors = tuple(predictors)
    horizons = validate_horizons(horizons)
    dynamic = _validate_dynamic_features(dynamic_features, predictors)

    try:
        by_horizon = _entries_by_horizon(lag_spec, horizons, predictors)
        entries = {h: _resolve_entry(by_horizon[h], predictors, h) for h in horizons}
    except SpecMismatchError as e:
        logger.error("lag_spec_invalid", error=str(e))
        raise

    overridden = 0
    for h in horizons:
        for feature in dynamic:
            if entries[h][feature] != Offsets.of(0):
                overridden += 1
            entries[h][feature] = Offsets.of(0)

    logger.info(
        "lag_spec_resolved",
        horizons=list(horizons),
        predictors=len(predictors),
        dynamic_features=list(dynamic),
        dynamic_overrides=overridden,
    )
    return ResolvedLagSpec(
        horizons=horizons,
        predictors=predictors,
        dynamic_features=dynamic,
        entries=entries,
    )
