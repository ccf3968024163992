import structlog

import numpy as np
import pandas as pd
from rapidfuzz import process, fuzz

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from direct_lags.exceptions import DataValidationError

logger = structlog.get_logger()

NAME_SUGGESTION_CUTOFF = 75

RawTable = Union[pd.DataFrame, Mapping[str, Sequence[Any]], Sequence[Mapping[str, Any]]]
ColumnRef = Union[str, int]


def suggest_name(name: Any, candidates: Iterable[str], cutoff: float = NAME_SUGGESTION_CUTOFF) -> Optional[str]:
    """Closest candidate to a misspelled column name, or None."""
    choices = [str(c) for c in candidates]
    if not choices:
        return None
    match = process.extractOne(str(name), choices, scorer=fuzz.ratio, score_cutoff=cutoff)
    return match[0] if match else None

def did_you_mean(name: Any, candidates: Iterable[str]) -> str:
    suggestion = suggest_name(name, candidates)
    return f" Did you mean '{suggestion}'?" if suggestion else ""

def as_frame(raw_table: RawTable) -> pd.DataFrame:
    """
    Coerces a raw table into a DataFrame with a fresh positional index.

    Accepts a DataFrame, a mapping of column name to values, or a sequence of
    row mappings. Column labels are converted to strings so that integer
    references always mean positions. The caller's object is never modified.
    """
    try:
        if isinstance(raw_table, pd.DataFrame):
            df = raw_table.reset_index(drop=True)
        elif isinstance(raw_table, Mapping):
            df = pd.DataFrame(dict(raw_table))
        elif isinstance(raw_table, Sequence) and not isinstance(raw_table, (str, bytes)):
            rows = list(raw_table)
            if not all(isinstance(r, Mapping) for r in rows):
                raise DataValidationError("Row-oriented raw tables must be a sequence of mappings.")
            df = pd.DataFrame.from_records(rows)
        else:
            raise DataValidationError(
                f"Unsupported raw table type: {type(raw_table).__name__}"
            )
    except DataValidationError:
        raise
    except ValueError as e:
        logger.error("raw_table_coercion_failed", error=str(e))
        raise DataValidationError("Raw table could not be converted to a DataFrame") from e

    df.columns = [str(c) for c in df.columns]

    duplicated = df.columns[df.columns.duplicated()].tolist()
    if duplicated:
        raise DataValidationError(f"Raw table has duplicate column names: {duplicated}")
    if df.empty and len(df.columns) == 0:
        raise DataValidationError("Raw table has no columns.")
    if len(df) == 0:
        raise DataValidationError("Raw table has no rows.")

    return df

def _resolve_column(ref: ColumnRef, columns: Sequence[str], label: str) -> str:
    if isinstance(ref, (bool, np.bool_)):
        raise DataValidationError(f"{label} reference must be a name or a position, got {ref!r}")
    if isinstance(ref, (int, np.integer)):
        if not -len(columns) <= ref < len(columns):
            raise DataValidationError(
                f"{label} position {ref} is out of range for {len(columns)} columns."
            )
        return columns[ref]
    if ref not in columns:
        raise DataValidationError(
            f"{label} '{ref}' not found in raw table.{did_you_mean(ref, columns)}"
        )
    return str(ref)

def _as_refs(refs: Union[ColumnRef, Sequence[ColumnRef], None]) -> List[ColumnRef]:
    if refs is None:
        return []
    if isinstance(refs, (str, int, np.integer)):
        return [refs]
    return list(refs)

def resolve_outcome_columns(columns: Sequence[str], outcome_columns: Union[ColumnRef, Sequence[ColumnRef]]) -> List[str]:
    """Outcome names from names or 0-based positions, in the order given."""
    columns = list(columns)
    refs = _as_refs(outcome_columns)
    if not refs:
        raise DataValidationError("At least one outcome column is required.")

    resolved: List[str] = []
    for ref in refs:
        name = _resolve_column(ref, columns, "Outcome column")
        if name not in resolved:
            resolved.append(name)
    return resolved

def resolve_group_columns(
    columns: Sequence[str],
    groups: Union[ColumnRef, Sequence[ColumnRef], None],
    outcome_columns: Sequence[str],
) -> List[str]:
    columns = list(columns)
    resolved: List[str] = []
    for ref in _as_refs(groups):
        name = _resolve_column(ref, columns, "Group column")
        if name in outcome_columns:
            raise DataValidationError(f"Column '{name}' cannot be both an outcome and a group column.")
        if name not in resolved:
            resolved.append(name)
    return resolved

def predictor_columns(columns: Sequence[str], outcome_columns: Sequence[str], group_columns: Sequence[str] = ()) -> List[str]:
    """All non-outcome, non-group columns in table order."""
    excluded = set(outcome_columns) | set(group_columns)
    return [c for c in columns if c not in excluded]

def group_ids(df: pd.DataFrame, group_columns: Sequence[str]) -> Optional[np.ndarray]:
    """Integer series id per row, or None for a single series."""
    if not group_columns:
        return None
    return df.groupby(list(group_columns), sort=False, dropna=False).ngroup().to_numpy()
