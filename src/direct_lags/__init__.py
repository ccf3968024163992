from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("direct-lags")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

from direct_lags.builder import LaggedTable, TableKind, lag_profile
from direct_lags.config import EngineConfig
from direct_lags.exceptions import (
    DataValidationError,
    DateAlignmentError,
    DirectLagsError,
    EmptyResultWarning,
    InvalidHorizonError,
    InvalidLagError,
    SpecMismatchError,
)
from direct_lags.features import lag_column_name, parse_lag_column
from direct_lags.horizon_filter import filter_lag_spec
from direct_lags.pipeline import build_lagged_tables
from direct_lags.resolver import resolve_lag_spec
from direct_lags.schemas.lag_spec import REMOVE, Offsets, Removed

__all__ = [
    "__version__",
    "build_lagged_tables",
    "resolve_lag_spec",
    "filter_lag_spec",
    "lag_profile",
    "lag_column_name",
    "parse_lag_column",
    "LaggedTable",
    "TableKind",
    "EngineConfig",
    "REMOVE",
    "Offsets",
    "Removed",
    "DirectLagsError",
    "DataValidationError",
    "DateAlignmentError",
    "EmptyResultWarning",
    "InvalidHorizonError",
    "InvalidLagError",
    "SpecMismatchError",
]
