"""
Horizon compatibility filter.

For direct forecasting at horizon h a lag k with 0 < k < h would need values
that are not yet observed when the forecast is made. Such lags are dropped
without error; the drop is recorded on ``FeatureLags`` for lag profiles.
Offset 0 (dynamic features) is always kept.
"""
import structlog

from typing import Iterable, Tuple

from direct_lags.schemas.lag_spec import FeatureLags, FilteredLagSpec, Removed, ResolvedLagSpec

logger = structlog.get_logger()


def is_compatible(lag: int, horizon: int) -> bool:
    return lag == 0 or lag >= horizon

def filter_offsets(lags: Iterable[int], horizon: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """Splits lags into (retained, dropped) for one horizon."""
    retained, dropped = [], []
    for lag in lags:
        (retained if is_compatible(lag, horizon) else dropped).append(lag)
    return tuple(retained), tuple(dropped)

def filter_lag_spec(resolved: ResolvedLagSpec) -> FilteredLagSpec:
    entries = {}
    for h in resolved.horizons:
        feature_lags = []
        for feature in resolved.predictors:
            slot = resolved.slot(h, feature)
            dynamic = feature in resolved.dynamic_features

            if isinstance(slot, Removed):
                feature_lags.append(FeatureLags(feature=feature, horizon=h, removed=True))
                continue

            retained, dropped = filter_offsets(slot.lags, h)
            if dropped:
                logger.debug("lags_dropped", horizon=h, feature=feature, dropped=list(dropped))
            feature_lags.append(
                FeatureLags(
                    feature=feature,
                    horizon=h,
                    requested=slot.lags,
                    retained=retained,
                    dropped=dropped,
                    dynamic=dynamic,
                )
            )
        entries[h] = tuple(feature_lags)

    return FilteredLagSpec(
        horizons=resolved.horizons,
        predictors=resolved.predictors,
        dynamic_features=resolved.dynamic_features,
        entries=entries,
    )
