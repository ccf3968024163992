"""Unit tests for horizon compatibility filtering."""

import pytest

from direct_lags.horizon_filter import filter_lag_spec, filter_offsets, is_compatible
from direct_lags.resolver import resolve_lag_spec
from direct_lags.schemas.lag_spec import REMOVE


PREDICTORS = ["kms", "PetrolPrice", "law"]


@pytest.mark.parametrize(
    "lag, horizon, expected",
    [(0, 12, True), (1, 1, True), (5, 6, False), (6, 6, True), (13, 12, True), (11, 12, False)],
)
def test_is_compatible(lag, horizon, expected):
    assert is_compatible(lag, horizon) is expected


def test_filter_offsets_splits_retained_and_dropped():
    retained, dropped = filter_offsets(range(0, 13), 6)
    assert retained == (0, 6, 7, 8, 9, 10, 11, 12)
    assert dropped == (1, 2, 3, 4, 5)


def test_filter_records_requested_retained_and_dropped():
    resolved = resolve_lag_spec(PREDICTORS, [1, 6, 12], {"kms": "1:12", "PetrolPrice": "1:3", "law": 0})
    filtered = filter_lag_spec(resolved)

    kms_6 = filtered.for_horizon(6)[0]
    assert kms_6.requested == tuple(range(1, 13))
    assert kms_6.retained == tuple(range(6, 13))
    assert kms_6.dropped == (1, 2, 3, 4, 5)

    petrol_12 = filtered.for_horizon(12)[1]
    assert petrol_12.retained == ()
    assert petrol_12.dropped == (1, 2, 3)
    assert not petrol_12.removed


def test_emptied_feature_is_absent_from_retained():
    resolved = resolve_lag_spec(PREDICTORS, [6], {"kms": "1:12", "PetrolPrice": "1:3", "law": 0})
    filtered = filter_lag_spec(resolved)
    assert filtered.retained(6) == {"kms": tuple(range(6, 13)), "law": (0,)}
    assert filtered.max_lag(6) == 12


def test_removed_slot_stays_removed():
    resolved = resolve_lag_spec(PREDICTORS, [1, 12], {1: "1:12", 12: ["12", REMOVE, "12"]})
    filtered = filter_lag_spec(resolved)
    petrol_12 = filtered.for_horizon(12)[1]
    assert petrol_12.removed
    assert petrol_12.requested == ()
    assert "PetrolPrice" not in filtered.retained(12)
    assert filtered.retained(1)["PetrolPrice"] == tuple(range(1, 13))


def test_dynamic_features_survive_every_horizon():
    resolved = resolve_lag_spec(PREDICTORS, [1, 24], "1:3", dynamic_features=["law"])
    filtered = filter_lag_spec(resolved)
    for h in (1, 24):
        law = filtered.for_horizon(h)[2]
        assert law.dynamic
        assert law.retained == (0,)
    assert filtered.retained(24) == {"law": (0,)}
    assert filtered.max_lag(24) == 0


def test_max_lag_of_empty_horizon_is_zero():
    resolved = resolve_lag_spec(PREDICTORS, [12], "1:3")
    assert filter_lag_spec(resolved).max_lag(12) == 0
