"""Unit tests for the lag specification resolver."""

import numpy as np
import pytest

from direct_lags.exceptions import InvalidHorizonError, InvalidLagError, SpecMismatchError
from direct_lags.resolver import parse_offsets, resolve_lag_spec, validate_horizons
from direct_lags.schemas.lag_spec import REMOVE, Offsets, Removed


PREDICTORS = ["kms", "PetrolPrice", "law"]


class TestValidateHorizons:

    def test_sorts_and_deduplicates(self):
        assert validate_horizons([12, 1, 6, 6]) == (1, 6, 12)

    def test_single_int(self):
        assert validate_horizons(3) == (3,)

    def test_numpy_ints_accepted(self):
        assert validate_horizons(np.array([1, 2])) == (1, 2)

    @pytest.mark.parametrize("bad", [[0], [-1], [1.5], [True], ["3"], [], "12"])
    def test_rejects_invalid(self, bad):
        with pytest.raises(InvalidHorizonError):
            validate_horizons(bad)


class TestParseOffsets:

    def test_range_string_is_inclusive(self):
        assert parse_offsets("1:3").lags == (1, 2, 3)

    def test_reverse_range_string(self):
        assert parse_offsets("3:1").lags == (1, 2, 3)

    def test_discrete_string(self):
        assert parse_offsets("12, 1,6").lags == (1, 6, 12)

    def test_python_range(self):
        assert parse_offsets(range(1, 4)).lags == (1, 2, 3)

    def test_iterable_is_sorted_and_deduplicated(self):
        assert parse_offsets([3, 1, 3, 2]).lags == (1, 2, 3)

    def test_single_int(self):
        assert parse_offsets(0).lags == (0,)

    def test_empty_iterable(self):
        assert parse_offsets([]).is_empty

    @pytest.mark.parametrize("bad", [-1, [1, -2], [1.0], [True], "a:b", "1:x", {"a": 1}, 2.5, range(-2, 2)])
    def test_rejects_invalid(self, bad):
        with pytest.raises(InvalidLagError):
            parse_offsets(bad)

    def test_invalid_lag_is_a_spec_mismatch(self):
        with pytest.raises(SpecMismatchError):
            parse_offsets(-1)


class TestResolveLagSpec:

    def test_shorthand_applies_everywhere(self):
        resolved = resolve_lag_spec(PREDICTORS, [1, 6], "1:12")
        for h in (1, 6):
            for p in PREDICTORS:
                assert resolved.slot(h, p).lags == tuple(range(1, 13))

    def test_feature_mapping_applies_to_every_horizon(self):
        spec = {"kms": [1, 2], "PetrolPrice": REMOVE, "law": 12}
        resolved = resolve_lag_spec(PREDICTORS, [1, 12], spec)
        assert resolved.slot(12, "kms") == Offsets.of(1, 2)
        assert isinstance(resolved.slot(1, "PetrolPrice"), Removed)
        assert resolved.slot(1, "law") == Offsets.of(12)

    def test_horizon_mapping_with_positional_entries(self):
        spec = {1: [[1], [1, 2], [3]], 6: [[6], REMOVE, "6:8"]}
        resolved = resolve_lag_spec(PREDICTORS, [6, 1], spec)
        assert resolved.horizons == (1, 6)
        assert resolved.slot(1, "PetrolPrice").lags == (1, 2)
        assert isinstance(resolved.slot(6, "PetrolPrice"), Removed)
        assert resolved.slot(6, "law").lags == (6, 7, 8)

    def test_positional_entries_single_int_slots(self):
        resolved = resolve_lag_spec(PREDICTORS, [1], {1: [1, 2, 3]})
        assert [resolved.slot(1, p).lags for p in PREDICTORS] == [(1,), (2,), (3,)]

    def test_list_of_horizon_entries(self):
        spec = [{"kms": 1, "PetrolPrice": 1, "law": 1}, "12"]
        resolved = resolve_lag_spec(PREDICTORS, [1, 12], spec)
        assert resolved.slot(12, "kms").lags == (12,)

    def test_generator_of_horizon_entries(self):
        entries = (entry for entry in ["1:3", REMOVE])
        resolved = resolve_lag_spec(PREDICTORS, [1, 12], entries)
        assert resolved.slot(1, "law").lags == (1, 2, 3)
        assert isinstance(resolved.slot(12, "kms"), Removed)

    def test_generator_of_lags_is_shorthand(self):
        resolved = resolve_lag_spec(PREDICTORS, [1, 6], (k for k in [6, 1]))
        assert all(resolved.slot(h, p).lags == (1, 6) for h in (1, 6) for p in PREDICTORS)

    def test_remove_at_horizon_level(self):
        resolved = resolve_lag_spec(PREDICTORS, [1, 12], {1: "1:3", 12: REMOVE})
        assert all(isinstance(resolved.slot(12, p), Removed) for p in PREDICTORS)

    def test_dynamic_features_forced_to_zero(self):
        spec = {1: [[1], [1, 2], REMOVE], 6: [[6], [6], [6, 7]]}
        resolved = resolve_lag_spec(PREDICTORS, [1, 6], spec, dynamic_features=["law"])
        assert resolved.slot(1, "law") == Offsets.of(0)
        assert resolved.slot(6, "law") == Offsets.of(0)
        assert resolved.dynamic_features == ("law",)

    def test_entry_count_mismatch(self):
        with pytest.raises(SpecMismatchError, match="2 entries for 3 predictor"):
            resolve_lag_spec(PREDICTORS, [1], {1: [[1], [2]]})

    def test_missing_horizon(self):
        with pytest.raises(SpecMismatchError, match="no entry for horizons \\[6\\]"):
            resolve_lag_spec(PREDICTORS, [1, 6], {1: "1:3"})

    def test_extra_horizon(self):
        with pytest.raises(SpecMismatchError, match="not requested"):
            resolve_lag_spec(PREDICTORS, [1], {1: "1:3", 6: "6"})

    def test_horizon_list_length_mismatch(self):
        with pytest.raises(SpecMismatchError):
            resolve_lag_spec(PREDICTORS, [1, 6, 12], [[[1], [1], [1]], [[6], [6], [6]]])

    def test_missing_feature(self):
        with pytest.raises(SpecMismatchError, match="missing predictor columns \\['law'\\]"):
            resolve_lag_spec(PREDICTORS, [1], {1: {"kms": 1, "PetrolPrice": 1}})

    def test_unknown_feature_gets_suggestion(self):
        spec = {1: {"kms": 1, "PetrolPrise": 1, "law": 1}}
        with pytest.raises(SpecMismatchError, match="Did you mean 'PetrolPrice'"):
            resolve_lag_spec(PREDICTORS, [1], spec)

    def test_unspecified_slot_is_not_removal(self):
        with pytest.raises(SpecMismatchError, match="unspecified"):
            resolve_lag_spec(PREDICTORS, [1], {1: {"kms": 1, "PetrolPrice": None, "law": 1}})

    def test_unspecified_horizon_entry(self):
        with pytest.raises(SpecMismatchError, match="unspecified"):
            resolve_lag_spec(PREDICTORS, [1, 6], {1: "1", 6: None})

    def test_none_spec(self):
        with pytest.raises(SpecMismatchError):
            resolve_lag_spec(PREDICTORS, [1], None)

    def test_mixed_keys_rejected(self):
        with pytest.raises(SpecMismatchError):
            resolve_lag_spec(PREDICTORS, [1], {1: "1", "kms": 1})

    def test_unknown_dynamic_feature(self):
        with pytest.raises(SpecMismatchError, match="Dynamic feature"):
            resolve_lag_spec(PREDICTORS, [1], "1", dynamic_features=["DriversKilled"])

    def test_invalid_horizon_raised_before_spec_checks(self):
        with pytest.raises(InvalidHorizonError):
            resolve_lag_spec(PREDICTORS, [0], None)

    def test_negative_lag_in_slot(self):
        with pytest.raises(InvalidLagError, match="horizon 1, feature 'kms'"):
            resolve_lag_spec(PREDICTORS, [1], {1: [[-1], [1], [1]]})
