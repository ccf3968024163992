"""Pytest configuration and shared fixtures."""

import pytest
import pandas as pd
import numpy as np


N_MONTHS = 192


@pytest.fixture
def seatbelts_df():
    """
    Monthly road casualty style table: one outcome and three predictors.

    Values are deterministic functions of the row position so that shifted
    columns can be checked exactly.
    """
    i = np.arange(N_MONTHS)
    return pd.DataFrame({
        "DriversKilled": 100.0 + i,
        "kms": 1000.0 + 10.0 * i,
        "PetrolPrice": i / 100.0,
        "law": (i >= 169).astype(float),
    })


@pytest.fixture
def seatbelts_dates():
    return pd.date_range(start="1969-01-01", periods=N_MONTHS, freq="MS")


@pytest.fixture
def grouped_df():
    """Two stacked series of unequal length."""
    return pd.DataFrame({
        "store": ["a"] * 10 + ["b"] * 8,
        "sales": np.concatenate([np.arange(10.0), 100.0 + np.arange(8.0)]),
        "price": np.concatenate([10.0 + np.arange(10.0), 200.0 + np.arange(8.0)]),
    })


@pytest.fixture
def grouped_dates():
    a = pd.date_range(start="2020-01-01", periods=10, freq="MS")
    b = pd.date_range(start="2020-03-01", periods=8, freq="MS")
    return a.append(b)
