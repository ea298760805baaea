from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest


@pytest.fixture
def resting_heart_rates() -> list[float]:
    return [70.0, 72.0, 71.0, 69.0, 70.0, 73.0, 71.0, 72.0]


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(2024)
