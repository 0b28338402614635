"""Shared pytest fixtures for bermudan_mc tests."""

import pytest

from bermudan_mc.enums import OptionType
from bermudan_mc.valuation import ExerciseSchedule

from bermudan_mc.tests.helpers import black_scholes_model, two_date_schedule


# ---------------------------------------------------------------------------
# Scalar constants
# ---------------------------------------------------------------------------

VOL = 0.30
RATE = 0.0
SEED = 3141


@pytest.fixture()
def vol() -> float:
    return VOL


@pytest.fixture()
def risk_free_rate() -> float:
    return RATE


# ---------------------------------------------------------------------------
# Simulation models (shared: building them is the expensive part)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def bs_model():
    """Black-Scholes model, S0=100, r=0, sigma=30%, yearly grid to T=5, 100k paths."""
    return black_scholes_model(paths=100_000, seed=SEED, vol=VOL, rate=RATE)


@pytest.fixture(scope="session")
def small_bs_model():
    """Same dynamics on 5k paths for optimizer-heavy tests."""
    return black_scholes_model(paths=5_000, seed=SEED)


@pytest.fixture(scope="session")
def rates_bs_model():
    """Black-Scholes model with a 3% short rate."""
    return black_scholes_model(paths=50_000, seed=7, rate=0.03)


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@pytest.fixture()
def bermudan_schedule() -> ExerciseSchedule:
    return two_date_schedule()


@pytest.fixture()
def three_date_schedule() -> ExerciseSchedule:
    return ExerciseSchedule(
        exercise_dates=(1.0, 3.0, 5.0),
        notionals=(1.0, 1.0, 1.0),
        strikes=(90.0, 95.0, 100.0),
    )


@pytest.fixture()
def put_schedule() -> ExerciseSchedule:
    return ExerciseSchedule(
        exercise_dates=(1.0, 2.0, 3.0, 4.0, 5.0),
        notionals=(1.0,) * 5,
        strikes=(100.0,) * 5,
        option_type=OptionType.PUT,
    )
