import numpy as np

from bermudan_mc.models import MonteCarloAssetModel
from bermudan_mc.rates import DiscountCurve
from bermudan_mc.valuation import BinnedBasis, ExerciseSchedule, MonomialBasis


def black_scholes_model(
    *,
    paths: int = 20_000,
    seed: int = 3141,
    initial_value: float = 100.0,
    rate: float = 0.0,
    vol: float = 0.30,
    horizon: float = 5.0,
    dt: float = 1.0,
) -> MonteCarloAssetModel:
    return MonteCarloAssetModel.from_black_scholes(
        initial_value=initial_value,
        risk_free_rate=rate,
        volatility=vol,
        time_horizon=horizon,
        dt=dt,
        number_of_paths=paths,
        seed=seed,
    )


def model_from_paths(time_grid, paths, rate: float = 0.0) -> MonteCarloAssetModel:
    """Wrap a hand-written path matrix (rows = times, columns = paths)."""
    time_grid = np.asarray(time_grid, dtype=float)
    curve = DiscountCurve.flat(rate, float(time_grid[-1]))
    return MonteCarloAssetModel(time_grid, np.asarray(paths, dtype=float), curve)


def two_date_schedule(rate: float = 0.0) -> ExerciseSchedule:
    """Exercise at T=2 (strike 80) or T=5 (strike 100), forward-adjusted."""
    growth = np.exp(rate * 5.0)
    return ExerciseSchedule(
        exercise_dates=(2.0, 5.0),
        notionals=(1.0, 1.0),
        strikes=(80.0 * growth, 100.0 * growth),
    )


def random_bases(seed: int, count: int = 6) -> list:
    """Seeded mix of monomial (degree 1-6) and binned (5-60 bins) bases."""
    rng = np.random.default_rng(seed)
    bases = []
    for _ in range(count):
        if rng.random() < 0.5:
            bases.append(MonomialBasis(degree=int(rng.integers(1, 7))))
        else:
            bases.append(BinnedBasis(number_of_bins=int(rng.integers(5, 61))))
    return bases
