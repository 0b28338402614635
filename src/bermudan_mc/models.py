"""Simulation model contract consumed by the valuation engines, plus a path-matrix adapter."""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable
import logging
import numpy as np

from .exceptions import ModelContractError, ValidationError
from .path_vector import PathVector
from .rates import DiscountCurve
from .stochastic_processes import GBMParams, GeometricBrownianMotion, SimulationConfig

__all__ = ["SimulationModel", "MonteCarloAssetModel"]

logger = logging.getLogger(__name__)

_TIME_TOLERANCE = 1e-10


@runtime_checkable
class SimulationModel(Protocol):
    """Read-only view of simulated underlying and numeraire values.

    All queries are keyed to the model's time discretization. The engines
    never mutate a model.
    """

    @property
    def number_of_paths(self) -> int: ...

    def get_underlying_value(self, time: float) -> PathVector: ...

    def get_numeraire(self, time: float) -> PathVector: ...

    def get_discount_factor(self, time: float) -> float: ...


class MonteCarloAssetModel:
    """Simulation model over an already simulated ``(times, paths)`` matrix.

    The numeraire is the deterministic bank account ``N(t) = 1 / df(t)``.

    Parameters
    ==========
    time_grid:
        Strictly increasing year fractions, shape ``(M,)``.
    paths:
        Underlying values, shape ``(M, number_of_paths)``.
    discount_curve:
        Curve providing discount factors (and hence the numeraire).
    log_drift:
        Optional ``t -> E[log S(t)]``; used to centre the log-underlying
        martingale of the dual method exactly.
    """

    def __init__(
        self,
        time_grid: np.ndarray,
        paths: np.ndarray,
        discount_curve: DiscountCurve,
        log_drift: Callable[[float], float] | None = None,
    ) -> None:
        times = np.array(time_grid, dtype=float)
        values = np.array(paths, dtype=float)
        if times.ndim != 1 or times.size < 1:
            raise ValidationError("time_grid must be a non-empty 1-D array")
        if np.any(np.diff(times) <= 0.0):
            raise ValidationError("time_grid must be strictly increasing")
        if values.ndim != 2 or values.shape[0] != times.size:
            raise ValidationError(
                f"paths must have shape (len(time_grid), n_paths) = ({times.size}, n), "
                f"got {values.shape}"
            )
        if not np.all(np.isfinite(values)):
            raise ModelContractError("paths contain non-finite values")
        times.flags.writeable = False
        values.flags.writeable = False
        self.time_grid = times
        self._paths = values
        self.discount_curve = discount_curve
        self._log_drift = log_drift

    @classmethod
    def from_black_scholes(
        cls,
        *,
        initial_value: float,
        risk_free_rate: float,
        volatility: float,
        time_horizon: float,
        dt: float,
        number_of_paths: int,
        seed: int | None = None,
    ) -> MonteCarloAssetModel:
        """Simulate a Black-Scholes model and wrap the resulting paths."""
        sim = SimulationConfig(paths=number_of_paths, time_horizon=time_horizon, dt=dt)
        curve = DiscountCurve.flat(risk_free_rate, time_horizon)
        process = GeometricBrownianMotion(
            GBMParams(initial_value=initial_value, volatility=volatility), sim, curve
        )
        paths = process.simulate(random_seed=seed)
        logger.debug(
            "Simulated Black-Scholes paths=%d steps=%d seed=%s",
            number_of_paths,
            sim.num_steps,
            seed,
        )

        def log_drift(t: float) -> float:
            return (
                float(np.log(initial_value))
                + risk_free_rate * (t - sim.initial_time)
                - 0.5 * volatility**2 * (t - sim.initial_time)
            )

        return cls(process.time_grid, paths, curve, log_drift=log_drift)

    @property
    def number_of_paths(self) -> int:
        return int(self._paths.shape[1])

    def _time_index(self, time: float) -> int:
        idx = int(np.argmin(np.abs(self.time_grid - float(time))))
        if abs(self.time_grid[idx] - float(time)) > _TIME_TOLERANCE:
            raise ModelContractError(
                f"time {time} is not part of the model time discretization "
                f"[{self.time_grid[0]:g}, ..., {self.time_grid[-1]:g}]"
            )
        return idx

    def get_underlying_value(self, time: float) -> PathVector:
        return PathVector(self._paths[self._time_index(time)], float(time))

    def get_numeraire(self, time: float) -> PathVector:
        self._time_index(time)
        return PathVector.constant(self.discount_curve.numeraire(float(time)), float(time))

    def get_discount_factor(self, time: float) -> float:
        return float(self.discount_curve.df(float(time)))

    def get_log_underlying_drift(self, time: float) -> float | None:
        """``E[log S(time)]`` under the pricing measure, if known."""
        self._time_index(time)
        if self._log_drift is None:
            return None
        return float(self._log_drift(float(time)))
