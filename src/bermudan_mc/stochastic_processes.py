"Path simulation for the reference Black-Scholes model"

from abc import ABC, abstractmethod
from dataclasses import dataclass
import numpy as np

from .exceptions import ValidationError
from .rates import DiscountCurve


@dataclass(frozen=True, slots=True)
class SimulationConfig:
    """Equidistant year-fraction time discretization and path count."""

    paths: int
    time_horizon: float
    dt: float
    initial_time: float = 0.0

    def __post_init__(self):
        if self.paths < 1:
            raise ValueError(f"paths must be >= 1, got {self.paths}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.time_horizon <= self.initial_time:
            raise ValueError(
                f"time_horizon must exceed initial_time, got {self.time_horizon} <= {self.initial_time}"
            )

    @property
    def num_steps(self) -> int:
        return int(round((self.time_horizon - self.initial_time) / self.dt))

    def time_grid(self) -> np.ndarray:
        return self.initial_time + self.dt * np.arange(self.num_steps + 1, dtype=float)


@dataclass(frozen=True, slots=True, kw_only=True)
class GBMParams:
    initial_value: float
    volatility: float

    def __post_init__(self):
        if self.initial_value <= 0:
            raise ValueError(f"initial_value must be positive, got {self.initial_value}")
        if self.volatility < 0:
            raise ValueError(f"volatility must be non-negative, got {self.volatility}")


def sn_random_numbers(shape: tuple[int, ...], random_seed: int | None = None) -> np.ndarray:
    """Standard normal draws from a dedicated, seeded generator.

    Never touches numpy's global random state.
    """
    rng = np.random.default_rng(random_seed)
    return rng.standard_normal(shape)


class PathSimulation(ABC):
    """Providing base methods for simulation classes.

    Attributes
    ==========
    process_params:
        Model-specific parameters for the stochastic process (e.g. GBMParams).
    sim: SimulationConfig
        Simulation configuration (paths and time grid).
    discount_curve: DiscountCurve
        Deterministic curve whose forward rates drive the risk-neutral drift.
    """

    def __init__(
        self,
        process_params: GBMParams,
        sim: SimulationConfig,
        discount_curve: DiscountCurve,
    ):
        self.initial_value = process_params.initial_value
        self.volatility = process_params.volatility
        self.paths = sim.paths
        self.time_grid = sim.time_grid()
        self.discount_curve = discount_curve

    @abstractmethod
    def simulate(self, random_seed: int | None = None) -> np.ndarray:
        """Return simulated values of shape ``(len(time_grid), paths)``."""
        raise NotImplementedError("Subclasses must implement simulate method")


class GeometricBrownianMotion(PathSimulation):
    """Class to generate simulated paths based on
    the Black-Scholes-Merton geometric Brownian motion model.

    Uses the exact log-Euler step, so the marginal distribution at every
    grid time is exactly lognormal regardless of the step size.
    """

    def simulate(self, random_seed: int | None = None) -> np.ndarray:
        """Generate geometric Brownian motion paths.

        dS_t = r_t * S_t * dt + sigma * S_t * dW_t

        Parameters
        ==========
        random_seed: int, optional
            random seed for reproducibility
        """
        M = len(self.time_grid)
        if M < 2:
            raise ValidationError("time grid needs at least two points")
        num_paths = self.paths
        rand = sn_random_numbers((M - 1, num_paths), random_seed=random_seed)
        forward_rates = self.discount_curve.step_forward_rates(self.time_grid)
        time_deltas = np.diff(self.time_grid)

        log_increments = (
            (forward_rates - 0.5 * self.volatility**2) * time_deltas
        )[:, None] + self.volatility * np.sqrt(time_deltas)[:, None] * rand

        paths = np.empty((M, num_paths), dtype=float)
        paths[0] = self.initial_value
        paths[1:] = self.initial_value * np.exp(np.cumsum(log_increments, axis=0))
        return paths
