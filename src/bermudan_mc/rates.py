"""Deterministic discounting behind the bank-account numeraire."""

from dataclasses import dataclass

import numpy as np

from .exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class DiscountCurve:
    """Discount curve with piecewise-constant forward rates between pillars.

    Attributes
    ==========
    times:
        Pillar year fractions, strictly increasing and starting at 0.
    dfs:
        Positive discount factors at the pillars, ``dfs[0] == 1``.
    flat_rate:
        Continuously-compounded rate of a curve built by :meth:`flat`; such a
        curve is evaluated in closed form at any time.

    Beyond the last pillar the last forward rate is extended.
    """

    times: np.ndarray
    dfs: np.ndarray
    flat_rate: float | None = None

    def __post_init__(self) -> None:
        t = np.array(self.times, dtype=float)
        df = np.array(self.dfs, dtype=float)
        if t.ndim != 1 or t.shape != df.shape:
            raise ValidationError("times and dfs must be 1-D arrays of equal length")
        if t.size < 2:
            raise ValidationError("a curve needs at least the pillars [0, T]")
        if t[0] != 0.0:
            raise ValidationError("curve times must start at 0.0")
        if np.any(np.diff(t) <= 0.0):
            raise ValidationError("curve times must be strictly increasing")
        if np.any(df <= 0.0) or not np.all(np.isfinite(df)):
            raise ValidationError("discount factors must be finite and positive")
        if not np.isclose(df[0], 1.0, rtol=0.0, atol=1e-12):
            raise ValidationError(f"df(0) must be 1, got {df[0]}")
        if self.flat_rate is not None and not np.isfinite(float(self.flat_rate)):
            raise ValidationError("flat_rate must be finite when provided")
        t.flags.writeable = False
        df.flags.writeable = False
        object.__setattr__(self, "times", t)
        object.__setattr__(self, "dfs", df)

    @classmethod
    def flat(cls, rate: float, end_time: float) -> "DiscountCurve":
        """Constant continuously-compounded short rate on ``[0, end_time]``."""
        if end_time <= 0.0:
            raise ValidationError("end_time must be positive")
        times = np.array([0.0, float(end_time)])
        return cls(times=times, dfs=np.exp(-float(rate) * times), flat_rate=float(rate))

    @classmethod
    def from_zero_rates(cls, times, zero_rates) -> "DiscountCurve":
        """Curve with ``df(t_i) = exp(-z_i * t_i)`` at the given pillars."""
        times = np.asarray(times, dtype=float)
        zero_rates = np.asarray(zero_rates, dtype=float)
        if times.shape != zero_rates.shape:
            raise ValidationError("times and zero_rates must have the same shape")
        return cls(times=times, dfs=np.exp(-zero_rates * times))

    @property
    def _forwards(self) -> np.ndarray:
        return -np.diff(np.log(self.dfs)) / np.diff(self.times)

    def df(self, t):
        """Discount factor at ``t`` (scalar or array of year fractions >= 0)."""
        t = np.asarray(t, dtype=float)
        if np.any(t < 0.0):
            raise ValidationError("discount factors are only defined for t >= 0")
        if self.flat_rate is not None:
            return np.exp(-self.flat_rate * t)
        log_df = np.log(self.dfs)
        inside = np.interp(t, self.times, log_df)
        beyond = log_df[-1] - self._forwards[-1] * (t - self.times[-1])
        return np.exp(np.where(t > self.times[-1], beyond, inside))

    def numeraire(self, t: float) -> float:
        """Bank-account value ``1 / df(t)``."""
        return float(1.0 / self.df(t))

    def step_forward_rates(self, grid) -> np.ndarray:
        """Continuously-compounded forward rate on each interval of ``grid``."""
        grid = np.asarray(grid, dtype=float)
        if grid.ndim != 1 or np.any(np.diff(grid) <= 0.0):
            raise ValidationError("grid must be a strictly increasing 1-D array")
        return -np.diff(np.log(self.df(grid))) / np.diff(grid)
