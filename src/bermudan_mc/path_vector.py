"""Immutable Monte-Carlo random variable sampled over simulation paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Union
import numpy as np

from .exceptions import NumericalError, ValidationError

if TYPE_CHECKING:
    from .valuation.regression import RegressionEstimator

__all__ = ["PathVector", "Operand"]


Operand = Union["PathVector", float, int]


@dataclass(frozen=True, slots=True, eq=False)
class PathVector:
    """A real-valued function of the path index, tagged with an observation time.

    Attributes
    ==========
    realizations:
        Either a 1-D array with one value per path, or a 0-d array for a
        deterministic value that broadcasts against any number of paths.
        Stored read-only.
    time:
        Observation time (year fraction). Binary operations tag their result
        with the later of the operand times.

    Every operation returns a new PathVector; combining two stochastic
    vectors of different length raises ``ValidationError``.
    """

    realizations: np.ndarray
    time: float = 0.0

    def __post_init__(self) -> None:
        values = np.array(self.realizations, dtype=float)
        if values.ndim > 1:
            raise ValidationError(
                f"PathVector realizations must be scalar or 1-D, got ndim={values.ndim}"
            )
        if values.ndim == 1 and values.size == 0:
            raise ValidationError("PathVector requires at least one path")
        values.flags.writeable = False
        object.__setattr__(self, "realizations", values)
        object.__setattr__(self, "time", float(self.time))

    # ------------------------------------------------------------------
    # construction / inspection
    # ------------------------------------------------------------------

    @classmethod
    def constant(cls, value: float, time: float = 0.0) -> PathVector:
        """Deterministic value, broadcast against any path count."""
        return cls(np.asarray(float(value)), time)

    @classmethod
    def from_array(cls, values, time: float = 0.0) -> PathVector:
        return cls(np.asarray(values, dtype=float), time)

    @property
    def is_deterministic(self) -> bool:
        return self.realizations.ndim == 0

    @property
    def size(self) -> int:
        """Number of paths (1 for a deterministic value)."""
        return 1 if self.is_deterministic else int(self.realizations.size)

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, index: int) -> float:
        if self.is_deterministic:
            return float(self.realizations)
        return float(self.realizations[index])

    def __repr__(self) -> str:
        if self.is_deterministic:
            return f"PathVector(constant={float(self.realizations):.6g}, time={self.time:g})"
        return f"PathVector(paths={self.size}, mean={self.average():.6g}, time={self.time:g})"

    # ------------------------------------------------------------------
    # operand handling
    # ------------------------------------------------------------------

    def _coerce(self, other: Operand) -> tuple[np.ndarray, float]:
        if isinstance(other, PathVector):
            if (
                not self.is_deterministic
                and not other.is_deterministic
                and self.size != other.size
            ):
                raise ValidationError(
                    f"PathVector size mismatch: {self.size} vs {other.size} paths"
                )
            return other.realizations, max(self.time, other.time)
        value = np.asarray(other, dtype=float)
        if value.ndim != 0:
            raise ValidationError(
                "PathVector operands must be scalars or PathVectors, "
                f"got array of shape {value.shape}"
            )
        return value, self.time

    def _apply(self, other: Operand, op: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> PathVector:
        values, time = self._coerce(other)
        return PathVector(op(self.realizations, values), time)

    def _unary(self, op: Callable[[np.ndarray], np.ndarray]) -> PathVector:
        return PathVector(op(self.realizations), self.time)

    # ------------------------------------------------------------------
    # arithmetic
    # ------------------------------------------------------------------

    def add(self, other: Operand) -> PathVector:
        return self._apply(other, np.add)

    def sub(self, other: Operand) -> PathVector:
        return self._apply(other, np.subtract)

    def mult(self, other: Operand) -> PathVector:
        return self._apply(other, np.multiply)

    def div(self, other: Operand) -> PathVector:
        """Pointwise division; a zero denominator on any path raises ``NumericalError``."""
        values, _ = self._coerce(other)
        if np.any(values == 0.0):
            raise NumericalError("Division by zero on at least one path.")
        return self._apply(other, np.divide)

    def __add__(self, other: Operand) -> PathVector:
        return self.add(other)

    def __radd__(self, other: Operand) -> PathVector:
        return self.add(other)

    def __sub__(self, other: Operand) -> PathVector:
        return self.sub(other)

    def __rsub__(self, other: Operand) -> PathVector:
        return self._apply(other, lambda a, b: b - a)

    def __mul__(self, other: Operand) -> PathVector:
        return self.mult(other)

    def __rmul__(self, other: Operand) -> PathVector:
        return self.mult(other)

    def __truediv__(self, other: Operand) -> PathVector:
        return self.div(other)

    def __rtruediv__(self, other: Operand) -> PathVector:
        if np.any(self.realizations == 0.0):
            raise NumericalError("Division by zero on at least one path.")
        return self._apply(other, lambda a, b: b / a)

    def __neg__(self) -> PathVector:
        return self._unary(np.negative)

    # ------------------------------------------------------------------
    # conditioning
    # ------------------------------------------------------------------

    def floor(self, other: Operand) -> PathVector:
        """Pointwise ``max(self, other)``."""
        return self._apply(other, np.maximum)

    def cap(self, other: Operand) -> PathVector:
        """Pointwise ``min(self, other)``."""
        return self._apply(other, np.minimum)

    def choose(self, value_if_positive: Operand, value_otherwise: Operand) -> PathVector:
        """Pathwise selector: ``value_if_positive[i]`` where ``self[i] > 0``, else ``value_otherwise[i]``.

        Zero (a tie in an exercise criterion) selects ``value_otherwise``.
        """
        a, time_a = self._coerce(value_if_positive)
        b, time_b = self._coerce(value_otherwise)
        if a.ndim == 1 and b.ndim == 1 and a.size != b.size:
            raise ValidationError(f"PathVector size mismatch: {a.size} vs {b.size} paths")
        return PathVector(np.where(self.realizations > 0.0, a, b), max(time_a, time_b))

    def indicator(self) -> PathVector:
        """1.0 where the value is strictly positive, else 0.0."""
        return self.choose(1.0, 0.0)

    # ------------------------------------------------------------------
    # elementary functions
    # ------------------------------------------------------------------

    def exp(self) -> PathVector:
        return self._unary(np.exp)

    def log(self) -> PathVector:
        if np.any(self.realizations <= 0.0):
            raise NumericalError("Logarithm of a non-positive value on at least one path.")
        return self._unary(np.log)

    def sqrt(self) -> PathVector:
        if np.any(self.realizations < 0.0):
            raise NumericalError("Square root of a negative value on at least one path.")
        return self._unary(np.sqrt)

    def pow(self, exponent: float) -> PathVector:
        return self._unary(lambda x: np.power(x, exponent))

    def squared(self) -> PathVector:
        return self._unary(np.square)

    def abs(self) -> PathVector:
        return self._unary(np.abs)

    # ------------------------------------------------------------------
    # path-wise statistics
    # ------------------------------------------------------------------

    def average(self) -> float:
        return float(np.mean(self.realizations))

    def variance(self) -> float:
        """Sample variance (ddof=1); zero for deterministic values or a single path."""
        if self.is_deterministic or self.size < 2:
            return 0.0
        return float(np.var(self.realizations, ddof=1))

    def standard_deviation(self) -> float:
        return float(np.sqrt(self.variance()))

    def standard_error(self) -> float:
        """Monte-Carlo standard error of :meth:`average`."""
        if self.is_deterministic or self.size < 2:
            return 0.0
        return self.standard_deviation() / float(np.sqrt(self.size))

    def min(self) -> float:
        return float(np.min(self.realizations))

    def max(self) -> float:
        return float(np.max(self.realizations))

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.realizations)))

    def histogram(self, interval_points) -> np.ndarray:
        """Fraction of paths in each bucket ``(p[i-1], p[i]]``.

        Returns ``len(interval_points) + 1`` fractions; the last bucket holds
        the values above the final point (including ``+inf``).
        """
        points = np.asarray(interval_points, dtype=float)
        if points.ndim != 1 or np.any(np.diff(points) <= 0.0):
            raise ValidationError("interval_points must be a strictly increasing 1-D sequence")
        values = np.atleast_1d(self.realizations)
        bucket = np.searchsorted(points, values, side="left")
        counts = np.bincount(bucket, minlength=points.size + 1)
        return counts / values.size

    # ------------------------------------------------------------------
    # conditional expectation
    # ------------------------------------------------------------------

    def get_conditional_expectation(self, estimator: RegressionEstimator) -> PathVector:
        """Estimate ``E[self | F_t]`` where ``t`` is the estimator's basis time."""
        return estimator.get_conditional_expectation(self)
