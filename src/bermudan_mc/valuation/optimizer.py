"""Derivative-free optimizer contract and its scipy implementation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence, runtime_checkable
import logging
import time
import numpy as np
from scipy.optimize import minimize

from ..exceptions import ConvergenceError, ValidationError
from .params import DualParams

__all__ = [
    "Objective",
    "OptimizationResult",
    "Optimizer",
    "ScipyOptimizer",
]

logger = logging.getLogger(__name__)

Objective = Callable[[Sequence[float]], float]


@dataclass(frozen=True, slots=True)
class OptimizationResult:
    """Best point found by an optimizer run.

    ``converged`` is False whenever the run stopped on its iteration budget,
    its timeout, or any other non-success condition; the parameters are then
    the best point seen, not a converged optimum.
    """

    best_parameters: tuple[float, ...]
    best_value: float
    converged: bool
    n_evaluations: int
    message: str = ""

    def raise_if_not_converged(self) -> None:
        if not self.converged:
            raise ConvergenceError(
                f"optimizer did not converge after {self.n_evaluations} evaluations: {self.message}"
            )


@runtime_checkable
class Optimizer(Protocol):
    """Minimizes a pure objective over a box."""

    def minimize(
        self,
        objective: Objective,
        initial_guess: Sequence[float],
        bounds: Sequence[tuple[float, float]],
    ) -> OptimizationResult: ...


class _OptimizerTimeout(Exception):
    pass


class _BestPointTracker:
    """Wraps the objective for scipy, remembering the best evaluated point."""

    def __init__(self, objective: Objective, deadline: float | None) -> None:
        self._objective = objective
        self._deadline = deadline
        self.best_parameters: tuple[float, ...] | None = None
        self.best_value = np.inf
        self.n_evaluations = 0

    def __call__(self, x: np.ndarray) -> float:
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise _OptimizerTimeout
        parameters = tuple(float(v) for v in x)
        value = float(self._objective(parameters))
        self.n_evaluations += 1
        if not np.isfinite(value):
            return np.inf
        if value < self.best_value:
            self.best_value = value
            self.best_parameters = parameters
        return value


class ScipyOptimizer:
    """:func:`scipy.optimize.minimize` with a derivative-free method and box bounds.

    Parameters
    ==========
    method:
        "Nelder-Mead" (default) or "Powell"; both accept bounds.
    accuracy:
        Absolute tolerance on parameters and objective value.
    max_iterations:
        Iteration budget.
    timeout_seconds:
        Optional wall-clock budget. On expiry the best point so far is returned
        with ``converged=False``.
    """

    _METHODS = ("Nelder-Mead", "Powell")

    def __init__(
        self,
        method: str = "Nelder-Mead",
        accuracy: float = 1e-5,
        max_iterations: int = 1000,
        timeout_seconds: float | None = None,
    ) -> None:
        if method not in self._METHODS:
            raise ValidationError(f"method must be one of {self._METHODS}, got {method!r}")
        if accuracy <= 0:
            raise ValidationError(f"accuracy must be positive, got {accuracy}")
        if max_iterations < 1:
            raise ValidationError(f"max_iterations must be >= 1, got {max_iterations}")
        self.method = method
        self.accuracy = accuracy
        self.max_iterations = max_iterations
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_params(cls, params: DualParams) -> ScipyOptimizer:
        return cls(
            accuracy=params.accuracy,
            max_iterations=params.max_iterations,
            timeout_seconds=params.timeout_seconds,
        )

    def _options(self, x0: np.ndarray, bounds: np.ndarray) -> dict:
        if self.method == "Powell":
            return {"xtol": self.accuracy, "ftol": self.accuracy, "maxiter": self.max_iterations}
        # initial simplex spans a tenth of each bounded range
        steps = 0.1 * (bounds[:, 1] - bounds[:, 0])
        simplex = np.vstack([x0] + [x0 + np.eye(x0.size)[i] * steps[i] for i in range(x0.size)])
        simplex = np.clip(simplex, bounds[:, 0], bounds[:, 1])
        for i in range(1, simplex.shape[0]):
            if np.allclose(simplex[i], x0):
                simplex[i, i - 1] = x0[i - 1] - steps[i - 1]
        return {
            "xatol": self.accuracy,
            "fatol": self.accuracy,
            "maxiter": self.max_iterations,
            "initial_simplex": simplex,
        }

    def minimize(
        self,
        objective: Objective,
        initial_guess: Sequence[float],
        bounds: Sequence[tuple[float, float]],
    ) -> OptimizationResult:
        x0 = np.asarray(initial_guess, dtype=float)
        box = np.asarray(bounds, dtype=float)
        if box.shape != (x0.size, 2):
            raise ValidationError(
                f"bounds must have shape ({x0.size}, 2), got {box.shape}"
            )
        deadline = None if self.timeout_seconds is None else time.monotonic() + self.timeout_seconds
        tracker = _BestPointTracker(objective, deadline)

        try:
            res = minimize(
                tracker,
                x0=x0,
                method=self.method,
                bounds=[tuple(b) for b in box],
                options=self._options(x0, box),
            )
        except _OptimizerTimeout:
            logger.warning(
                "Optimizer timed out after %.3gs and %d evaluations; returning best point %s",
                self.timeout_seconds,
                tracker.n_evaluations,
                tracker.best_parameters,
            )
            if tracker.best_parameters is None:
                message = (
                    "timeout before first evaluation"
                    if tracker.n_evaluations == 0
                    else "timeout with no finite objective value"
                )
                return OptimizationResult(
                    tuple(float(v) for v in x0), float("nan"), False, tracker.n_evaluations, message
                )
            return OptimizationResult(
                tracker.best_parameters, tracker.best_value, False, tracker.n_evaluations, "timeout"
            )

        converged = bool(res.success)
        if tracker.best_parameters is None:
            return OptimizationResult(
                tuple(float(v) for v in res.x),
                float(res.fun),
                False,
                tracker.n_evaluations,
                "objective was never finite",
            )
        if not converged:
            logger.warning(
                "Optimizer did not converge (%s) after %d evaluations; best value %.8g at %s",
                res.message,
                tracker.n_evaluations,
                tracker.best_value,
                tracker.best_parameters,
            )
        logger.debug(
            "Optimizer %s finished: value=%.8g params=%s evaluations=%d",
            self.method,
            tracker.best_value,
            tracker.best_parameters,
            tracker.n_evaluations,
        )
        return OptimizationResult(
            tracker.best_parameters,
            tracker.best_value,
            converged,
            tracker.n_evaluations,
            str(res.message),
        )
