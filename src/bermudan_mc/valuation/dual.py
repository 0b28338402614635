"""Upper bound for Bermudan options by the dual (martingale) method.

For any martingale ``M`` with ``M_0 = 0`` the value is bounded above by
``N(0) * E[max_k (Z_k - M_k)]`` where ``Z_k`` is the numeraire-relative cash
flow at ``T_k``; the bound is tight when ``M`` is the martingale part of the
Snell envelope. Two martingale choices are implemented:

* a fixed martingale assembled from the regression continuation estimates of
  the primal backward pass;
* a two-parameter family ``lambda_1 * g1 + lambda_2 * g2`` of known zero-mean
  martingales, minimized over the parameters by an external optimizer.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Sequence
from functools import reduce
import logging
import numpy as np

from ..enums import MartingaleGenerator
from ..exceptions import ConfigurationError, ValidationError
from ..models import SimulationModel
from ..path_vector import PathVector
from ..utils import log_timing, warn_if_high_std_error
from .optimizer import Objective, Optimizer, ScipyOptimizer
from .params import DualParams, RegressionBasis, ValuationParams
from .primal import BackwardInductionStep, PrimalValuationEngine, relative_exercise_values
from .schedule import ExerciseSchedule

__all__ = [
    "DualValuationResult",
    "DualValuationEngine",
    "pathwise_maximum",
    "dual_pathwise_value",
    "martingale_from_continuation_estimates",
    "martingale_generator_values",
    "dual_objective",
]

logger = logging.getLogger(__name__)

_VANISHING_INCREMENT = 1e-14


@dataclass(frozen=True, slots=True)
class DualValuationResult:
    """Upper-bound valuation result.

    ``parameters``, ``converged`` and ``n_evaluations`` are only populated for
    the optimized martingale family; ``converged=False`` marks a best-so-far
    point (iteration budget or timeout exhausted).
    """

    value: float
    standard_error: float
    pathwise_value: PathVector
    martingale: tuple[PathVector, ...]
    parameters: tuple[float, ...] | None = None
    converged: bool | None = None
    n_evaluations: int = 0

    @property
    def is_optimized(self) -> bool:
        return self.parameters is not None

    @property
    def degraded(self) -> bool:
        """True if the optimizer stopped without converging."""
        return self.converged is False


def pathwise_maximum(values: Sequence[PathVector]) -> PathVector:
    """Pathwise maximum by pairwise ``choose``; ties keep the earlier entry."""
    if not values:
        raise ValidationError("pathwise_maximum requires at least one value")
    return reduce(
        lambda running, candidate: candidate.sub(running).choose(candidate, running),
        values,
    )


def dual_pathwise_value(
    exercise_values: Sequence[PathVector],
    martingale: Sequence[PathVector],
    numeraire_0: PathVector,
) -> PathVector:
    """``N(0) * max_k (Z_k - M_k)`` per path."""
    if len(exercise_values) != len(martingale):
        raise ValidationError(
            f"martingale has {len(martingale)} dates, schedule has {len(exercise_values)}"
        )
    return pathwise_maximum(
        [value.sub(m) for value, m in zip(exercise_values, martingale)]
    ).mult(numeraire_0)


def martingale_from_continuation_estimates(
    steps: Sequence[BackwardInductionStep],
) -> tuple[PathVector, ...]:
    """Martingale ``M_1..M_M`` from the estimated value process of a backward pass.

    With ``U_k = max(Z_k, C_k)`` (``U_M = Z_M``) and ``C_0 = E[U_1]``, the
    increment at ``T_k`` is ``U_k - C_{k-1}``, re-centred to zero mean.
    """
    if not steps:
        raise ValidationError("at least one backward induction step is required")
    value_process = [
        step.exercise_value
        if step.continuation_estimate is None
        else step.exercise_value.floor(step.continuation_estimate)
        for step in steps
    ]
    previous_estimate = PathVector.constant(value_process[0].average())
    martingale = []
    level = PathVector.constant(0.0)
    for step, value in zip(steps, value_process):
        increment = value.sub(previous_estimate)
        increment = increment.sub(increment.average())
        level = level.add(increment)
        martingale.append(level)
        previous_estimate = step.continuation_estimate
    return tuple(martingale)


def martingale_generator_values(
    generator: MartingaleGenerator,
    model: SimulationModel,
    exercise_dates: Sequence[float],
) -> tuple[PathVector, ...]:
    """Values of a zero-mean martingale generator at each exercise date."""
    if generator is MartingaleGenerator.ZERO:
        return tuple(PathVector.constant(0.0, date) for date in exercise_dates)

    if generator is MartingaleGenerator.DISCOUNTED_UNDERLYING:
        numeraire_0 = model.get_numeraire(0.0)
        underlying_0 = model.get_underlying_value(0.0)
        return tuple(
            model.get_underlying_value(date)
            .div(model.get_numeraire(date))
            .mult(numeraire_0)
            .sub(underlying_0)
            for date in exercise_dates
        )

    if generator is MartingaleGenerator.LOG_UNDERLYING:
        drift_fn = getattr(model, "get_log_underlying_drift", None)
        values = []
        for date in exercise_dates:
            log_underlying = model.get_underlying_value(date).log()
            drift = None if drift_fn is None else drift_fn(date)
            if drift is None:
                drift = log_underlying.average()
            values.append(log_underlying.sub(drift))
        return tuple(values)

    raise ConfigurationError(f"unsupported martingale generator: {generator}")


def dual_objective(
    exercise_values: Sequence[PathVector],
    generator_values: tuple[Sequence[PathVector], Sequence[PathVector]],
    numeraire_0: PathVector,
) -> Objective:
    """Pure objective ``(lambda_1, lambda_2) -> upper-bound estimate``.

    Closes over read-only PathVectors only.
    """
    first, second = generator_values

    def objective(parameters: Sequence[float]) -> float:
        lambda_1, lambda_2 = parameters
        martingale = [g1.mult(lambda_1).add(g2.mult(lambda_2)) for g1, g2 in zip(first, second)]
        return dual_pathwise_value(exercise_values, martingale, numeraire_0).average()

    return objective


class DualValuationEngine:
    """Martingale-based upper bound for a Bermudan option.

    Parameters
    ==========
    schedule: ExerciseSchedule
        Exercise dates, notionals and strikes.
    model: SimulationModel
        Source of underlying values and numeraires.
    basis: MonomialBasis | BinnedBasis
        Regression basis of the primal pass feeding the fixed martingale.
    params: ValuationParams
        Logging / diagnostics settings.
    dual_params: DualParams
        Martingale family and optimizer configuration.
    optimizer: Optimizer, optional
        Any object honouring the :class:`Optimizer` contract; defaults to a
        :class:`ScipyOptimizer` configured from ``dual_params``.
    """

    def __init__(
        self,
        schedule: ExerciseSchedule,
        model: SimulationModel,
        basis: RegressionBasis | None = None,
        params: ValuationParams | None = None,
        dual_params: DualParams | None = None,
        optimizer: Optimizer | None = None,
    ) -> None:
        self.params = ValuationParams() if params is None else params
        self._primal = PrimalValuationEngine(schedule, model, basis, self.params)
        self.schedule = schedule
        self.model = model
        self.dual_params = DualParams() if dual_params is None else dual_params
        if optimizer is None:
            optimizer = ScipyOptimizer.from_params(self.dual_params)
        if not isinstance(optimizer, Optimizer):
            raise ConfigurationError(
                f"optimizer must provide minimize(objective, initial_guess, bounds), "
                f"got {type(optimizer).__name__}"
            )
        self.optimizer = optimizer

    def fixed_martingale(
        self, steps: Sequence[BackwardInductionStep] | None = None
    ) -> tuple[PathVector, ...]:
        """Martingale from the primal continuation estimates (runs the primal pass if needed)."""
        if steps is None:
            steps, _, _ = self._primal.backward_induction()
        return martingale_from_continuation_estimates(steps)

    def value(
        self,
        use_optimization: bool = False,
        steps: Sequence[BackwardInductionStep] | None = None,
    ) -> DualValuationResult:
        """Upper-bound value and standard error.

        Parameters
        ==========
        use_optimization:
            Minimize over the two-parameter martingale family instead of using
            the fixed martingale from the continuation estimates.
        steps:
            Optional records of an already-run primal pass on the same model,
            reused for the fixed martingale.
        """
        label = "optimized dual" if use_optimization else "dual"
        with log_timing(logger, f"{label} valuation", self.params.log_timings):
            exercise_values, numeraire_0 = relative_exercise_values(self.schedule, self.model)
            if use_optimization:
                result = self._value_optimized(exercise_values, numeraire_0)
            else:
                martingale = self.fixed_martingale(steps)
                self._log_if_degenerate(martingale)
                pathwise = dual_pathwise_value(exercise_values, martingale, numeraire_0)
                result = DualValuationResult(
                    value=pathwise.average(),
                    standard_error=pathwise.standard_error(),
                    pathwise_value=pathwise,
                    martingale=martingale,
                )

        logger.debug(
            "%s value=%.8g std_error=%.3g paths=%d",
            label,
            result.value,
            result.standard_error,
            result.pathwise_value.size,
        )
        warn_if_high_std_error(
            logger,
            value=result.value,
            std_error=result.standard_error,
            n_paths=result.pathwise_value.size,
            warn_ratio=self.params.std_error_warn_ratio,
            label=label,
        )
        return result

    def _value_optimized(
        self, exercise_values: list[PathVector], numeraire_0: PathVector
    ) -> DualValuationResult:
        dates = self.schedule.exercise_dates
        first, second = (
            martingale_generator_values(generator, self.model, dates)
            for generator in self.dual_params.generators
        )
        objective = dual_objective(exercise_values, (first, second), numeraire_0)
        outcome = self.optimizer.minimize(
            objective, self.dual_params.initial_guess, self.dual_params.bounds
        )
        lambda_1, lambda_2 = outcome.best_parameters
        martingale = tuple(g1.mult(lambda_1).add(g2.mult(lambda_2)) for g1, g2 in zip(first, second))
        pathwise = dual_pathwise_value(exercise_values, martingale, numeraire_0)
        if not outcome.converged:
            logger.warning(
                "Optimized dual bound is a best-so-far point (not converged): "
                "value=%.8g params=(%.6g, %.6g)",
                pathwise.average(),
                lambda_1,
                lambda_2,
            )
        return DualValuationResult(
            value=pathwise.average(),
            standard_error=pathwise.standard_error(),
            pathwise_value=pathwise,
            martingale=martingale,
            parameters=(float(lambda_1), float(lambda_2)),
            converged=outcome.converged,
            n_evaluations=outcome.n_evaluations,
        )

    @staticmethod
    def _log_if_degenerate(martingale: Sequence[PathVector]) -> None:
        scale = max(float(np.max(np.abs(m.realizations))) for m in martingale)
        if scale < _VANISHING_INCREMENT:
            logger.debug(
                "Martingale increments vanish; dual bound collapses to E[max_k Z_k]"
            )
