"""Lower bound for Bermudan options by regression-based backward induction.

Processing runs strictly from the last exercise date back to the first. At
each date the exercise decision compares the numeraire-relative exercise
value with a *regression estimate* of the continuation value, while the value
carried backward is built from the *realized* cash flows of the policy. Using
the estimate only to decide keeps the policy non-anticipating, so the
resulting estimator is biased low, never high.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable
import logging
import numpy as np
import pandas as pd

from ..enums import BasisStateVariable
from ..exceptions import ConfigurationError, ModelContractError, RegressionError
from ..models import SimulationModel
from ..path_vector import PathVector
from ..utils import log_timing, warn_if_high_std_error
from .params import BinnedBasis, MonomialBasis, RegressionBasis, ValuationParams
from .regression import RegressionEstimator, build_basis_functions
from .schedule import ExerciseSchedule

__all__ = [
    "BackwardInductionStep",
    "PrimalValuationResult",
    "PrimalValuationEngine",
    "relative_exercise_values",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BackwardInductionStep:
    """Immutable record of one exercise date of the backward pass.

    Attributes
    ==========
    exercise_date:
        The date ``T_k``.
    exercise_value:
        Numeraire-relative cash flow on exercise at ``T_k``.
    continuation_estimate:
        Time-``T_k`` estimate of the value of not exercising (None at the
        last date, where there is nothing to continue into).
    continuation_value:
        Numeraire-relative realized value of the policy from ``T_k`` onwards;
        this is what is carried back to ``T_{k-1}``.
    exercise_indicator:
        1.0 on paths exercising at ``T_k``, else 0.0.
    basis_description:
        Regression basis actually used at this date.
    used_fallback:
        True if the configured basis failed and a smaller one was used.
    """

    exercise_date: float
    exercise_value: PathVector
    continuation_estimate: PathVector | None
    continuation_value: PathVector
    exercise_indicator: PathVector
    basis_description: str | None = None
    used_fallback: bool = False


@dataclass(frozen=True, slots=True)
class PrimalValuationResult:
    """Lower-bound valuation result.

    ``exercise_probabilities`` is indexed by exercise date; the probability of
    never exercising is reported separately.
    """

    value: float
    standard_error: float
    exercise_probabilities: pd.Series
    never_exercised_probability: float
    pathwise_value: PathVector
    exercise_time: PathVector
    steps: tuple[BackwardInductionStep, ...]
    regression_fallback_dates: tuple[float, ...] = ()

    @property
    def number_of_paths(self) -> int:
        return self.pathwise_value.size

    @property
    def is_flagged(self) -> bool:
        """True if any date's regression had to fall back to a smaller basis."""
        return bool(self.regression_fallback_dates)

    def summary(self) -> pd.DataFrame:
        """Per-date averages of the backward pass."""
        rows = []
        for step in self.steps:
            rows.append(
                {
                    "exercise_date": step.exercise_date,
                    "exercise_probability": float(self.exercise_probabilities.loc[step.exercise_date]),
                    "exercise_value": step.exercise_value.average(),
                    "continuation_estimate": (
                        np.nan
                        if step.continuation_estimate is None
                        else step.continuation_estimate.average()
                    ),
                    "continuation_value": step.continuation_value.average(),
                    "basis": step.basis_description,
                    "used_fallback": step.used_fallback,
                }
            )
        return pd.DataFrame(rows).set_index("exercise_date")


def _check_model(model) -> None:
    if not isinstance(model, SimulationModel):
        raise ConfigurationError(
            f"model must implement the SimulationModel protocol, got {type(model).__name__}"
        )


def _checked_numeraire(model: SimulationModel, time: float) -> PathVector:
    numeraire = model.get_numeraire(time)
    if not numeraire.is_finite() or numeraire.min() <= 0.0:
        raise ModelContractError(f"numeraire at time {time:g} must be finite and strictly positive")
    return numeraire


def _checked_underlying(model: SimulationModel, time: float) -> PathVector:
    underlying = model.get_underlying_value(time)
    if not underlying.is_deterministic and underlying.size != model.number_of_paths:
        raise ModelContractError(
            f"underlying at time {time:g} has {underlying.size} paths, "
            f"model reports {model.number_of_paths}"
        )
    if not underlying.is_finite():
        raise ModelContractError(f"underlying at time {time:g} contains non-finite values")
    return underlying


def relative_exercise_values(
    schedule: ExerciseSchedule, model: SimulationModel
) -> tuple[list[PathVector], PathVector]:
    """Numeraire-relative cash flows per exercise date and the time-0 numeraire.

    Raises ``ModelContractError`` on non-positive numeraires or non-finite
    model values; these abort the valuation.
    """
    _check_model(model)
    numeraire_0 = _checked_numeraire(model, 0.0)
    values = []
    for k, date in enumerate(schedule.exercise_dates):
        underlying = _checked_underlying(model, date)
        cash_flow = schedule.cash_flow(k, underlying)
        values.append(cash_flow.div(_checked_numeraire(model, date)))
    return values, numeraire_0


# (continuation value at T_{k+1}, date index k) -> (estimate, basis description, used_fallback)
ContinuationRule = Callable[[PathVector, int], tuple[PathVector, str | None, bool]]


def backward_induction(
    exercise_dates: tuple[float, ...],
    exercise_values: list[PathVector],
    continuation_rule: ContinuationRule,
) -> tuple[tuple[BackwardInductionStep, ...], PathVector]:
    """Run the backward pass and return the per-date records plus exercise times.

    Records are returned in increasing date order. ``continuation_rule`` is
    applied to the realized continuation value of date ``k+1``.
    """
    last = len(exercise_dates) - 1
    terminal = exercise_values[last]
    steps = [
        BackwardInductionStep(
            exercise_date=exercise_dates[last],
            exercise_value=terminal,
            continuation_estimate=None,
            continuation_value=terminal,
            exercise_indicator=terminal.indicator(),
        )
    ]
    exercise_time = terminal.choose(exercise_dates[last], np.inf)

    continuation_value = terminal
    for k in range(last - 1, -1, -1):
        exercise_value = exercise_values[k]
        estimate, description, used_fallback = continuation_rule(continuation_value, k)
        criterion = exercise_value.sub(estimate)
        continuation_value = criterion.choose(exercise_value, continuation_value)
        exercise_time = criterion.choose(exercise_dates[k], exercise_time)
        steps.append(
            BackwardInductionStep(
                exercise_date=exercise_dates[k],
                exercise_value=exercise_value,
                continuation_estimate=estimate,
                continuation_value=continuation_value,
                exercise_indicator=criterion.indicator(),
                basis_description=description,
                used_fallback=used_fallback,
            )
        )
    return tuple(reversed(steps)), exercise_time


class PrimalValuationEngine:
    """Regression (Longstaff-Schwartz type) lower bound for a Bermudan option.

    Parameters
    ==========
    schedule: ExerciseSchedule
        Exercise dates, notionals and strikes.
    model: SimulationModel
        Source of underlying values and numeraires.
    basis: MonomialBasis | BinnedBasis
        Regression basis evaluated at each exercise date.
    params: ValuationParams
        Logging / diagnostics settings.
    """

    def __init__(
        self,
        schedule: ExerciseSchedule,
        model: SimulationModel,
        basis: RegressionBasis | None = None,
        params: ValuationParams | None = None,
    ) -> None:
        if not isinstance(schedule, ExerciseSchedule):
            raise ConfigurationError(
                f"schedule must be an ExerciseSchedule, got {type(schedule).__name__}"
            )
        _check_model(model)
        basis = MonomialBasis() if basis is None else basis
        if not isinstance(basis, (MonomialBasis, BinnedBasis)):
            raise ConfigurationError(
                f"basis must be MonomialBasis or BinnedBasis, got {type(basis).__name__}"
            )
        self.schedule = schedule
        self.model = model
        self.basis = basis
        self.params = ValuationParams() if params is None else params

    def _state_variable(self, index: int, basis: RegressionBasis) -> PathVector:
        date = self.schedule.exercise_dates[index]
        underlying = self.model.get_underlying_value(date)
        if basis.state_variable is BasisStateVariable.EXERCISE_VALUE:
            return self.schedule.cash_flow(index, underlying)
        return underlying

    def estimate_continuation(
        self, continuation_value: PathVector, index: int
    ) -> tuple[PathVector, str, bool]:
        """Regress ``continuation_value`` on the basis at exercise date ``index``.

        A ``RegressionError`` triggers the fallback chain of smaller bases; the
        error propagates only if even the constant basis fails.
        """
        basis = self.basis
        used_fallback = False
        date = self.schedule.exercise_dates[index]
        while True:
            try:
                state = self._state_variable(index, basis)
                estimator = RegressionEstimator(build_basis_functions(state, basis))
                estimate = estimator.get_conditional_expectation(continuation_value)
            except RegressionError as exc:
                smaller = basis.reduced()
                if smaller is None:
                    raise
                logger.warning(
                    "Regression at T=%g with %s failed (%s); falling back to %s",
                    date,
                    basis.describe(),
                    exc,
                    smaller.describe(),
                )
                basis = smaller
                used_fallback = True
                continue
            logger.debug(
                "Regression at T=%g basis=%s functions=%d mean_estimate=%.6g",
                date,
                basis.describe(),
                estimator.number_of_basis_functions,
                estimate.average(),
            )
            return estimate, basis.describe(), used_fallback

    def backward_induction(self) -> tuple[tuple[BackwardInductionStep, ...], PathVector, PathVector]:
        """Run the regression backward pass.

        Returns
        =======
        (steps, exercise_time, numeraire_0)
        """
        exercise_values, numeraire_0 = relative_exercise_values(self.schedule, self.model)
        steps, exercise_time = backward_induction(
            self.schedule.exercise_dates, exercise_values, self.estimate_continuation
        )
        return steps, exercise_time, numeraire_0

    def value(self) -> PrimalValuationResult:
        """Lower-bound value, its standard error and exercise probabilities."""
        with log_timing(logger, "primal valuation", self.params.log_timings):
            steps, exercise_time, numeraire_0 = self.backward_induction()
            pathwise_value = steps[0].continuation_value.mult(numeraire_0)
            value = pathwise_value.average()
            std_error = pathwise_value.standard_error()

        dates = self.schedule.exercise_dates
        histogram = exercise_time.histogram(dates)
        probabilities = pd.Series(
            histogram[:-1],
            index=pd.Index(dates, name="exercise_date"),
            name="exercise_probability",
        )
        fallback_dates = tuple(step.exercise_date for step in steps if step.used_fallback)
        logger.debug(
            "Primal value=%.8g std_error=%.3g paths=%d dates=%d basis=%s",
            value,
            std_error,
            pathwise_value.size,
            len(dates),
            self.basis.describe(),
        )
        warn_if_high_std_error(
            logger,
            value=value,
            std_error=std_error,
            n_paths=pathwise_value.size,
            warn_ratio=self.params.std_error_warn_ratio,
            label="primal",
        )
        return PrimalValuationResult(
            value=value,
            standard_error=std_error,
            exercise_probabilities=probabilities,
            never_exercised_probability=float(histogram[-1]),
            pathwise_value=pathwise_value,
            exercise_time=exercise_time,
            steps=steps,
            regression_fallback_dates=fallback_dates,
        )
