"""Diagnostic valuations that are *not* admissible production estimators.

These variants make the bias of the production estimators visible:

* ``value_with_foresight`` decides using the realized future cash flow. The
  policy peeks into the future, so its value is biased high and cannot be
  implemented.
* ``value_snell_envelope_regression`` values ``max(Z_1, C_1)`` at the first
  date directly from the regression estimate, inheriting the estimate's
  error instead of averaging over realized cash flows.
* ``value_with_analytic_continuation`` replaces the regression with the
  exact Black-Scholes continuation value for two-date schedules. Besides the
  Snell envelope and backward-algorithm values it reports the dual bound of
  the martingale built from that exact continuation value.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from ..exceptions import UnsupportedFeatureError
from ..models import SimulationModel
from ..path_vector import PathVector
from .analytic import black_scholes_option_value
from .dual import dual_pathwise_value
from .params import RegressionBasis
from .primal import PrimalValuationEngine, backward_induction, relative_exercise_values
from .schedule import ExerciseSchedule

__all__ = [
    "DiagnosticValue",
    "AnalyticContinuationValues",
    "value_with_foresight",
    "value_snell_envelope_regression",
    "value_with_analytic_continuation",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DiagnosticValue:
    label: str
    value: float
    standard_error: float
    pathwise_value: PathVector

    @classmethod
    def of(cls, label: str, pathwise_value: PathVector) -> DiagnosticValue:
        return cls(label, pathwise_value.average(), pathwise_value.standard_error(), pathwise_value)


@dataclass(frozen=True, slots=True)
class AnalyticContinuationValues:
    snell_envelope: DiagnosticValue
    backward_algorithm: DiagnosticValue
    dual: DiagnosticValue


def value_with_foresight(schedule: ExerciseSchedule, model: SimulationModel) -> DiagnosticValue:
    """Backward induction deciding on the realized continuation value (upward biased)."""
    logger.warning(
        "Foresight valuation uses future information; the value is a non-implementable upper artifact"
    )
    exercise_values, numeraire_0 = relative_exercise_values(schedule, model)
    steps, _ = backward_induction(
        schedule.exercise_dates,
        exercise_values,
        lambda continuation_value, index: (continuation_value, "foresight", False),
    )
    return DiagnosticValue.of("foresight", steps[0].continuation_value.mult(numeraire_0))


def value_snell_envelope_regression(
    schedule: ExerciseSchedule,
    model: SimulationModel,
    basis: RegressionBasis | None = None,
) -> DiagnosticValue:
    """``N(0) * E[max(Z_1, C_1)]`` with ``C_1`` the regression continuation estimate."""
    steps, _, numeraire_0 = PrimalValuationEngine(schedule, model, basis).backward_induction()
    first = steps[0]
    if first.continuation_estimate is None:
        envelope = first.exercise_value
    else:
        envelope = first.exercise_value.floor(first.continuation_estimate)
    return DiagnosticValue.of("snell envelope (regression)", envelope.mult(numeraire_0))


def value_with_analytic_continuation(
    schedule: ExerciseSchedule,
    model: SimulationModel,
    *,
    risk_free_rate: float,
    volatility: float,
) -> AnalyticContinuationValues:
    """Two-date valuation with the exact Black-Scholes continuation value at ``T_1``.

    Only valid when the model is a flat-rate Black-Scholes model with the
    given parameters.
    """
    if len(schedule) != 2:
        raise UnsupportedFeatureError(
            f"analytic continuation requires exactly two exercise dates, got {len(schedule)}"
        )
    (first_value, second_value), numeraire_0 = relative_exercise_values(schedule, model)
    t1, t2 = schedule.exercise_dates
    continuation = (
        black_scholes_option_value(
            model.get_underlying_value(t1),
            risk_free_rate=risk_free_rate,
            volatility=volatility,
            time_to_maturity=t2 - t1,
            strike=schedule.strikes[1],
            option_type=schedule.option_type,
        )
        .mult(schedule.notionals[1])
        .div(model.get_numeraire(t1))
    )
    # ties exercise at T_1
    criterion = continuation.sub(first_value)
    envelope = first_value.floor(continuation)
    # M_1 = U_1 - E[U_1], M_2 = M_1 + Z_2 - C_1 with C_1 = E[Z_2 | F_1] exactly
    first_martingale = envelope.sub(envelope.average())
    second_martingale = first_martingale.add(second_value.sub(continuation))
    return AnalyticContinuationValues(
        snell_envelope=DiagnosticValue.of(
            "snell envelope (analytic)", envelope.mult(numeraire_0)
        ),
        backward_algorithm=DiagnosticValue.of(
            "backward algorithm (analytic)",
            criterion.choose(second_value, first_value).mult(numeraire_0),
        ),
        dual=DiagnosticValue.of(
            "dual (analytic martingale)",
            dual_pathwise_value(
                [first_value, second_value], [first_martingale, second_martingale], numeraire_0
            ),
        ),
    )
