"""Entry points for Bermudan option valuation: primal, dual and both bounds."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import warnings
import numpy as np

from ..exceptions import BoundViolationWarning
from ..models import SimulationModel
from .dual import DualValuationEngine, DualValuationResult
from .optimizer import Optimizer
from .params import DualParams, RegressionBasis, ValuationParams
from .primal import PrimalValuationEngine, PrimalValuationResult
from .schedule import ExerciseSchedule

__all__ = [
    "BermudanValuation",
    "ValuationBounds",
    "value_primal",
    "value_dual",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ValuationBounds:
    """Lower and upper bound of one valuation on a common path set."""

    primal: PrimalValuationResult
    dual: DualValuationResult
    is_consistent: bool

    @property
    def gap(self) -> float:
        return self.dual.value - self.primal.value

    @property
    def relative_gap(self) -> float:
        return self.gap / max(abs(self.primal.value), 1.0e-12)

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.primal.value + self.dual.value)


class BermudanValuation:
    """Valuation of a Bermudan option on a fixed set of simulated paths.

    Parameters
    ==========
    schedule: ExerciseSchedule
        Exercise dates, notionals and strikes.
    model: SimulationModel
        Source of underlying values and numeraires; never mutated.
    basis: MonomialBasis | BinnedBasis
        Regression basis for continuation values. Default: monomials of degree 4.
    params: ValuationParams
        Logging / diagnostics settings.
    dual_params: DualParams
        Martingale family and optimizer configuration for the optimized dual.
    optimizer: Optimizer, optional
        Replacement for the default scipy optimizer.
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
        self.primal_engine = PrimalValuationEngine(schedule, model, basis, self.params)
        self.dual_engine = DualValuationEngine(
            schedule, model, basis, self.params, dual_params, optimizer
        )

    def value_primal(self) -> PrimalValuationResult:
        """Regression lower bound with exercise probabilities by date."""
        return self.primal_engine.value()

    def value_dual(self, use_optimization: bool = False) -> DualValuationResult:
        """Martingale upper bound, optionally optimized over the two-parameter family."""
        return self.dual_engine.value(use_optimization=use_optimization)

    def value_bounds(self, use_optimization: bool = False) -> ValuationBounds:
        """Both bounds; flags (and warns about) a lower bound above the upper bound.

        The bounds are inconsistent when ``primal - dual`` exceeds
        ``bound_tolerance_sigmas`` combined standard errors.
        """
        primal = self.primal_engine.value()
        dual = self.dual_engine.value(use_optimization=use_optimization, steps=primal.steps)
        noise = float(np.hypot(primal.standard_error, dual.standard_error))
        excess = primal.value - dual.value
        is_consistent = excess <= self.params.bound_tolerance_sigmas * noise
        if not is_consistent:
            message = (
                f"primal value {primal.value:.8g} exceeds dual value {dual.value:.8g} by "
                f"{excess:.3g} (> {self.params.bound_tolerance_sigmas:g} x {noise:.3g}); "
                "check the configuration or increase the number of paths"
            )
            logger.warning("Bound violation: %s", message)
            warnings.warn(message, BoundViolationWarning, stacklevel=2)
        else:
            logger.debug(
                "Bounds primal=%.8g dual=%.8g gap=%.3g",
                primal.value,
                dual.value,
                dual.value - primal.value,
            )
        return ValuationBounds(primal=primal, dual=dual, is_consistent=is_consistent)


def value_primal(
    schedule: ExerciseSchedule,
    model: SimulationModel,
    basis: RegressionBasis | None = None,
    params: ValuationParams | None = None,
) -> PrimalValuationResult:
    """Lower-bound value ``{value, standard_error, exercise_probabilities}``."""
    return PrimalValuationEngine(schedule, model, basis, params).value()


def value_dual(
    schedule: ExerciseSchedule,
    model: SimulationModel,
    basis: RegressionBasis | None = None,
    use_optimization: bool = False,
    dual_params: DualParams | None = None,
    params: ValuationParams | None = None,
    optimizer: Optimizer | None = None,
) -> DualValuationResult:
    """Upper-bound value ``{value, standard_error}``."""
    engine = DualValuationEngine(schedule, model, basis, params, dual_params, optimizer)
    return engine.value(use_optimization=use_optimization)
