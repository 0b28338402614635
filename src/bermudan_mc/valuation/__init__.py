"""Bermudan option valuation engines.

This module provides the primal (regression lower bound) and dual
(martingale upper bound) Monte-Carlo valuation of Bermudan options on a fixed
set of simulated paths.

Public API
----------
Core classes:
    BermudanValuation: Facade computing primal, dual and both bounds
    ExerciseSchedule: Exercise dates, notionals and strikes
    PrimalValuationEngine / DualValuationEngine: The two estimators
    RegressionEstimator: Least-squares conditional expectation

Parameter classes:
    MonomialBasis / BinnedBasis: Regression basis variants
    DualParams: Martingale family and optimizer configuration
    ValuationParams: Logging and consistency-check settings
"""

from .core import BermudanValuation, ValuationBounds, value_dual, value_primal
from .params import (
    BinnedBasis,
    DualParams,
    MonomialBasis,
    RegressionBasis,
    ValuationParams,
)
from .schedule import ExerciseSchedule
from .regression import RegressionEstimator, build_basis_functions
from .primal import BackwardInductionStep, PrimalValuationEngine, PrimalValuationResult
from .dual import DualValuationEngine, DualValuationResult
from .optimizer import OptimizationResult, Optimizer, ScipyOptimizer
from .diagnostics import (
    value_snell_envelope_regression,
    value_with_analytic_continuation,
    value_with_foresight,
)

__all__ = [
    # Core valuation classes
    "BermudanValuation",
    "ValuationBounds",
    "value_primal",
    "value_dual",
    "ExerciseSchedule",
    "PrimalValuationEngine",
    "PrimalValuationResult",
    "BackwardInductionStep",
    "DualValuationEngine",
    "DualValuationResult",
    # Regression
    "RegressionEstimator",
    "build_basis_functions",
    # Parameter classes
    "MonomialBasis",
    "BinnedBasis",
    "RegressionBasis",
    "DualParams",
    "ValuationParams",
    # Optimizer
    "Optimizer",
    "OptimizationResult",
    "ScipyOptimizer",
    # Diagnostics
    "value_with_foresight",
    "value_snell_envelope_regression",
    "value_with_analytic_continuation",
]
