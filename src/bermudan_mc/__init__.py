from .path_vector import PathVector
from .models import MonteCarloAssetModel, SimulationModel
from .valuation import (
    BermudanValuation,
    BinnedBasis,
    DualParams,
    ExerciseSchedule,
    MonomialBasis,
    ValuationParams,
    value_dual,
    value_primal,
)


__all__ = [
    "PathVector",
    "SimulationModel",
    "MonteCarloAssetModel",
    "BermudanValuation",
    "ExerciseSchedule",
    "MonomialBasis",
    "BinnedBasis",
    "DualParams",
    "ValuationParams",
    "value_primal",
    "value_dual",
]
