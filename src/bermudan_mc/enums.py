"""Enums for Bermudan option valuation."""

from enum import Enum

__all__ = [
    "OptionType",
    "BasisStateVariable",
    "MartingaleGenerator",
]


class OptionType(Enum):
    CALL = "call"
    PUT = "put"


class BasisStateVariable(Enum):
    """State variable the regression basis functions are evaluated on."""

    UNDERLYING = "underlying"
    EXERCISE_VALUE = "exercise_value"


class MartingaleGenerator(Enum):
    """Zero-mean martingales spanning the parametrised dual family."""

    DISCOUNTED_UNDERLYING = "discounted_underlying"
    LOG_UNDERLYING = "log_underlying"
    ZERO = "zero"
