"""Black-Scholes closed forms evaluated pathwise (used as an exact continuation value)."""

from __future__ import annotations

import numpy as np
from scipy.stats import norm

from ..enums import OptionType
from ..exceptions import ValidationError
from ..path_vector import PathVector


def _d_values(
    spot: np.ndarray,
    strike: float,
    time_to_maturity: float,
    volatility: float,
    risk_free_rate: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Calculate d1 and d2 for the BSM model (no dividends)."""
    denominator = volatility * np.sqrt(time_to_maturity)
    forward = spot * np.exp(risk_free_rate * time_to_maturity)
    with np.errstate(divide="ignore"):
        log_moneyness = np.log(forward / strike)
    d1 = (log_moneyness + 0.5 * denominator**2) / denominator
    return d1, d1 - denominator


def black_scholes_option_value(
    spot: PathVector,
    *,
    risk_free_rate: float,
    volatility: float,
    time_to_maturity: float,
    strike: float,
    option_type: OptionType = OptionType.CALL,
) -> PathVector:
    """European option value at ``spot.time`` for every path.

    Zero volatility or zero time to maturity degrade to the discounted
    intrinsic value of the forward.
    """
    if time_to_maturity < 0:
        raise ValidationError("time_to_maturity must be non-negative")
    if volatility < 0:
        raise ValidationError("volatility must be non-negative")
    if strike <= 0:
        raise ValidationError("strike must be positive")
    s = np.asarray(spot.realizations, dtype=float)
    df = np.exp(-risk_free_rate * time_to_maturity)
    sign = 1.0 if option_type is OptionType.CALL else -1.0

    if volatility * np.sqrt(time_to_maturity) < 1e-300:
        forward = s / df
        return PathVector(np.maximum(sign * (forward - strike), 0.0) * df, spot.time)

    d1, d2 = _d_values(s, strike, time_to_maturity, volatility, risk_free_rate)
    value = sign * (s * norm.cdf(sign * d1) - strike * df * norm.cdf(sign * d2))
    return PathVector(value, spot.time)
