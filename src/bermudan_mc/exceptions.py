"""Custom exception hierarchy for the bermudan_mc library.

All library-specific exceptions inherit from :class:`BermudanValuationError`,
enabling callers to catch *any* library error with a single ``except`` clause::

    try:
        result = BermudanValuation(schedule, model).value_primal()
    except BermudanValuationError as exc:
        log.error("Library error: %s", exc)
"""

from __future__ import annotations


class BermudanValuationError(Exception):
    """Base exception for all library errors."""


# ── Input validation ────────────────────────────────────────────────


class ValidationError(BermudanValuationError):
    """Invalid input values (out-of-range, non-finite, mismatched path counts, etc.)."""


class ConfigurationError(BermudanValuationError):
    """Wrong types passed to a public API (e.g. raw str where a basis object is expected)."""


# ── Feature support ─────────────────────────────────────────────────


class UnsupportedFeatureError(BermudanValuationError):
    """Requested feature combination is not (yet) supported."""


# ── Simulation model contract ───────────────────────────────────────


class ModelContractError(BermudanValuationError):
    """The simulation model broke its contract (unknown time, non-positive numeraire, ...).

    Fatal for a valuation call: no partial result is returned.
    """


# ── Numerical issues ────────────────────────────────────────────────


class NumericalError(BermudanValuationError):
    """Base for errors arising from numerical computation."""


class RegressionError(NumericalError):
    """Least-squares estimation failed (under-determined or rank-deficient design)."""


class ConvergenceError(NumericalError):
    """An iterative solver failed to converge within the allowed tolerance / iterations."""


# ── Warnings ────────────────────────────────────────────────────────


class BoundViolationWarning(UserWarning):
    """Lower bound exceeds upper bound by more than the Monte-Carlo noise allows."""
