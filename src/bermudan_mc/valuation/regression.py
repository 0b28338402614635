"""Regression estimation of conditional expectations on Monte-Carlo paths.

The estimator approximates ``E[Y | F_t]`` by the least-squares projection of
``Y`` onto a finite basis of path functions observed at ``t``. Two basis
families are supported:

* monomials ``1, x, ..., x^p`` of a state variable, rescaled by its mean
  absolute value (the span, hence the fit, is unchanged, but deep powers stay
  well-conditioned);
* indicators of disjoint, equally populated percentile bins of the state
  variable, which give a step-function approximation and are always
  well-conditioned.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
import numpy as np

from ..exceptions import ConfigurationError, RegressionError, ValidationError
from ..path_vector import PathVector
from .params import BinnedBasis, MonomialBasis, RegressionBasis

__all__ = [
    "build_basis_functions",
    "monomial_basis_functions",
    "binned_basis_functions",
    "RegressionEstimator",
]

logger = logging.getLogger(__name__)


def monomial_basis_functions(state: PathVector, degree: int) -> list[PathVector]:
    """Return ``[1, x, x^2, ..., x^degree]`` with ``x = state / mean|state|``."""
    if degree < 0:
        raise ValidationError(f"degree must be >= 0, got {degree}")
    # a deterministic state yields deterministic functions that broadcast in the estimator
    values = state.realizations
    scale = float(np.mean(np.abs(values)))
    if not np.isfinite(scale):
        raise ValidationError("state variable contains non-finite values")
    x = values / scale if scale > 0.0 else values
    return [PathVector(np.power(x, power), state.time) for power in range(degree + 1)]


def binned_basis_functions(state: PathVector, number_of_bins: int) -> list[PathVector]:
    """Return indicators of ``number_of_bins`` disjoint percentile buckets of ``state``.

    Left bucket edges are taken once from the sorted sample at ranks
    ``floor(i / B * N)``. Bucket ``i`` is ``[edge_i, edge_{i+1})``; the last is
    unbounded above. Duplicated edges produce empty (all-zero) buckets, which
    the estimator drops.
    """
    if number_of_bins < 1:
        raise ValidationError(f"number_of_bins must be >= 1, got {number_of_bins}")
    if state.is_deterministic:
        # every edge equals the constant, so only the top bucket is populated
        empty = [PathVector.constant(0.0, state.time)] * (number_of_bins - 1)
        return empty + [PathVector.constant(1.0, state.time)]
    values = state.realizations
    ordered = np.sort(values)
    ranks = (np.arange(number_of_bins) * ordered.size) // number_of_bins
    edges = ordered[ranks]
    upper = np.append(edges[1:], np.inf)
    return [
        PathVector(((values >= lo) & (values < hi)).astype(float), state.time)
        for lo, hi in zip(edges, upper)
    ]


def build_basis_functions(state: PathVector, basis: RegressionBasis) -> list[PathVector]:
    """Evaluate the configured basis on ``state``."""
    if isinstance(basis, MonomialBasis):
        return monomial_basis_functions(state, basis.degree)
    if isinstance(basis, BinnedBasis):
        return binned_basis_functions(state, basis.number_of_bins)
    raise ConfigurationError(
        f"basis must be MonomialBasis or BinnedBasis, got {type(basis).__name__}"
    )


class RegressionEstimator:
    """Least-squares conditional expectation estimator.

    Parameters
    ==========
    basis_functions:
        Path functions observed at the estimation time. Deterministic entries
        broadcast against the path count; identically-zero entries are dropped.

    Raises
    ======
    RegressionError
        If fewer paths than basis functions remain, or the design matrix is
        numerically rank deficient.
    """

    def __init__(self, basis_functions: Sequence[PathVector]) -> None:
        if not basis_functions:
            raise ValidationError("at least one basis function is required")
        sizes = {bf.size for bf in basis_functions if not bf.is_deterministic}
        if len(sizes) > 1:
            raise ValidationError(f"basis functions have mismatched path counts: {sorted(sizes)}")
        self.time = max(bf.time for bf in basis_functions)
        self._basis_functions = tuple(basis_functions)
        self._n_paths = sizes.pop() if sizes else None
        self._design: np.ndarray | None = None
        self._scales: np.ndarray | None = None
        self._kept: np.ndarray | None = None
        if self._n_paths is not None:
            self._prepare(self._n_paths)

    @property
    def number_of_basis_functions(self) -> int:
        """Basis functions used in the fit, after dropping identically-zero ones."""
        if self._kept is None:
            return len(self._basis_functions)
        return int(self._kept.sum())

    def _prepare(self, n_paths: int) -> None:
        columns = np.column_stack(
            [np.broadcast_to(bf.realizations, (n_paths,)) for bf in self._basis_functions]
        )
        if not np.all(np.isfinite(columns)):
            raise RegressionError("basis functions contain non-finite values")
        kept = np.any(columns != 0.0, axis=0)
        if not np.any(kept):
            raise RegressionError("all basis functions are identically zero on the sample")
        if not np.all(kept):
            logger.debug(
                "Dropping %d identically-zero basis function(s) of %d",
                int((~kept).sum()),
                kept.size,
            )
        design = columns[:, kept]
        n_functions = design.shape[1]
        if n_paths < n_functions:
            raise RegressionError(
                f"regression is under-determined: {n_paths} paths for "
                f"{n_functions} basis functions"
            )
        scales = np.sqrt(np.mean(design**2, axis=0))
        design = design / scales
        rank = np.linalg.matrix_rank(design)
        if rank < n_functions:
            raise RegressionError(
                f"regression design is rank deficient: rank {rank} < {n_functions} basis functions"
            )
        self._design = design
        self._scales = scales
        self._kept = kept
        self._n_paths = n_paths

    def _target_values(self, target: PathVector) -> np.ndarray:
        if self._n_paths is None:
            self._prepare(target.size)
        if not target.is_deterministic and target.size != self._n_paths:
            raise ValidationError(
                f"target has {target.size} paths, basis functions have {self._n_paths}"
            )
        values = np.broadcast_to(target.realizations, (self._n_paths,))
        if not np.all(np.isfinite(values)):
            raise RegressionError("regression target contains non-finite values")
        return values

    def _solve(self, target: PathVector) -> np.ndarray:
        y = self._target_values(target)
        beta, _, _, _ = np.linalg.lstsq(self._design, y, rcond=None)
        return beta

    def coefficients_for(self, target: PathVector) -> np.ndarray:
        """Regression coefficients in units of the original (kept) basis functions."""
        return self._solve(target) / self._scales

    def get_conditional_expectation(self, target: PathVector) -> PathVector:
        """Estimate ``E[target | F_t]`` as a PathVector observed at the basis time."""
        beta = self._solve(target)
        estimate = self._design @ beta
        if not np.all(np.isfinite(estimate)):
            raise RegressionError("conditional expectation estimate is not finite")
        return PathVector(estimate, self.time)
