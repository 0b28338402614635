"""Parameter classes for regression, dual and valuation configuration.

Each concern has its own frozen parameter class that explicitly documents the
configuration options available for it. The regression basis is a tagged
variant: either :class:`MonomialBasis` or :class:`BinnedBasis`.
"""

from dataclasses import dataclass

from ..enums import BasisStateVariable, MartingaleGenerator


def _coerce_state_variable(obj) -> None:
    if isinstance(obj.state_variable, str):
        object.__setattr__(obj, "state_variable", BasisStateVariable(obj.state_variable))
    if not isinstance(obj.state_variable, BasisStateVariable):
        raise ValueError(f"state_variable must be a BasisStateVariable, got {obj.state_variable}")


@dataclass(frozen=True, slots=True)
class MonomialBasis:
    """Regression basis 1, x, x^2, ..., x^degree of the state variable.

    Attributes
    ==========
    degree:
        Highest monomial power. Typical range: 2-5. Default: 4.
    state_variable:
        Quantity the monomials are evaluated on (underlying or exercise value).
    """

    degree: int = 4
    state_variable: BasisStateVariable | str = BasisStateVariable.UNDERLYING

    def __post_init__(self):
        if self.degree < 0:
            raise ValueError(f"degree must be >= 0, got {self.degree}")
        _coerce_state_variable(self)

    @property
    def number_of_functions(self) -> int:
        return self.degree + 1

    def reduced(self) -> "MonomialBasis | None":
        """Next smaller basis in the fallback chain, or None at degree 0."""
        if self.degree == 0:
            return None
        return MonomialBasis(degree=self.degree - 1, state_variable=self.state_variable)

    def describe(self) -> str:
        return f"monomial(degree={self.degree}, {self.state_variable.value})"


@dataclass(frozen=True, slots=True)
class BinnedBasis:
    """Regression basis of indicator functions of disjoint percentile bins.

    Attributes
    ==========
    number_of_bins:
        Number of equally populated bins. Default: 20.
    state_variable:
        Quantity whose realized distribution defines the bins.
    """

    number_of_bins: int = 20
    state_variable: BasisStateVariable | str = BasisStateVariable.UNDERLYING

    def __post_init__(self):
        if self.number_of_bins < 1:
            raise ValueError(f"number_of_bins must be >= 1, got {self.number_of_bins}")
        _coerce_state_variable(self)

    @property
    def number_of_functions(self) -> int:
        return self.number_of_bins

    def reduced(self) -> "BinnedBasis | MonomialBasis":
        """Halve the number of bins; a single bin degrades to the constant basis."""
        if self.number_of_bins <= 2:
            return MonomialBasis(degree=0, state_variable=self.state_variable)
        return BinnedBasis(number_of_bins=self.number_of_bins // 2, state_variable=self.state_variable)

    def describe(self) -> str:
        return f"binned(bins={self.number_of_bins}, {self.state_variable.value})"


@dataclass(frozen=True, slots=True)
class DualParams:
    """Parameters for the optimized dual (upper bound) method.

    Attributes
    ==========
    generators:
        Pair of zero-mean martingales spanning the family
        ``M_k = lambda_1 * g1_k + lambda_2 * g2_k``.
    initial_guess:
        Starting point ``(lambda_1, lambda_2)``. Default: (0.0, 60.0).
    bounds:
        Box constraints per parameter. Default: ((-5, 5), (-100, 100)).
    accuracy:
        Convergence tolerance handed to the optimizer. Default: 1e-5.
    max_iterations:
        Iteration budget of the optimizer. Default: 1000.
    timeout_seconds:
        Optional wall-clock budget; on expiry the best point found so far is
        returned flagged as not converged.
    """

    generators: tuple[MartingaleGenerator | str, MartingaleGenerator | str] = (
        MartingaleGenerator.DISCOUNTED_UNDERLYING,
        MartingaleGenerator.LOG_UNDERLYING,
    )
    initial_guess: tuple[float, float] = (0.0, 60.0)
    bounds: tuple[tuple[float, float], tuple[float, float]] = ((-5.0, 5.0), (-100.0, 100.0))
    accuracy: float = 1e-5
    max_iterations: int = 1000
    timeout_seconds: float | None = None

    def __post_init__(self):
        if len(self.generators) != 2:
            raise ValueError(f"generators must be a pair, got {len(self.generators)}")
        object.__setattr__(
            self,
            "generators",
            tuple(
                MartingaleGenerator(g) if isinstance(g, str) else g for g in self.generators
            ),
        )
        if not all(isinstance(g, MartingaleGenerator) for g in self.generators):
            raise ValueError(f"generators must be MartingaleGenerator values, got {self.generators}")
        if len(self.initial_guess) != 2 or len(self.bounds) != 2:
            raise ValueError("initial_guess and bounds must have one entry per generator")
        for guess, (lower, upper) in zip(self.initial_guess, self.bounds):
            if lower >= upper:
                raise ValueError(f"bounds must satisfy lower < upper, got ({lower}, {upper})")
            if not (lower <= guess <= upper):
                raise ValueError(f"initial_guess {guess} outside bounds ({lower}, {upper})")
        if self.accuracy <= 0:
            raise ValueError(f"accuracy must be positive, got {self.accuracy}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")


@dataclass(frozen=True, slots=True)
class ValuationParams:
    """Ambient valuation settings.

    Attributes
    ==========
    std_error_warn_ratio:
        Log a warning when standard error / value exceeds this ratio.
        None disables the check.
    log_timings:
        Log DEBUG timings of the primal and dual passes.
    bound_tolerance_sigmas:
        Number of combined standard errors by which the primal value may
        exceed the dual value before the bounds are reported inconsistent.
    """

    std_error_warn_ratio: float | None = None
    log_timings: bool = False
    bound_tolerance_sigmas: float = 3.0

    def __post_init__(self):
        if self.std_error_warn_ratio is not None and self.std_error_warn_ratio <= 0:
            raise ValueError(
                f"std_error_warn_ratio must be positive, got {self.std_error_warn_ratio}"
            )
        if self.bound_tolerance_sigmas < 0:
            raise ValueError(
                f"bound_tolerance_sigmas must be >= 0, got {self.bound_tolerance_sigmas}"
            )


# Type alias for any regression basis configuration
RegressionBasis = MonomialBasis | BinnedBasis
