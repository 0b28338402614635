"""Exercise schedule of a Bermudan option."""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Sequence
import numpy as np

from ..enums import OptionType
from ..exceptions import ConfigurationError, ValidationError
from ..path_vector import PathVector


@dataclass(frozen=True, slots=True)
class ExerciseSchedule:
    """Exercise dates ``T_1 < ... < T_M`` with a notional and strike per date.

    The cash flow received when exercising at ``T_k`` is
    ``notional_k * max(S(T_k) - K_k, 0)`` for calls and
    ``notional_k * max(K_k - S(T_k), 0)`` for puts.
    """

    exercise_dates: Sequence[float]
    notionals: Sequence[float]
    strikes: Sequence[float]
    option_type: OptionType = OptionType.CALL

    def __post_init__(self) -> None:
        dates = tuple(float(d) for d in self.exercise_dates)
        notionals = tuple(float(n) for n in self.notionals)
        strikes = tuple(float(k) for k in self.strikes)
        if not dates:
            raise ValidationError("exercise_dates must not be empty")
        if len(notionals) != len(dates) or len(strikes) != len(dates):
            raise ValidationError(
                f"notionals ({len(notionals)}) and strikes ({len(strikes)}) must match "
                f"the number of exercise dates ({len(dates)})"
            )
        if dates[0] <= 0.0:
            raise ValidationError("exercise dates must be after time 0")
        if np.any(np.diff(dates) <= 0.0):
            raise ValidationError("exercise dates must be strictly increasing")
        if not np.all(np.isfinite(notionals + strikes)):
            raise ValidationError("notionals and strikes must be finite")
        option_type = self.option_type
        if isinstance(option_type, str):
            try:
                option_type = OptionType(option_type.lower())
            except ValueError as exc:
                raise ConfigurationError(
                    f"option_type must be one of {[t.value for t in OptionType]}, got {self.option_type!r}"
                ) from exc
        if not isinstance(option_type, OptionType):
            raise ConfigurationError(
                f"option_type must be an OptionType, got {type(option_type).__name__}"
            )
        object.__setattr__(self, "option_type", option_type)
        object.__setattr__(self, "exercise_dates", dates)
        object.__setattr__(self, "notionals", notionals)
        object.__setattr__(self, "strikes", strikes)

    @classmethod
    def single(
        cls,
        exercise_date: float,
        strike: float,
        notional: float = 1.0,
        option_type: OptionType = OptionType.CALL,
    ) -> ExerciseSchedule:
        """European special case: one exercise date."""
        return cls((exercise_date,), (notional,), (strike,), option_type)

    def __len__(self) -> int:
        return len(self.exercise_dates)

    @property
    def last_date(self) -> float:
        return self.exercise_dates[-1]

    def cash_flow(self, index: int, underlying: PathVector) -> PathVector:
        """Undiscounted cash flow at exercise date ``index`` given ``S(T_index)``."""
        strike = self.strikes[index]
        if self.option_type is OptionType.CALL:
            intrinsic = underlying.sub(strike).floor(0.0)
        else:
            intrinsic = underlying.mult(-1.0).add(strike).floor(0.0)
        return intrinsic.mult(self.notionals[index])
