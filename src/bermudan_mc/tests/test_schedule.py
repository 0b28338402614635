"""Tests for ExerciseSchedule validation and cash flows."""

import numpy as np
import pytest

from bermudan_mc.enums import OptionType
from bermudan_mc.exceptions import ConfigurationError, ValidationError
from bermudan_mc.path_vector import PathVector
from bermudan_mc.valuation import ExerciseSchedule


class TestExerciseScheduleValidation:
    def test_sequences_are_normalised_to_float_tuples(self):
        schedule = ExerciseSchedule([1, 2], np.array([1, 2]), [80, 100])
        assert schedule.exercise_dates == (1.0, 2.0)
        assert schedule.notionals == (1.0, 2.0)
        assert schedule.strikes == (80.0, 100.0)
        assert len(schedule) == 2
        assert schedule.last_date == 2.0

    def test_empty_raises(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            ExerciseSchedule((), (), ())

    def test_length_mismatch_raises(self):
        with pytest.raises(ValidationError, match="must match"):
            ExerciseSchedule((1.0, 2.0), (1.0,), (80.0, 100.0))

    @pytest.mark.parametrize("dates", [(0.0, 1.0), (-1.0, 1.0)])
    def test_dates_must_be_after_time_zero(self, dates):
        with pytest.raises(ValidationError, match="after time 0"):
            ExerciseSchedule(dates, (1.0, 1.0), (1.0, 1.0))

    @pytest.mark.parametrize("dates", [(2.0, 1.0), (1.0, 1.0)])
    def test_dates_must_increase(self, dates):
        with pytest.raises(ValidationError, match="strictly increasing"):
            ExerciseSchedule(dates, (1.0, 1.0), (1.0, 1.0))

    def test_non_finite_strike_raises(self):
        with pytest.raises(ValidationError, match="finite"):
            ExerciseSchedule((1.0,), (1.0,), (np.nan,))

    def test_string_option_type_is_coerced(self):
        schedule = ExerciseSchedule((1.0,), (1.0,), (100.0,), option_type="put")
        assert schedule.option_type is OptionType.PUT
        assert ExerciseSchedule.single(1.0, strike=100.0, option_type="CALL").option_type is OptionType.CALL
        flow = schedule.cash_flow(0, PathVector.from_array([70.0, 130.0], time=1.0))
        assert np.allclose(flow.realizations, [30.0, 0.0])

    def test_unknown_option_type_raises(self):
        with pytest.raises(ConfigurationError, match="straddle"):
            ExerciseSchedule((1.0,), (1.0,), (100.0,), option_type="straddle")
        with pytest.raises(ConfigurationError, match="OptionType"):
            ExerciseSchedule((1.0,), (1.0,), (100.0,), option_type=1)


class TestCashFlow:
    def setup_method(self):
        self.underlying = PathVector.from_array([70.0, 100.0, 130.0], time=1.0)

    def test_call_cash_flow(self):
        schedule = ExerciseSchedule.single(1.0, strike=100.0, notional=2.0)
        flow = schedule.cash_flow(0, self.underlying)
        assert np.allclose(flow.realizations, [0.0, 0.0, 60.0])
        assert flow.time == 1.0

    def test_put_cash_flow(self):
        schedule = ExerciseSchedule.single(1.0, strike=100.0, option_type=OptionType.PUT)
        flow = schedule.cash_flow(0, self.underlying)
        assert np.allclose(flow.realizations, [30.0, 0.0, 0.0])

    def test_per_date_strikes(self):
        schedule = ExerciseSchedule((1.0, 2.0), (1.0, 1.0), (80.0, 120.0))
        assert np.allclose(schedule.cash_flow(0, self.underlying).realizations, [0.0, 20.0, 50.0])
        assert np.allclose(schedule.cash_flow(1, self.underlying).realizations, [0.0, 0.0, 10.0])
