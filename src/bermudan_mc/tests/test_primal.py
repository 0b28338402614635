"""Tests for the regression (primal) lower bound."""

import logging

import numpy as np
import pandas as pd
import pytest

from bermudan_mc.enums import BasisStateVariable
from bermudan_mc.exceptions import ConfigurationError, ModelContractError
from bermudan_mc.path_vector import PathVector
from bermudan_mc.valuation import (
    BinnedBasis,
    ExerciseSchedule,
    MonomialBasis,
    PrimalValuationEngine,
    ValuationParams,
    value_primal,
)
from bermudan_mc.valuation.diagnostics import value_with_foresight

from bermudan_mc.tests.helpers import model_from_paths, random_bases


class _NegativeNumeraireModel:
    """Delegates to a real model but reports a broken numeraire."""

    def __init__(self, model):
        self._model = model

    @property
    def number_of_paths(self):
        return self._model.number_of_paths

    def get_underlying_value(self, time):
        return self._model.get_underlying_value(time)

    def get_numeraire(self, time):
        return PathVector.constant(-1.0, time)

    def get_discount_factor(self, time):
        return self._model.get_discount_factor(time)


class _KnownFirstDateModel:
    """Delegates to a real model but reports a deterministic underlying at T=1."""

    def __init__(self, model):
        self._model = model

    @property
    def number_of_paths(self):
        return self._model.number_of_paths

    def get_underlying_value(self, time):
        if time == 1.0:
            return PathVector.constant(100.0, time)
        return self._model.get_underlying_value(time)

    def get_numeraire(self, time):
        return self._model.get_numeraire(time)

    def get_discount_factor(self, time):
        return self._model.get_discount_factor(time)


class TestHandComputedPaths:
    """Three paths, two exercise dates: every number can be checked by hand."""

    def setup_method(self):
        self.model = model_from_paths(
            [0.0, 1.0, 2.0],
            [
                [100.0, 100.0, 100.0],
                [70.0, 100.0, 130.0],
                [95.0, 120.0, 105.0],
            ],
        )
        self.schedule = ExerciseSchedule((1.0, 2.0), (1.0, 1.0), (80.0, 80.0))

    def test_value_and_exercise_probabilities(self):
        # a quadratic through three points reproduces Z_2 = [15, 40, 25];
        # Z_1 = [0, 20, 50] beats it only on the third path
        result = PrimalValuationEngine(self.schedule, self.model, MonomialBasis(degree=2)).value()
        assert np.isclose(result.value, 35.0)
        assert np.allclose(result.exercise_probabilities.values, [1 / 3, 2 / 3])
        assert result.never_exercised_probability == 0.0
        assert np.allclose(result.exercise_time.realizations, [2.0, 2.0, 1.0])
        assert not result.is_flagged

    def test_regression_fallback_is_logged_and_flagged(self, caplog):
        engine = PrimalValuationEngine(self.schedule, self.model, MonomialBasis(degree=4))
        with caplog.at_level(logging.WARNING, logger="bermudan_mc.valuation.primal"):
            result = engine.value()
        assert np.isclose(result.value, 35.0)
        assert result.is_flagged
        assert result.regression_fallback_dates == (1.0,)
        first = result.steps[0]
        assert first.used_fallback
        assert first.basis_description == "monomial(degree=2, underlying)"
        assert sum("falling back" in r.getMessage() for r in caplog.records) == 2

    def test_terminal_exercise_only_with_positive_payoff(self):
        model = model_from_paths([0.0, 1.0], [[100.0, 100.0, 100.0], [70.0, 120.0, 105.0]])
        result = value_primal(ExerciseSchedule.single(1.0, strike=80.0), model)
        assert np.isclose(result.value, (40.0 + 25.0) / 3.0)
        assert np.allclose(result.exercise_probabilities.values, [2 / 3])
        assert np.isclose(result.never_exercised_probability, 1 / 3)
        assert np.isinf(result.exercise_time[0])

    def test_summary_frame(self):
        result = PrimalValuationEngine(self.schedule, self.model, MonomialBasis(degree=2)).value()
        summary = result.summary()
        assert isinstance(summary, pd.DataFrame)
        assert list(summary.index) == [1.0, 2.0]
        assert np.isnan(summary.loc[2.0, "continuation_estimate"])
        assert np.isclose(summary.loc[1.0, "exercise_probability"], 1 / 3)


class TestDeterministicStateAtExercise:
    """The underlying is known at T=1, so the continuation estimate is the plain mean."""

    def setup_method(self):
        paths = [[100.0] * 4, [100.0] * 4, [90.0, 110.0, 100.0, 120.0]]
        self.model = _KnownFirstDateModel(model_from_paths([0.0, 1.0, 2.0], paths))
        self.schedule = ExerciseSchedule((1.0, 2.0), (1.0, 1.0), (95.0, 100.0))

    def test_monomial_basis_falls_back_to_constant(self):
        # Z_1 = 5 against E[Z_2] = (0 + 10 + 0 + 20) / 4 = 7.5: never exercise
        result = value_primal(self.schedule, self.model, MonomialBasis(degree=2))
        assert np.isclose(result.value, 7.5)
        assert result.regression_fallback_dates == (1.0,)
        assert result.steps[0].basis_description == "monomial(degree=0, underlying)"
        assert np.allclose(result.steps[0].continuation_estimate.realizations, 7.5)
        assert result.exercise_probabilities[1.0] == 0.0

    def test_binned_basis_uses_single_populated_bucket(self):
        result = value_primal(self.schedule, self.model, BinnedBasis(number_of_bins=4))
        assert np.isclose(result.value, 7.5)
        assert not result.is_flagged

class TestDecisionVersusCarriedValue:
    def test_carried_value_uses_realized_cash_flows(self, bs_model, bermudan_schedule):
        engine = PrimalValuationEngine(bermudan_schedule, bs_model)
        steps, _, _ = engine.backward_induction()
        first, last = steps
        exercised = first.exercise_indicator.realizations == 1.0
        carried = first.continuation_value.realizations
        # exercising paths carry Z_1, the others the realized Z_2, never the estimate
        assert np.array_equal(carried[exercised], first.exercise_value.realizations[exercised])
        assert np.array_equal(carried[~exercised], last.exercise_value.realizations[~exercised])

    def test_steps_are_in_date_order(self, bs_model, three_date_schedule):
        steps, _, _ = PrimalValuationEngine(three_date_schedule, bs_model).backward_induction()
        assert [s.exercise_date for s in steps] == [1.0, 3.0, 5.0]
        assert steps[-1].continuation_estimate is None
        assert all(s.continuation_estimate is not None for s in steps[:-1])


class TestPrimalProperties:
    def test_single_date_is_discounted_payoff(self, rates_bs_model):
        schedule = ExerciseSchedule.single(5.0, strike=100.0)
        result = value_primal(schedule, rates_bs_model)
        payoff = np.maximum(rates_bs_model.get_underlying_value(5.0).realizations - 100.0, 0.0)
        assert np.isclose(result.value, payoff.mean() * np.exp(-0.03 * 5.0), rtol=1e-12)

    @pytest.mark.parametrize(
        "basis", [MonomialBasis()] + random_bases(seed=7), ids=lambda basis: basis.describe()
    )
    def test_value_is_non_negative(self, bs_model, bermudan_schedule, basis):
        result = value_primal(bermudan_schedule, bs_model, basis)
        assert result.value >= 0.0
        assert result.pathwise_value.min() >= 0.0

    def test_probabilities_sum_to_one(self, bs_model, three_date_schedule):
        result = value_primal(three_date_schedule, bs_model)
        assert np.isclose(result.exercise_probabilities.sum() + result.never_exercised_probability, 1.0)
        assert result.exercise_probabilities.index.name == "exercise_date"

    def test_foresight_dominates_pathwise(self, bs_model, bermudan_schedule):
        primal = value_primal(bermudan_schedule, bs_model)
        foresight = value_with_foresight(bermudan_schedule, bs_model)
        assert np.all(foresight.pathwise_value.realizations >= primal.pathwise_value.realizations - 1e-12)
        assert foresight.value > primal.value

    def test_binned_and_monomial_agree(self, bs_model, bermudan_schedule):
        monomial = value_primal(bermudan_schedule, bs_model, MonomialBasis(degree=5))
        binned = value_primal(bermudan_schedule, bs_model, BinnedBasis(number_of_bins=50))
        noise = np.hypot(monomial.standard_error, binned.standard_error)
        assert abs(monomial.value - binned.value) < 4.0 * noise

    def test_richer_basis_does_not_lose_value(self, bs_model, bermudan_schedule):
        values = [
            value_primal(bermudan_schedule, bs_model, MonomialBasis(degree=degree))
            for degree in range(1, 6)
        ]
        for poorer, richer in zip(values, values[1:]):
            assert richer.value >= poorer.value - 3.0 * richer.standard_error
        assert values[-1].value > values[0].value

    def test_exercise_value_state_variable(self, bs_model, bermudan_schedule):
        basis = MonomialBasis(degree=4, state_variable=BasisStateVariable.EXERCISE_VALUE)
        result = value_primal(bermudan_schedule, bs_model, basis)
        reference = value_primal(bermudan_schedule, bs_model)
        assert abs(result.value - reference.value) < 4.0 * reference.standard_error

    def test_put_schedule(self, bs_model, put_schedule):
        result = value_primal(put_schedule, bs_model, MonomialBasis(degree=3))
        european = value_primal(ExerciseSchedule.single(5.0, 100.0, option_type=put_schedule.option_type), bs_model)
        assert result.value > 0.0
        # with r=0 early exercise of a put has no value beyond noise
        assert result.value <= european.value + 4.0 * european.standard_error


class TestPrimalErrors:
    def test_broken_numeraire_aborts(self, bs_model, bermudan_schedule):
        with pytest.raises(ModelContractError, match="numeraire"):
            value_primal(bermudan_schedule, _NegativeNumeraireModel(bs_model))

    def test_date_outside_model_grid_aborts(self, bs_model):
        schedule = ExerciseSchedule((1.5, 5.0), (1.0, 1.0), (80.0, 100.0))
        with pytest.raises(ModelContractError):
            value_primal(schedule, bs_model)

    def test_non_model_raises(self, bermudan_schedule):
        with pytest.raises(ConfigurationError, match="SimulationModel"):
            PrimalValuationEngine(bermudan_schedule, object())

    def test_non_basis_raises(self, bs_model, bermudan_schedule):
        with pytest.raises(ConfigurationError, match="basis"):
            PrimalValuationEngine(bermudan_schedule, bs_model, basis="monomial")


def test_std_error_warning_is_logged(bs_model, bermudan_schedule, caplog):
    params = ValuationParams(std_error_warn_ratio=1e-6)
    with caplog.at_level(logging.WARNING, logger="bermudan_mc.valuation.primal"):
        value_primal(bermudan_schedule, bs_model, params=params)
    assert any("standard error high" in r.getMessage() for r in caplog.records)
