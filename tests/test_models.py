import numpy as np
import pandas as pd
import pytest

from iam_models import build_model
from iam_models.dice import DiceModel
from iam_models.errors import ConfigurationError, EngineError, ModelStateError
from iam_models.page import PageModel
from iam_models.scenarios import SCENARIO_NAMES, IAMFamily


@pytest.fixture
def page_run() -> PageModel:
    model = build_model("PAGE", "IMAGE")
    model.run()
    return model


def test_build_model_dispatches_on_family():
    assert isinstance(build_model("page", "IMAGE"), PageModel)
    assert isinstance(build_model(IAMFamily.DICE, "MESSAGE"), DiceModel)
    with pytest.raises(ConfigurationError):
        build_model("FUND", "IMAGE")
    with pytest.raises(ConfigurationError):
        build_model("PAGE", "SSP2")


@pytest.mark.parametrize("family", ["PAGE", "DICE"])
@pytest.mark.parametrize("scenario", SCENARIO_NAMES)
def test_every_family_and_scenario_runs(family: str, scenario: str):
    model = build_model(family, scenario)
    model.run()
    temperature = model.get_variable("climate", "temperature_c")
    assert temperature.shape == model.years.shape
    assert np.all(np.isfinite(temperature))
    assert temperature[-1] > temperature[0]


def test_outputs_require_a_run():
    model = build_model("PAGE", "IMAGE")
    assert not model.has_run
    with pytest.raises(ModelStateError):
        model.get_variable("climate", "temperature_c")
    with pytest.raises(ModelStateError):
        model.variables()

    model.run()
    assert ("climate", "temperature_c") in model.variables()
    assert model.get_variable("climate", "temperature_c").shape == (len(model.years),)


def test_outputs_are_read_only(page_run: PageModel):
    impacts = page_run.get_variable("damages", "impact_musd")
    assert not impacts.flags.writeable
    with pytest.raises(ValueError):
        impacts[0, 0] = 0.0


def test_unknown_variable(page_run: PageModel):
    with pytest.raises(ConfigurationError):
        page_run.get_variable("climate", "sea_level_m")
    assert ("welfare", "total_discounted_impacts") in page_run.variables()


def test_model_runs_once(page_run: PageModel):
    with pytest.raises(ModelStateError):
        page_run.run()
    with pytest.raises(ModelStateError):
        page_run.update_parameter("climate_sensitivity", 4.0)


def test_regional_values_sum_to_global(page_run: PageModel):
    np.testing.assert_allclose(
        page_run.get_variable("emissions", "regional_mt").sum(axis=1),
        page_run.get_variable("emissions", "global_mt"),
    )
    assert float(page_run.get_variable("emissions", "base_global_mt")) == pytest.approx(31400.0)


def test_welfare_reduces_to_impacts_without_equity_weights(page_run: PageModel):
    np.testing.assert_allclose(
        page_run.get_variable("welfare", "equity_weighted_impact"),
        page_run.get_variable("damages", "impact_musd"),
    )
    total = page_run.get_variable("welfare", "discounted_impact_aggregated").sum()
    assert float(page_run.get_variable("welfare", "total_discounted_impacts")) == pytest.approx(
        total
    )


def test_higher_sensitivity_warms_more():
    default = build_model("PAGE", "IMAGE")
    sensitive = build_model("PAGE", "IMAGE")
    sensitive.update_parameter("climate_sensitivity", 4.5)
    default.run()
    sensitive.run()
    assert np.all(
        sensitive.get_variable("climate", "temperature_c")[1:]
        > default.get_variable("climate", "temperature_c")[1:]
    )


def test_update_parameter_validation():
    model = build_model("PAGE", "IMAGE")
    with pytest.raises(ConfigurationError):
        model.update_parameter("no_such_parameter", 1.0)
    with pytest.raises(ConfigurationError):
        model.update_parameter("excess_forcing_wm2", np.zeros(3))
    with pytest.raises(ConfigurationError):
        model.update_parameter("emissions_0_mt", (1.0, 2.0))


def test_update_parameter_replaces_the_record():
    model = build_model("PAGE", "IMAGE")
    before = model.parameters
    model.update_parameter("emissions_0_mt", 1000.0)
    assert model.parameters is not before
    assert model.parameters.emissions_0_mt == (1000.0,) * 8
    assert before.emissions_0_mt[0] == 4200.0


def test_update_timesteps_interpolates_onto_grid():
    model = build_model("PAGE", "IMAGE")
    model.update_parameter(
        "excess_forcing_wm2", {2000: 0.0, 2300: 3.0}, update_timesteps=True
    )
    expected = 3.0 * (model.years - 2000.0) / 300.0
    np.testing.assert_allclose(model.parameters.excess_forcing_wm2, expected)

    population = pd.Series({2000: 100.0, 2400: 500.0})
    model.update_parameter("population_million", population, update_timesteps=True)
    assert model.parameters.population_million.shape == (10, 8)
    np.testing.assert_allclose(model.parameters.population_million[1], np.full(8, 120.0))


def test_update_timesteps_needs_year_keyed_values():
    model = build_model("PAGE", "IMAGE")
    with pytest.raises(ConfigurationError):
        model.update_parameter("excess_forcing_wm2", [0.0, 1.0], update_timesteps=True)


def test_dice_damage_settings_update():
    model = build_model("DICE", "IMAGE")
    model.update_parameter("damages", {"delta2": 0.005})
    assert model.parameters.damages.delta2 == 0.005
    with pytest.raises(ConfigurationError):
        model.update_parameter("damages", {"delta9": 1.0})


def test_spawn_returns_unexecuted_copy(page_run: PageModel):
    twin = page_run.spawn()
    assert not twin.has_run
    assert twin.parameters is page_run.parameters
    assert twin.scenario is page_run.scenario


def test_non_finite_output_raises_engine_error():
    model = build_model("PAGE", "IMAGE")
    model.update_parameter("climate_sensitivity", float("nan"))
    with pytest.raises(EngineError):
        model.run()


def test_dice_has_no_discontinuity():
    model = build_model("DICE", "IMAGE")
    model.run()
    np.testing.assert_array_equal(model.get_variable("discontinuity", "occurrence"), 0.0)
    assert model.get_variable("damages", "impact_musd").shape == (len(model.years), 1)
