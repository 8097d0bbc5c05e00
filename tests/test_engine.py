"""
Integration tests for the simulation engine
Validates the per-period sequence, feedback loop and run semantics
"""

import logging

import numpy as np
import pytest

from solar_loop.components import (
    SPECIFIC_HEAT, PhysicalConstants,
    SolarCollector, SolarCollectorParams,
    Pump, PumpParams,
    StorageTank, StorageTankParams,
)
from solar_loop.engine import SimulationEngine, SimulationHistory, PeriodSnapshot
from solar_loop.exceptions import SimulationError, WeatherDataError
from solar_loop.models import (
    ConstantIrradianceSource, ForecastIrradianceSource,
    StaticWeatherProvider, WeatherProvider,
)


def _scenario_engine(source=None, water_mass=100.0, air_temperature=30.0, hour=12.0, **constants):
    """Reference scenario: 800 W/m², 2 m² collector, 100 kg tank."""
    constants = PhysicalConstants(**constants)
    collector = SolarCollector(
        "SC",
        SolarCollectorParams(efficiency=0.2, loss_factor=0.05,
                             temperature_coefficient=0.4, area=2.0),
        constants=constants,
    )
    pump = Pump("Pump", PumpParams(efficiency=0.9))
    tank = StorageTank(
        "Tank",
        StorageTankParams(water_mass=water_mass, heat_loss_rate=0.01, ambient_temperature=20.0),
        initial_temp=25.0, initial_energy=0.0, constants=constants,
    )
    if source is None:
        source = ConstantIrradianceSource(800.0, air_temperature=air_temperature, start_hour=hour)
    return SimulationEngine(collector, pump, tank, source, constants)


class FailingProvider(WeatherProvider):
    """Provider whose upstream service is down"""

    def __init__(self):
        self.calls = 0

    def fetch_forecast(self, location):
        self.calls += 1
        raise ConnectionError("forecast service unavailable")


class CountingProvider(StaticWeatherProvider):
    """Static provider that counts fetches"""

    def __init__(self, points):
        super().__init__(points)
        self.calls = 0

    def fetch_forecast(self, location):
        self.calls += 1
        return super().fetch_forecast(location)


class TestReferenceScenario:
    """First period must follow the component formulas exactly"""

    def test_first_step_values(self):
        engine = _scenario_engine()

        snapshot = engine.step(0)

        m_c = 100.0 * SPECIFIC_HEAT
        absorbed = 800.0 * 1.0 * 2.0 * 0.196 * 10800.0
        collector_energy = absorbed * 0.95
        transferred = collector_energy * 0.9
        T_after_store = (transferred + m_c) / m_c
        heat_loss = 0.01 * (T_after_store - 20.0)
        stored = transferred - heat_loss

        assert snapshot.period_index == 0
        assert snapshot.irradiance_in == 800.0
        assert snapshot.energy_absorbed == pytest.approx(absorbed)
        assert snapshot.energy_transferred == pytest.approx(transferred)
        assert snapshot.heat_loss == pytest.approx(heat_loss)
        assert snapshot.stored_energy == pytest.approx(stored)
        assert snapshot.tank_temperature == pytest.approx(stored / m_c)
        assert snapshot.inlet_temperature == pytest.approx(absorbed / SPECIFIC_HEAT)

    def test_collector_drained_after_step(self):
        engine = _scenario_engine()
        engine.step(0)
        assert engine.collector.stored_energy == 0.0

    def test_tank_temperature_fed_back_to_collector(self):
        """Tank temperature becomes the next inlet temperature"""
        engine = _scenario_engine()

        first = engine.step(0)
        assert engine.collector.inlet_water_temperature == first.tank_temperature

        second = engine.step(1)
        expected_inlet = first.tank_temperature + second.energy_absorbed / SPECIFIC_HEAT
        assert second.inlet_temperature == pytest.approx(expected_inlet)

    def test_no_randomness_with_fixed_inputs(self):
        a = _scenario_engine().run(5)
        b = _scenario_engine().run(5)
        assert a == b

    def test_step_duration_injected(self):
        """Halving the step duration halves the absorbed energy"""
        full = _scenario_engine().step(0)
        half = _scenario_engine(step_duration=5400.0).step(0)
        assert half.energy_absorbed == pytest.approx(full.energy_absorbed / 2)

    def test_component_states_after_step(self):
        engine = _scenario_engine()

        snapshot = engine.step(0)
        states = engine.component_states()

        assert set(states) == {"SC", "Pump", "Tank"}
        assert states["SC"]['stored_energy'] == 0.0
        assert states["SC"]['inlet_water_temperature'] == snapshot.tank_temperature
        assert states["Pump"]['efficiency'] == 0.9
        assert states["Tank"]['stored_energy'] == snapshot.stored_energy
        assert states["Tank"]['temperature'] == snapshot.tank_temperature

    def test_component_states_logged_at_debug(self, caplog):
        engine = _scenario_engine()

        with caplog.at_level(logging.DEBUG, logger="solar_loop.engine"):
            engine.step(0)

        state_lines = [r.message for r in caplog.records if "component states" in r.message]
        assert len(state_lines) == 1
        assert "'Tank'" in state_lines[0]


class TestRunSemantics:
    """Test ordering, length and lifecycle of a run"""

    @pytest.mark.parametrize("n", [0, 1, 7])
    def test_snapshot_count_and_order(self, n):
        engine = _scenario_engine()

        snapshots = engine.run(n)

        assert len(snapshots) == n
        assert [s.period_index for s in snapshots] == list(range(n))
        assert len(engine.history) == n

    def test_run_is_not_restartable(self):
        engine = _scenario_engine()
        engine.run(2)
        with pytest.raises(SimulationError):
            engine.run(2)

    def test_negative_period_count_rejected(self):
        with pytest.raises(SimulationError):
            _scenario_engine().run(-1)

    def test_stored_energy_never_negative(self):
        """Tank energy stays non-negative across day and night periods"""
        source = ConstantIrradianceSource(800.0, air_temperature=30.0, start_hour=0.0, step_hours=3.0)
        engine = _scenario_engine(source=source)

        snapshots = engine.run(24)

        assert all(s.stored_energy >= 0.0 for s in snapshots)

    def test_no_temperature_rise_at_midnight(self):
        """Period at hour 0 absorbs nothing"""
        engine = _scenario_engine(hour=0.0)
        snapshot = engine.step(0)
        assert snapshot.energy_absorbed == 0.0
        assert snapshot.energy_transferred == 0.0
        # Drained inlet of 0.0 still selects the inlet branch: 1°C, then ambient gain
        assert snapshot.heat_loss == pytest.approx(0.01 * (1.0 - 20.0))
        assert snapshot.stored_energy == pytest.approx(0.19)

    def test_empty_tank_holds_ambient(self):
        engine = _scenario_engine(water_mass=0.0)

        snapshots = engine.run(3)

        assert all(s.tank_temperature == 20.0 for s in snapshots)
        assert engine.collector.inlet_water_temperature == 20.0


class TestForecastDrivenRun:
    """Test runs backed by weather forecasts"""

    def test_forecast_fetched_once(self, forecast_points):
        provider = CountingProvider(forecast_points)
        engine = _scenario_engine(source=ForecastIrradianceSource(provider, base_irradiance=800.0))

        snapshots = engine.run(8)

        assert provider.calls == 1
        assert all(s.irradiance_in == pytest.approx(600.0) for s in snapshots)
        assert [s.hour_of_day for s in snapshots] == [0, 3, 6, 9, 12, 15, 18, 21]

    def test_fetch_failure_terminates_run(self):
        provider = FailingProvider()
        engine = _scenario_engine(source=ForecastIrradianceSource(provider))

        with pytest.raises(WeatherDataError, match="forecast service unavailable"):
            engine.run(4)

        assert provider.calls == 1
        assert len(engine.history) == 0
        assert engine.tank.temperature == 25.0

    def test_short_forecast_rejected_before_first_period(self, forecast_points):
        provider = StaticWeatherProvider(forecast_points[:3])
        engine = _scenario_engine(source=ForecastIrradianceSource(provider))

        with pytest.raises(WeatherDataError):
            engine.run(4)

        assert len(engine.history) == 0


class TestNumericWarnings:
    """Odd but valid numeric outcomes are logged, not raised"""

    def test_negative_efficiency_logged_once(self, caplog):
        engine = _scenario_engine(air_temperature=300.0)

        with caplog.at_level(logging.WARNING, logger="solar_loop.engine"):
            snapshots = engine.run(3)

        assert snapshots[0].energy_absorbed < 0
        messages = [r for r in caplog.records if "efficiency is negative" in r.getMessage()]
        assert len(messages) == 1

    def test_cold_tank_logged(self, caplog):
        engine = _scenario_engine(hour=0.0)

        with caplog.at_level(logging.WARNING, logger="solar_loop.engine"):
            engine.run(2)

        assert any("colder than ambient" in r.getMessage() for r in caplog.records)


class TestSimulationHistory:
    """Test the read-only result view"""

    def test_arrays_and_summary(self):
        engine = _scenario_engine()
        engine.run(4)

        arrays = engine.history.as_arrays()
        summary = engine.history.summary()

        assert arrays['period_index'].tolist() == [0, 1, 2, 3]
        assert summary['periods'] == 4
        assert summary['total_absorbed'] == pytest.approx(np.sum(arrays['energy_absorbed']))
        assert summary['final_temperature'] == engine.tank.temperature
        assert summary['peak_temperature'] >= summary['final_temperature']

    def test_dataframe_columns(self):
        engine = _scenario_engine()
        engine.run(2)

        df = engine.history.to_dataframe()

        assert len(df) == 2
        assert list(df.columns[:6]) == [
            'period_index', 'irradiance_in', 'energy_absorbed',
            'energy_transferred', 'stored_energy', 'tank_temperature',
        ]

    def test_empty_summary(self):
        summary = SimulationHistory().summary()
        assert summary['periods'] == 0
        assert np.isnan(summary['final_temperature'])

    def test_gap_rejected(self):
        history = SimulationHistory()
        history.append(PeriodSnapshot(0, 0.0, 0.0, 0.0, 0.0, 20.0))
        with pytest.raises(SimulationError):
            history.append(PeriodSnapshot(2, 0.0, 0.0, 0.0, 0.0, 20.0))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
