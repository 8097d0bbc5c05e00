"""
Simulation engine for the solar loop.

Each period:
1. Read irradiance and ambient context from the irradiance source
2. Collector absorbs energy
3. Collector is drained
4. Pump moves the energy into the tank
5. Tank loses heat to ambient
6. Tank temperature becomes the collector's next inlet temperature
7. Snapshot is recorded
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Optional
import logging

import numpy as np
import pandas as pd

from solar_loop.components import (
    PhysicalConstants, SolarCollector, Pump, StorageTank,
)
from solar_loop.exceptions import SimulationError, WeatherDataError
from solar_loop.models import IrradianceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodSnapshot:
    """Read-only record of one simulated period"""
    period_index: int
    irradiance_in: float       # W/m²
    energy_absorbed: float     # J, before collector self-loss
    energy_transferred: float  # J, delivered to the tank
    stored_energy: float       # J, tank after heat loss
    tank_temperature: float    # °C
    air_temperature: float = 0.0
    hour_of_day: float = 0.0
    heat_loss: float = 0.0     # J, negative when the tank gained from ambient
    inlet_temperature: float = 0.0


class SimulationHistory:
    """Append-only, period-ordered sequence of snapshots"""

    def __init__(self):
        self._snapshots: List[PeriodSnapshot] = []

    def append(self, snapshot: PeriodSnapshot):
        if self._snapshots and snapshot.period_index != self._snapshots[-1].period_index + 1:
            raise SimulationError(
                f"Period {snapshot.period_index} does not follow "
                f"{self._snapshots[-1].period_index}")
        self._snapshots.append(snapshot)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self):
        return iter(self._snapshots)

    def __getitem__(self, index):
        return self._snapshots[index]

    @property
    def snapshots(self) -> List[PeriodSnapshot]:
        return list(self._snapshots)

    def as_arrays(self) -> Dict[str, np.ndarray]:
        """Column-wise numpy arrays keyed by snapshot field name"""
        return {
            f.name: np.array([getattr(s, f.name) for s in self._snapshots], dtype=float)
            for f in fields(PeriodSnapshot)
        }

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(s) for s in self._snapshots],
                            columns=[f.name for f in fields(PeriodSnapshot)])

    def summary(self) -> Dict[str, float]:
        """Energy totals and temperature extremes over the run"""
        if not self._snapshots:
            return {
                'periods': 0,
                'total_absorbed': 0.0,
                'total_transferred': 0.0,
                'total_heat_loss': 0.0,
                'final_temperature': float('nan'),
                'peak_temperature': float('nan'),
            }

        arr = self.as_arrays()
        return {
            'periods': len(self._snapshots),
            'total_absorbed': float(np.sum(arr['energy_absorbed'])),
            'total_transferred': float(np.sum(arr['energy_transferred'])),
            'total_heat_loss': float(np.sum(arr['heat_loss'])),
            'final_temperature': float(arr['tank_temperature'][-1]),
            'peak_temperature': float(np.max(arr['tank_temperature'])),
        }


class SimulationEngine:
    """
    Steps the collector → pump → tank loop through discrete periods.

    The engine is the only mutator of collector and tank state and owns
    the feedback wiring between them. A run is finite and cannot be
    restarted; build a new engine for a new run.
    """

    def __init__(
        self,
        collector: SolarCollector,
        pump: Pump,
        tank: StorageTank,
        source: IrradianceSource,
        constants: Optional[PhysicalConstants] = None,
    ):
        self.collector = collector
        self.pump = pump
        self.tank = tank
        self.source = source
        self.constants = constants or PhysicalConstants()

        self.history = SimulationHistory()
        self._started = False
        self._warned_negative_efficiency = False
        self._warned_cold_tank = False

    def step(self, period_index: int) -> PeriodSnapshot:
        """Advance every component through one period"""
        cond = self.source.conditions(period_index)

        energy_absorbed = self.collector.absorb(
            cond.irradiance, cond.air_temperature, cond.hour_of_day,
            self.constants.step_duration,
        )
        energy, inlet_temperature = self.collector.drain()
        transferred = self.pump.move(energy, inlet_temperature, self.tank)
        heat_loss = self.tank.apply_heat_loss()

        # Feedback: tank temperature is the next inlet temperature
        self.collector.set_inlet_temperature(self.tank.temperature)

        self._check_numeric_edges(cond.air_temperature, heat_loss, period_index)

        snapshot = PeriodSnapshot(
            period_index=period_index,
            irradiance_in=cond.irradiance,
            energy_absorbed=energy_absorbed,
            energy_transferred=transferred,
            stored_energy=self.tank.stored_energy,
            tank_temperature=self.tank.temperature,
            air_temperature=cond.air_temperature,
            hour_of_day=cond.hour_of_day,
            heat_loss=heat_loss,
            inlet_temperature=inlet_temperature,
        )
        self.history.append(snapshot)

        logger.debug(
            f"Period {period_index}: irradiance {cond.irradiance:.1f} W/m², "
            f"absorbed {energy_absorbed:.1f} J, tank {self.tank.temperature:.2f}°C")
        logger.debug(f"Period {period_index} component states: {self.component_states()}")
        return snapshot

    def run(self, period_count: int) -> List[PeriodSnapshot]:
        """
        Run period_count periods and return their snapshots in order.

        Raises:
            SimulationError: If the engine already ran or period_count is negative
            WeatherDataError: If the irradiance source cannot load its data
        """
        if self._started:
            raise SimulationError("Engine has already run; create a new engine")
        if period_count < 0:
            raise SimulationError(f"period_count must be non-negative, got {period_count}")
        self._started = True

        logger.info(f"Running {period_count} periods of {self.constants.step_hours:g} h")

        try:
            self.source.prepare(period_count)
        except WeatherDataError as e:
            logger.error(f"Run aborted: {e}")
            raise

        for period_index in range(period_count):
            self.step(period_index)

        logger.info(
            f"Run complete: tank {self.tank.temperature:.2f}°C, "
            f"stored {self.tank.stored_energy:.1f} J")
        return self.history.snapshots

    def component_states(self) -> Dict[str, Dict[str, Any]]:
        """Current state of each component, keyed by component name"""
        return {
            component.name: component.get_state()
            for component in (self.collector, self.pump, self.tank)
        }

    def _check_numeric_edges(self, air_temperature: float, heat_loss: float, period_index: int):
        if (not self._warned_negative_efficiency
                and self.collector.derated_efficiency(air_temperature) < 0):
            logger.warning(
                f"Period {period_index}: derated collector efficiency is negative "
                f"at {air_temperature:.1f}°C air temperature")
            self._warned_negative_efficiency = True

        if not self._warned_cold_tank and heat_loss < 0:
            logger.warning(
                f"Period {period_index}: tank is colder than ambient and gained "
                f"{-heat_loss:.3f} J")
            self._warned_cold_tank = True
