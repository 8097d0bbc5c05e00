"""
Component library for the solar-thermal water-heating loop.
Each component owns its own state and exposes explicit operations; the
simulation engine wires them together once per period.

System architecture:
  [Irradiance] → [Solar Collector] → [Pump] → [Storage Tank] → ambient loss
                        ↑                            │
                        └──── tank temperature ──────┘
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

import numpy as np


# ============================================================================
# PHYSICAL CONSTANTS
# ============================================================================

# Specific heat of water, J/(g·°C). Mass is carried in kg on the same scale.
SPECIFIC_HEAT = 4.186


@dataclass(frozen=True)
class PhysicalConstants:
    """
    Fixed physical values shared by every component in a run.
    Injected into the engine and the components it drives.
    """
    specific_heat: float = SPECIFIC_HEAT
    step_duration: float = 10800.0        # s, one period (3 hours)
    hours_per_day: float = 24.0
    reference_temperature: float = 25.0   # °C, collector rating temperature
    unit_mass: float = 1.0                # kg, nominal mass for inlet temperature rise

    @property
    def step_hours(self) -> float:
        return self.step_duration / 3600.0


# ============================================================================
# BASE CLASS
# ============================================================================

class Component(ABC):
    """Base class for all loop components"""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def get_state(self) -> Dict[str, Any]:
        """Return current component state for monitoring/logging"""
        pass


# ============================================================================
# SOLAR COLLECTOR COMPONENT
# ============================================================================

@dataclass
class SolarCollectorParams:
    """
    Parameters for a flat-plate solar collector.

    Efficiency is rated at the reference temperature and derated linearly
    above it by temperature_coefficient (percent per °C). The derated value
    is left unclamped unless clamp_efficiency is set, in which case it is
    held within [0, efficiency].
    """
    efficiency: float = 0.20              # fraction of irradiance converted
    loss_factor: float = 0.05             # fractional self-loss per absorb cycle
    temperature_coefficient: float = 0.4  # %/°C above reference temperature
    area: float = 2.0                     # m²
    clamp_efficiency: bool = False


class SolarCollector(Component):
    """
    Solar collector that accumulates absorbed energy and a proxy inlet
    water temperature until drained by the pump.

    Incoming irradiance is shaped by time of day with sin(pi * hour / 24),
    which peaks at noon and reaches zero at midnight. Callers supply
    hour_of_day in [0, 24).
    """

    def __init__(self, name: str, params: SolarCollectorParams,
                 initial_energy: float = 0.0,
                 constants: Optional[PhysicalConstants] = None):
        super().__init__(name)
        self.params = params
        self.constants = constants or PhysicalConstants()
        self.stored_energy = initial_energy  # J
        self.inlet_water_temperature = 0.0   # °C

    def derated_efficiency(self, ambient_air_temperature: float) -> float:
        """Efficiency after linear temperature derating."""
        delta_T = ambient_air_temperature - self.constants.reference_temperature
        eta = self.params.efficiency * (1 - delta_T * self.params.temperature_coefficient * 0.01)
        if self.params.clamp_efficiency:
            return float(np.clip(eta, 0.0, self.params.efficiency))
        return eta

    def time_of_day_factor(self, hour_of_day: float) -> float:
        """Fraction of irradiance reaching the collector at this hour."""
        return float(np.sin(np.pi * hour_of_day / self.constants.hours_per_day))

    def absorb(self, irradiance: float, ambient_air_temperature: float,
               hour_of_day: float, dt: Optional[float] = None) -> float:
        """
        Absorb solar energy over one step.

        Args:
            irradiance: Solar irradiance (W/m²)
            ambient_air_temperature: Outdoor air temperature (°C)
            hour_of_day: Hour of day (0-24)
            dt: Step duration in seconds (defaults to constants.step_duration)

        Returns:
            Energy absorbed during the step before self-loss (J)
        """
        if dt is None:
            dt = self.constants.step_duration

        eta = self.derated_efficiency(ambient_air_temperature)
        irradiance_adj = irradiance * self.time_of_day_factor(hour_of_day)

        # W → J over the step
        power = irradiance_adj * self.params.area * eta
        energy_absorbed = power * dt

        self.stored_energy += energy_absorbed
        self.stored_energy -= self.stored_energy * self.params.loss_factor

        # Proxy temperature rise of a nominal unit mass, not the tank's water
        self.inlet_water_temperature += energy_absorbed / (
            self.constants.unit_mass * self.constants.specific_heat)

        return energy_absorbed

    def drain(self) -> Tuple[float, float]:
        """Hand over accumulated energy and inlet temperature, then reset both."""
        energy = self.stored_energy
        inlet_temperature = self.inlet_water_temperature
        self.stored_energy = 0.0
        self.inlet_water_temperature = 0.0
        return energy, inlet_temperature

    def set_inlet_temperature(self, temperature: float):
        self.inlet_water_temperature = temperature

    def get_state(self) -> Dict[str, Any]:
        return {
            'stored_energy': self.stored_energy,
            'inlet_water_temperature': self.inlet_water_temperature,
            'area': self.params.area,
        }


# ============================================================================
# PUMP COMPONENT
# ============================================================================

@dataclass
class PumpParams:
    """Parameters for the circulation pump between collector and tank"""
    efficiency: float = 0.90  # fraction of collector energy delivered to the tank


class Pump(Component):
    """
    Circulation pump moving collector energy into the storage tank.
    Stateless apart from its efficiency; the shortfall is lost in transit.
    """

    def __init__(self, name: str, params: Optional[PumpParams] = None):
        super().__init__(name)
        self.params = params or PumpParams()

    def move(self, energy: float, inlet_temperature: Optional[float],
             tank: 'StorageTank') -> float:
        """
        Deliver energy to the tank.

        Returns:
            Energy actually stored in the tank (J)
        """
        transferred = energy * self.params.efficiency
        tank.store_energy(transferred, inlet_temperature)
        return transferred

    def get_state(self) -> Dict[str, Any]:
        return {
            'efficiency': self.params.efficiency,
        }


# ============================================================================
# STORAGE TANK COMPONENT
# ============================================================================

@dataclass
class StorageTankParams:
    """
    Parameters for an insulated, fully mixed water storage tank.
    heat_loss_rate is applied once per period against the ambient
    temperature difference.
    """
    water_mass: float = 100.0          # kg
    heat_loss_rate: float = 0.01       # per °C of tank/ambient difference
    ambient_temperature: float = 20.0  # °C, surroundings of the tank


class StorageTank(Component):
    """
    Fully mixed storage tank whose temperature is derived from stored
    energy and thermal mass.

    An empty tank (water_mass == 0) has no defined thermal mass and reports
    the ambient temperature.
    """

    def __init__(self, name: str, params: StorageTankParams,
                 initial_temp: float = 20.0, initial_energy: float = 0.0,
                 constants: Optional[PhysicalConstants] = None):
        super().__init__(name)
        self.params = params
        self.constants = constants or PhysicalConstants()
        self.stored_energy = initial_energy  # J
        self.temperature = initial_temp      # °C

    @property
    def thermal_mass(self) -> float:
        """Heat capacity of the water in the tank"""
        return self.params.water_mass * self.constants.specific_heat

    def store_energy(self, energy: float, inlet_temperature: Optional[float] = None):
        """
        Add energy and recompute the tank temperature.

        When an inlet temperature accompanies the energy, the temperature is
        taken as (E + m*c) / (m*c). This normalisation does not weight the
        inlet temperature by incoming mass.
        """
        self.stored_energy += energy
        if self.params.water_mass > 0 and inlet_temperature is not None:
            self.temperature = (self.stored_energy + self.thermal_mass) / self.thermal_mass
        else:
            self._update_temperature()

    def apply_heat_loss(self) -> float:
        """
        Lose heat to ambient for one period.

        A tank colder than ambient gains energy. Stored energy never drops
        below zero.

        Returns:
            Heat lost this period (J, negative for a gain)
        """
        heat_loss = self.params.heat_loss_rate * (self.temperature - self.params.ambient_temperature)
        self.stored_energy = max(self.stored_energy - heat_loss, 0.0)
        self._update_temperature()
        return heat_loss

    def _update_temperature(self):
        if self.params.water_mass > 0:
            self.temperature = self.stored_energy / self.thermal_mass
        else:
            self.temperature = self.params.ambient_temperature

    def get_state(self) -> Dict[str, Any]:
        return {
            'stored_energy': self.stored_energy,
            'temperature': self.temperature,
            'water_mass': self.params.water_mass,
            'ambient_temperature': self.params.ambient_temperature,
        }
