"""
Configuration loading with validation.

Supports YAML and JSON files (validated against an inline JSON Schema),
plain nested dictionaries, and flat form-style field mappings. Every
numeric parameter is checked before a run starts.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Mapping, Optional
import json
import logging
import math

import jsonschema
import yaml

from solar_loop.components import (
    PhysicalConstants,
    SolarCollector, SolarCollectorParams,
    Pump, PumpParams,
    StorageTank, StorageTankParams,
)
from solar_loop.engine import SimulationEngine
from solar_loop.exceptions import ConfigurationError
from solar_loop.models import (
    IrradianceSource, LocationParams,
    ForecastIrradianceSource, RandomIrradianceSource, ConstantIrradianceSource,
    SyntheticWeatherProvider, StaticWeatherProvider, WeatherProvider,
)

logger = logging.getLogger(__name__)

WEATHER_MODES = ('forecast', 'random', 'constant')

_NUMBER = {'type': ['number', 'string']}

CONFIG_SCHEMA: Dict[str, Any] = {
    'type': 'object',
    'required': ['collector', 'pump', 'tank'],
    'properties': {
        'period_count': {'type': ['integer', 'string']},
        'step_duration': _NUMBER,
        'collector': {
            'type': 'object',
            'required': ['efficiency', 'loss_factor', 'area'],
            'properties': {
                'efficiency': _NUMBER,
                'loss_factor': _NUMBER,
                'temperature_coefficient': _NUMBER,
                'area': _NUMBER,
                'initial_energy': _NUMBER,
                'clamp_efficiency': {'type': 'boolean'},
            },
        },
        'pump': {
            'type': 'object',
            'required': ['efficiency'],
            'properties': {'efficiency': _NUMBER},
        },
        'tank': {
            'type': 'object',
            'required': ['heat_loss_rate', 'water_mass'],
            'properties': {
                'heat_loss_rate': _NUMBER,
                'water_mass': _NUMBER,
                'initial_temperature': _NUMBER,
                'ambient_temperature': _NUMBER,
                'initial_energy': _NUMBER,
            },
        },
        'weather': {
            'type': 'object',
            'properties': {
                'mode': {'enum': list(WEATHER_MODES)},
                'base_irradiance': _NUMBER,
                'variability': _NUMBER,
                'air_temperature': _NUMBER,
                'start_hour': _NUMBER,
                'latitude': _NUMBER,
                'longitude': _NUMBER,
                'forecast_days': {'type': 'integer'},
                'forecast_csv': {'type': ['string', 'null']},
                'seed': {'type': ['integer', 'null']},
            },
        },
    },
}


def _number(section: str, name: str, value: Any) -> float:
    """Coerce a parameter to float, naming it in the error if that fails."""
    if value is None:
        raise ConfigurationError(f"Missing parameter: {section}.{name}")
    if isinstance(value, bool):
        raise ConfigurationError(f"Parameter {section}.{name} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Parameter {section}.{name} must be numeric, got {value!r}")
    if math.isnan(number):
        raise ConfigurationError(f"Parameter {section}.{name} must be numeric, got NaN")
    return number


def _integer(section: str, name: str, value: Any) -> int:
    """Coerce a parameter to a whole number."""
    number = _number(section, name, value)
    if math.isinf(number) or number != int(number):
        raise ConfigurationError(f"Parameter {section}.{name} must be a whole number, got {value!r}")
    return int(number)


_TRUE_STRINGS = ('true', 'yes', 'on', '1')
_FALSE_STRINGS = ('false', 'no', 'off', '0')


def _flag(section: str, name: str, value: Any) -> bool:
    """Coerce a parameter to bool, accepting YAML-style true/false words."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_STRINGS:
            return True
        if word in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"Parameter {section}.{name} must be true or false, got {value!r}")


def _coerce(section: str, f, value: Any) -> Any:
    if f.type in (float, 'float'):
        return _number(section, f.name, value)
    if f.type in (int, 'int'):
        return _integer(section, f.name, value)
    if f.type in (Optional[int], 'Optional[int]'):
        return None if value is None else _integer(section, f.name, value)
    if f.type in (bool, 'bool'):
        return _flag(section, f.name, value)
    if f.type in (str, 'str', Optional[str], 'Optional[str]'):
        if value is None and f.type in (str, 'str'):
            raise ConfigurationError(f"Missing parameter: {section}.{f.name}")
        if value is not None and not isinstance(value, str):
            raise ConfigurationError(f"Parameter {section}.{f.name} must be text, got {value!r}")
    return value


def _section_from_dict(cls, section: str, d: Optional[Mapping[str, Any]]):
    """Build a config dataclass, coercing each field to its declared type and keeping defaults for absent keys."""
    if d is not None and not isinstance(d, Mapping):
        raise ConfigurationError(f"Section {section} must be a mapping, got {type(d).__name__}")
    d = d or {}
    kwargs = {}
    for f in fields(cls):
        if f.name not in d:
            continue
        kwargs[f.name] = _coerce(section, f, d[f.name])
    unknown = set(d) - {f.name for f in fields(cls)}
    if unknown:
        logger.warning(f"Ignoring unknown {section} parameters: {sorted(unknown)}")
    return cls(**kwargs)


@dataclass
class CollectorConfig:
    efficiency: float = 0.20
    loss_factor: float = 0.05
    temperature_coefficient: float = 0.4
    area: float = 2.0
    initial_energy: float = 0.0
    clamp_efficiency: bool = False


@dataclass
class PumpConfig:
    efficiency: float = 0.90


@dataclass
class TankConfig:
    heat_loss_rate: float = 0.01
    water_mass: float = 100.0
    initial_temperature: float = 25.0
    ambient_temperature: float = 20.0
    initial_energy: float = 0.0


@dataclass
class WeatherConfig:
    """
    Irradiance source selection.

    latitude and longitude are handed to the weather provider as its
    LocationParams. The synthetic provider ignores them; a provider backed
    by a real forecast service looks them up.
    """
    mode: str = 'forecast'
    base_irradiance: float = 800.0        # W/m²
    variability: float = 20.0             # W/m², random mode only
    air_temperature: float = 25.0         # °C, random/constant modes
    start_hour: float = 0.0
    latitude: float = 40.0
    longitude: float = -105.0
    forecast_days: int = 5
    forecast_csv: Optional[str] = None
    seed: Optional[int] = None


@dataclass
class SimulationConfig:
    """Complete, immutable-for-the-run parameter set"""
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    pump: PumpConfig = field(default_factory=PumpConfig)
    tank: TankConfig = field(default_factory=TankConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    period_count: int = 10
    step_duration: float = 10800.0  # s

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> 'SimulationConfig':
        """
        Build from a nested mapping such as a parsed YAML file.

        Raises:
            ConfigurationError: If a parameter is missing or of the wrong type
        """
        if not isinstance(d, Mapping):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(d).__name__}")

        config = cls(
            collector=_section_from_dict(CollectorConfig, 'collector', d.get('collector')),
            pump=_section_from_dict(PumpConfig, 'pump', d.get('pump')),
            tank=_section_from_dict(TankConfig, 'tank', d.get('tank')),
            weather=_section_from_dict(WeatherConfig, 'weather', d.get('weather')),
            period_count=_integer('simulation', 'period_count', d.get('period_count', 10)),
            step_duration=_number('simulation', 'step_duration', d.get('step_duration', 10800.0)),
        )
        config.validate()
        return config

    @classmethod
    def from_form_fields(cls, form: Mapping[str, Any], period_count: int = 10) -> 'SimulationConfig':
        """
        Build from the flat field names used by the web form. Every field is
        required; the solar intensity seeds a randomly varying source.
        """
        def get(key):
            if key not in form or form[key] in (None, ''):
                raise ConfigurationError(f"Missing parameter: {key}")
            return _number('form', key, form[key])

        config = cls(
            collector=CollectorConfig(
                efficiency=get('solarPanelEfficiency'),
                loss_factor=get('solarPanelLossFactor'),
                initial_energy=get('solarPanelEnergy'),
            ),
            pump=PumpConfig(efficiency=get('pumpEfficiency')),
            tank=TankConfig(
                heat_loss_rate=get('storageTankHeatLossRate'),
                water_mass=get('storageTankWaterMass'),
                initial_temperature=get('storageTankTemperature'),
                ambient_temperature=get('storageTankAmbientTemperature'),
                initial_energy=get('storageTankStoredEnergy'),
            ),
            weather=WeatherConfig(mode='random', base_irradiance=get('solarIntensity')),
            period_count=period_count,
        )
        config.validate()
        return config

    def validate(self):
        """Range checks; raises ConfigurationError on the first violation."""
        fractions = {
            'collector.efficiency': self.collector.efficiency,
            'collector.loss_factor': self.collector.loss_factor,
            'pump.efficiency': self.pump.efficiency,
        }
        for name, value in fractions.items():
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")

        non_negative = {
            'collector.area': self.collector.area,
            'collector.initial_energy': self.collector.initial_energy,
            'tank.water_mass': self.tank.water_mass,
            'tank.heat_loss_rate': self.tank.heat_loss_rate,
            'tank.initial_energy': self.tank.initial_energy,
            'weather.base_irradiance': self.weather.base_irradiance,
            'period_count': self.period_count,
        }
        for name, value in non_negative.items():
            if value < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {value}")

        if self.step_duration <= 0:
            raise ConfigurationError(f"step_duration must be positive, got {self.step_duration}")
        if self.weather.mode not in WEATHER_MODES:
            raise ConfigurationError(
                f"weather.mode must be one of {WEATHER_MODES}, got {self.weather.mode!r}")
        if not 0.0 <= self.weather.start_hour < 24.0:
            raise ConfigurationError(
                f"weather.start_hour must be within [0, 24), got {self.weather.start_hour}")
        if self.weather.forecast_days < 1:
            raise ConfigurationError(
                f"weather.forecast_days must be at least 1, got {self.weather.forecast_days}")

    @property
    def constants(self) -> PhysicalConstants:
        return PhysicalConstants(step_duration=self.step_duration)


# ============================================================================
# FILE LOADING
# ============================================================================

def load_config(config_path: Path | str) -> SimulationConfig:
    """
    Load configuration from a YAML or JSON file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            if config_path.suffix.lower() == '.json':
                config_dict = json.load(f)
            else:
                config_dict = yaml.safe_load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to parse {config_path.name}: {e}")

    try:
        jsonschema.validate(instance=config_dict, schema=CONFIG_SCHEMA)
        logger.debug("JSON schema validation passed")
    except jsonschema.ValidationError as e:
        raise ConfigurationError(f"Schema validation failed: {e.message}")

    config = SimulationConfig.from_dict(config_dict)
    logger.info(f"Loaded configuration from {config_path} ({config.period_count} periods)")
    return config


# ============================================================================
# ENGINE ASSEMBLY
# ============================================================================

def build_source(config: SimulationConfig,
                 provider: Optional[WeatherProvider] = None) -> IrradianceSource:
    """Create the irradiance source selected by weather.mode"""
    w = config.weather
    step_hours = config.constants.step_hours

    if w.mode == 'random':
        return RandomIrradianceSource(
            base_intensity=w.base_irradiance, variability=w.variability,
            air_temperature=w.air_temperature, start_hour=w.start_hour,
            step_hours=step_hours, seed=w.seed,
        )
    if w.mode == 'constant':
        return ConstantIrradianceSource(
            w.base_irradiance, air_temperature=w.air_temperature,
            start_hour=w.start_hour, step_hours=step_hours,
        )

    if provider is None:
        if w.forecast_csv:
            provider = StaticWeatherProvider.from_csv(w.forecast_csv)
        else:
            provider = SyntheticWeatherProvider(
                days=w.forecast_days, interval_hours=step_hours, seed=w.seed)
    location = LocationParams(latitude=w.latitude, longitude=w.longitude)
    return ForecastIrradianceSource(provider, location, base_irradiance=w.base_irradiance)


def build_engine(config: SimulationConfig,
                 source: Optional[IrradianceSource] = None,
                 provider: Optional[WeatherProvider] = None) -> SimulationEngine:
    """
    Assemble collector, pump, tank and irradiance source into an engine.
    Parameters are copied into the components, so later edits to config
    do not affect the run.
    """
    constants = config.constants
    c, p, t = config.collector, config.pump, config.tank

    collector = SolarCollector(
        "SolarCollector",
        SolarCollectorParams(
            efficiency=c.efficiency,
            loss_factor=c.loss_factor,
            temperature_coefficient=c.temperature_coefficient,
            area=c.area,
            clamp_efficiency=c.clamp_efficiency,
        ),
        initial_energy=c.initial_energy,
        constants=constants,
    )
    pump = Pump("Pump", PumpParams(efficiency=p.efficiency))
    tank = StorageTank(
        "StorageTank",
        StorageTankParams(
            water_mass=t.water_mass,
            heat_loss_rate=t.heat_loss_rate,
            ambient_temperature=t.ambient_temperature,
        ),
        initial_temp=t.initial_temperature,
        initial_energy=t.initial_energy,
        constants=constants,
    )

    if source is None:
        source = build_source(config, provider)

    return SimulationEngine(collector, pump, tank, source, constants)
