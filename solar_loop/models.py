"""
Irradiance and weather models driving the simulation:
- Weather forecast providers (synthetic, static records/CSV)
- Irradiance sources that turn forecasts or schedules into per-period conditions
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional
import logging

import numpy as np
import pandas as pd

from solar_loop.exceptions import SimulationError, WeatherDataError

logger = logging.getLogger(__name__)


# ============================================================================
# WEATHER FORECASTS
# ============================================================================

@dataclass
class LocationParams:
    """
    Geographic location handed to a weather provider.
    The synthetic provider only reports it; forecast services key their data on it.
    """
    latitude: float = 40.0     # degrees North (e.g., Denver, CO)
    longitude: float = -105.0  # degrees East (negative = West)
    name: str = ""


@dataclass(frozen=True)
class ForecastPoint:
    """One forecast sample"""
    timestamp: datetime
    cloud_cover_percent: float  # 0-100
    air_temperature: float      # °C


def hour_of_day(timestamp: datetime) -> float:
    """Fractional hour of a timestamp, e.g. 13:30 -> 13.5"""
    return timestamp.hour + timestamp.minute / 60 + timestamp.second / 3600


class WeatherProvider(ABC):
    """Base class for forecast suppliers"""

    @abstractmethod
    def fetch_forecast(self, location: LocationParams) -> List[ForecastPoint]:
        """
        Fetch the forecast for a location over the provider's horizon.

        Returns:
            Forecast points ordered by timestamp
        """
        pass


class SyntheticWeatherProvider(WeatherProvider):
    """
    Synthetic forecast generator.

    Points are spaced interval_hours apart from start, which need not divide
    the day evenly. Each day is mostly clear (70% chance) or partly cloudy,
    with a diurnal swing in cloud cover and a sinusoidal air temperature
    peaking at 15:00.
    """

    def __init__(self, days: int = 5, interval_hours: float = 3.0,
                 start: Optional[datetime] = None, seed: Optional[int] = None):
        if interval_hours <= 0:
            raise ValueError(f"interval_hours must be positive, got {interval_hours}")
        self.days = days
        self.interval_hours = interval_hours
        self.start = start or datetime.combine(datetime.now().date(), datetime.min.time())
        self.seed = seed

    def fetch_forecast(self, location: LocationParams) -> List[ForecastPoint]:
        rng = np.random.default_rng(self.seed)

        daily = []
        for _ in range(self.days):
            if rng.random() < 0.7:
                daily_cloud = 0.1 + 0.2 * rng.random()  # Mostly clear
            else:
                daily_cloud = 0.4 + 0.4 * rng.random()  # Partly cloudy

            T_min = 15 + 5 * rng.standard_normal()
            T_max = T_min + 10 + 3 * rng.standard_normal()
            daily.append((daily_cloud, (T_min + T_max) / 2, abs(T_max - T_min) / 2))

        points: List[ForecastPoint] = []
        for k in range(int(self.days * 24 / self.interval_hours)):
            elapsed = k * self.interval_hours
            timestamp = self.start + timedelta(seconds=elapsed * 3600)
            hour = hour_of_day(timestamp)
            daily_cloud, T_avg, T_amp = daily[min(int(elapsed // 24), self.days - 1)]

            variation = 0.1 * np.sin(2 * np.pi * hour / 24)
            cloud = float(np.clip(daily_cloud + variation, 0, 1))
            T = T_avg + T_amp * np.cos(2 * np.pi * (hour - 15) / 24)
            points.append(ForecastPoint(
                timestamp=timestamp,
                cloud_cover_percent=100.0 * cloud,
                air_temperature=float(T),
            ))

        logger.debug(
            f"Generated {len(points)} synthetic forecast points every {self.interval_hours:g} h "
            f"for {location.name or 'location'} ({location.latitude}, {location.longitude})")
        return points


class StaticWeatherProvider(WeatherProvider):
    """Forecast backed by fixed records, e.g. a previously downloaded forecast"""

    def __init__(self, points: Iterable[ForecastPoint]):
        self.points = sorted(points, key=lambda p: p.timestamp)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> 'StaticWeatherProvider':
        """
        Build from mappings with timestamp, cloud_cover_percent and
        air_temperature keys. Timestamps may be datetimes or ISO strings.
        """
        points = []
        for record in records:
            try:
                ts = record['timestamp']
                if isinstance(ts, str):
                    ts = datetime.fromisoformat(ts)
                points.append(ForecastPoint(
                    timestamp=ts,
                    cloud_cover_percent=float(record['cloud_cover_percent']),
                    air_temperature=float(record['air_temperature']),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise WeatherDataError(f"Invalid forecast record {record!r}: {e}") from e
        return cls(points)

    @classmethod
    def from_csv(cls, csv_path: Path | str) -> 'StaticWeatherProvider':
        """Load a forecast CSV with timestamp, cloud_cover_percent, air_temperature columns."""
        csv_path = Path(csv_path)
        if not csv_path.exists():
            raise WeatherDataError(f"Forecast file not found: {csv_path}")

        try:
            df = pd.read_csv(csv_path, parse_dates=['timestamp'])
        except (ValueError, pd.errors.ParserError) as e:
            raise WeatherDataError(f"Failed to parse forecast CSV: {e}") from e

        missing = {'cloud_cover_percent', 'air_temperature'} - set(df.columns)
        if missing:
            raise WeatherDataError(f"Forecast CSV missing columns: {sorted(missing)}")

        records = [
            {
                'timestamp': pd.Timestamp(row.timestamp).to_pydatetime(),
                'cloud_cover_percent': row.cloud_cover_percent,
                'air_temperature': row.air_temperature,
            }
            for row in df.itertuples(index=False)
        ]
        return cls.from_records(records)

    def fetch_forecast(self, location: LocationParams) -> List[ForecastPoint]:
        return list(self.points)


# ============================================================================
# IRRADIANCE SOURCES
# ============================================================================

@dataclass(frozen=True)
class PeriodConditions:
    """Environmental inputs for one simulated period"""
    irradiance: float        # W/m²
    air_temperature: float   # °C
    hour_of_day: float       # 0-24


class IrradianceSource(ABC):
    """Base class for per-period irradiance and ambient context"""

    def prepare(self, period_count: int):
        """
        Load whatever data the run needs. Called once before the first period.
        """
        pass

    @abstractmethod
    def conditions(self, period_index: int) -> PeriodConditions:
        """Return the conditions for one period"""
        pass


class ForecastIrradianceSource(IrradianceSource):
    """
    Irradiance derived from a weather forecast.

    The forecast is fetched once per run; each period maps to one forecast
    point. Clouds scale the base irradiance by (1 - cloud_cover/100) and the
    forecast timestamp supplies the hour of day.
    """

    def __init__(self, provider: WeatherProvider, location: Optional[LocationParams] = None,
                 base_irradiance: float = 800.0):
        self.provider = provider
        self.location = location or LocationParams()
        self.base_irradiance = base_irradiance
        self.forecast: Optional[List[ForecastPoint]] = None

    def prepare(self, period_count: int):
        try:
            forecast = self.provider.fetch_forecast(self.location)
        except WeatherDataError:
            raise
        except Exception as e:
            raise WeatherDataError(f"Forecast fetch failed: {e}") from e

        if len(forecast) < period_count:
            raise WeatherDataError(
                f"Forecast has {len(forecast)} points, run needs {period_count}")

        logger.info(f"Fetched {len(forecast)} forecast points")
        self.forecast = forecast

    def conditions(self, period_index: int) -> PeriodConditions:
        if self.forecast is None:
            raise SimulationError("Forecast not loaded; call prepare() first")

        point = self.forecast[period_index]
        return PeriodConditions(
            irradiance=self.base_irradiance * (1 - point.cloud_cover_percent / 100),
            air_temperature=point.air_temperature,
            hour_of_day=hour_of_day(point.timestamp),
        )


class ScheduledIrradianceSource(IrradianceSource):
    """Source whose hour of day advances by a fixed step from a start hour"""

    def __init__(self, air_temperature: float = 25.0, start_hour: float = 0.0,
                 step_hours: float = 3.0):
        self.air_temperature = air_temperature
        self.start_hour = start_hour
        self.step_hours = step_hours

    def hour_of_day(self, period_index: int) -> float:
        return (self.start_hour + period_index * self.step_hours) % 24


class ConstantIrradianceSource(ScheduledIrradianceSource):
    """Fixed irradiance every period"""

    def __init__(self, irradiance: float, air_temperature: float = 25.0,
                 start_hour: float = 12.0, step_hours: float = 0.0):
        super().__init__(air_temperature, start_hour, step_hours)
        self.irradiance = irradiance

    def conditions(self, period_index: int) -> PeriodConditions:
        return PeriodConditions(self.irradiance, self.air_temperature,
                                self.hour_of_day(period_index))


class RandomIrradianceSource(ScheduledIrradianceSource):
    """
    Daily solar intensity with uniform random variability around a base value.
    """

    def __init__(self, base_intensity: float = 100.0, variability: float = 20.0,
                 air_temperature: float = 25.0, start_hour: float = 0.0,
                 step_hours: float = 3.0, seed: Optional[int] = None):
        super().__init__(air_temperature, start_hour, step_hours)
        self.base_intensity = base_intensity
        self.variability = variability
        self.rng = np.random.default_rng(seed)

    def conditions(self, period_index: int) -> PeriodConditions:
        intensity = self.base_intensity + (self.rng.random() - 0.5) * 2 * self.variability
        return PeriodConditions(float(intensity), self.air_temperature,
                                self.hour_of_day(period_index))
