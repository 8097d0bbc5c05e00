"""
Shared fixtures for solar_loop tests.
"""

from datetime import datetime, timedelta

import pytest

from solar_loop.models import ForecastPoint


@pytest.fixture
def forecast_points():
    """Two days of 3-hourly forecast points at 25% cloud cover and 30°C."""
    start = datetime(2024, 6, 21)
    return [
        ForecastPoint(
            timestamp=start + timedelta(hours=3 * i),
            cloud_cover_percent=25.0,
            air_temperature=30.0,
        )
        for i in range(16)
    ]


@pytest.fixture
def scenario_dict():
    """Reference scenario as a nested configuration mapping."""
    return {
        'period_count': 4,
        'step_duration': 10800.0,
        'collector': {
            'efficiency': 0.2,
            'loss_factor': 0.05,
            'temperature_coefficient': 0.4,
            'area': 2.0,
        },
        'pump': {'efficiency': 0.9},
        'tank': {
            'heat_loss_rate': 0.01,
            'water_mass': 100.0,
            'initial_temperature': 25.0,
            'ambient_temperature': 20.0,
            'initial_energy': 0.0,
        },
        'weather': {
            'mode': 'constant',
            'base_irradiance': 800.0,
            'air_temperature': 30.0,
            'start_hour': 12.0,
        },
    }
