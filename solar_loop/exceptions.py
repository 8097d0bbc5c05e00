"""Exception hierarchy for the solar loop simulation."""


class SolarLoopError(Exception):
    """Base exception for all solar_loop errors."""
    pass


class ConfigurationError(SolarLoopError):
    """Raised for missing, non-numeric or out-of-range configuration."""
    pass


class WeatherDataError(SolarLoopError):
    """Raised when forecast data cannot be fetched or does not cover the run."""
    pass


class SimulationError(SolarLoopError):
    """Raised for engine misuse, e.g. running a finished engine again."""
    pass
