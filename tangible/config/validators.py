"""Configuration validators."""

from tangible.config.settings import Settings
from tangible.exceptions import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def validate_settings(config: Settings) -> None:
    """Raise ConfigError if the engine settings are inconsistent."""
    if config.SHARE_UNITS <= 0:
        raise ConfigError("SHARE_UNITS must be positive")
    if config.TAX_DECIMALS < 0:
        raise ConfigError("TAX_DECIMALS must not be negative")
    if config.MAX_SHARE_DECIMALS < 0:
        raise ConfigError("MAX_SHARE_DECIMALS must not be negative")
    if config.DEFAULT_ROYALTY < 0:
        raise ConfigError("DEFAULT_ROYALTY must not be negative")
    if config.DEFAULT_ISSUE_FEE < 0:
        raise ConfigError("DEFAULT_ISSUE_FEE must not be negative")
    if config.LOG_LEVEL.upper() not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
