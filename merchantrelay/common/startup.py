"""Startup-time helpers for safe config logging."""

from merchantrelay.common.config import RelaySettings
from merchantrelay.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")


def _safe_value(name: str, value) -> str:
    """Return a printable value, redacting secret-like settings."""

    if value is None or value == "":
        return "<unset>"
    if any(marker in name.upper() for marker in SECRET_MARKERS):
        return "<redacted>"
    return str(value)


def log_startup_config(settings: RelaySettings, keys: list[str]) -> dict[str, str]:
    """Log selected settings for quick troubleshooting and return what was logged."""

    config = {"service": settings.service_name}
    for key in keys:
        config[key] = _safe_value(key, getattr(settings, key, None))
    logger.info("startup_config=%s", config)
    return config
