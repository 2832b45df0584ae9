import logging
import logging.config

from siteportal.config import settings

_FORMATS = {
    "plain": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    "kv": "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)r",
}


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Install the root handler used by the API and the Celery worker."""
    level_name = (level or settings.log_level).upper()
    format_key = (fmt or settings.log_format).lower()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": _FORMATS.get(format_key, _FORMATS["plain"])},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"level": level_name, "handlers": ["console"]},
            "loggers": {
                # SQL echo is noisy; keep it behind the root level.
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
