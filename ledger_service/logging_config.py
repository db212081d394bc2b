"""Logger setup for the service's ``ledger_service.*`` logger tree."""

import logging
import logging.config

ROOT_LOGGER = "ledger_service"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: int | str = "INFO") -> None:
    """
    Send ``ledger_service.*`` records to stderr at ``level``.

    Only the service's own logger tree is touched, so uvicorn and SQLAlchemy
    keep whatever handlers they configure. Calling it again (one app per test)
    replaces the handler instead of stacking another one.
    """
    if isinstance(level, int):
        level = logging.getLevelName(level)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"ledger": {"format": LOG_FORMAT}},
            "handlers": {
                "ledger": {
                    "class": "logging.StreamHandler",
                    "formatter": "ledger",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                ROOT_LOGGER: {
                    "level": level.upper(),
                    "handlers": ["ledger"],
                    "propagate": False,
                },
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
