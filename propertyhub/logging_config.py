import logging.config
import sys

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": sys.stdout,
        },
    },
    "loggers": {
        "propertyhub": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": True,
        },
    },
}


def configure_logging(level: str = "INFO"):
    """Install the console handler for the ``propertyhub`` logger tree."""
    config = dict(LOGGING_CONFIG)
    config["loggers"] = {
        "propertyhub": dict(LOGGING_CONFIG["loggers"]["propertyhub"], level=level.upper())
    }
    logging.config.dictConfig(config)
