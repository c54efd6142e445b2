import logging
import logging.config
from os import environ

from yaml import safe_load

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_FORMAT = "%(asctime)s   %(name)-40s %(levelname)-8s %(message)s"


def configure_logging() -> None:
    """Configure logging from LOG_CONFIG (a YAML dictConfig) or LOG_LEVEL/LOG_FORMAT/LOG_FILE."""
    log_config_path = environ.get("LOG_CONFIG")
    if log_config_path is not None:
        with open(log_config_path, "r") as f:
            logging.config.dictConfig(safe_load(f.read()))
        return

    log_level = environ.get("LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {log_level}")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = environ.get("LOG_FILE")
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=log_level,
        format=environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        handlers=handlers,
    )
    # per-statement SQL only when explicitly debugging
    if log_level != "DEBUG":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
