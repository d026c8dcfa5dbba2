import logging
import logging.config
import os

PACKAGE = "vn_txn_parser"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "vn-txn-parser.log"


class ColourizedFormatter(logging.Formatter):
    """Console formatter that colours the level name."""

    LEVEL_COLORS = {
        logging.DEBUG: "\x1b[90m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # The file handler formats the same record.
            record.levelname = plain


def get_logging_config() -> dict:
    """dictConfig for the service; also handed to uvicorn so both share handlers."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR")

    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "colour",
        },
    }
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, LOG_FILENAME),
            "formatter": "plain",
            "encoding": "utf-8",
        }
    names = list(handlers)

    # Training libraries are chatty; only the package follows LOG_LEVEL.
    loggers: dict[str, dict] = {
        "": {"handlers": names, "level": "WARNING"},
        PACKAGE: {"level": level},
    }
    for name, uvicorn_level in (("uvicorn", "INFO"), ("uvicorn.access", "WARNING")):
        loggers[name] = {"handlers": names, "level": uvicorn_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colour": {"()": f"{PACKAGE}.logger.ColourizedFormatter", "format": LOG_FORMAT},
            "plain": {"format": LOG_FORMAT},
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
