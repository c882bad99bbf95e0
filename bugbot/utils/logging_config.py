import logging
import sys
import os
from datetime import datetime

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Console formatter that colours each record by level."""

    cyan = "\x1b[36m"
    green = "\x1b[32m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"

    FORMATS = {
        logging.DEBUG: cyan + LOG_FORMAT + reset,
        logging.INFO: green + LOG_FORMAT + reset,
        logging.WARNING: yellow + LOG_FORMAT + reset,
        logging.ERROR: red + LOG_FORMAT + reset,
        logging.CRITICAL: bold_red + LOG_FORMAT + reset,
    }

    def format(self, record):
        # Non-standard levels fall back to the plain format
        log_fmt = self.FORMATS.get(record.levelno, LOG_FORMAT)
        return logging.Formatter(log_fmt, datefmt=DATE_FORMAT).format(record)


def setup_logging(level=logging.INFO, log_dir="logs"):
    """Console (coloured, stderr) plus a daily log file under ``log_dir``."""
    root_logger = logging.getLogger()

    # Drop existing handlers so repeated setup never duplicates output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)

    os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(
        os.path.join(log_dir, f"bugbot_{datetime.now().strftime('%Y%m%d')}.log"),
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    for logger_name in ["bugbot", "uvicorn", "uvicorn.error", "uvicorn.access", "main"]:
        named = logging.getLogger(logger_name)
        named.setLevel(level)
        named.propagate = True

    root_logger.info("Logging initialized (console + file in %s).", log_dir)
