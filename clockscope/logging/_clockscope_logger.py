import logging
import os


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[94m",  # Blue
        "INFO": "\033[92m",  # Green
        "WARNING": "\033[93m",  # Yellow
        "ERROR": "\033[91m",  # Red
        "CRITICAL": "\033[95m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        # Color a copy so other handlers still see the plain level name
        original = record.levelname
        color = self.COLORS.get(original, self.RESET)
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CLOCKSCOPE_LOGGER = logging.getLogger("clockscope")
CLOCKSCOPE_LOGGER.setLevel(os.environ.get("CLOCKSCOPE_LOG_LEVEL", "WARNING").upper())

handler = logging.StreamHandler()
handler.setFormatter(ColoredFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
CLOCKSCOPE_LOGGER.handlers.clear()
CLOCKSCOPE_LOGGER.addHandler(handler)


def set_log_level(level: str) -> None:
    """Apply a level name (DEBUG, INFO, WARNING, ERROR, CRITICAL) to the clockscope logger."""
    name = level.upper()
    if name not in ColoredFormatter.COLORS:
        raise ValueError(f"Unknown log level: {level}")
    CLOCKSCOPE_LOGGER.setLevel(name)
