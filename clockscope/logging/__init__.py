from clockscope.logging._clockscope_logger import CLOCKSCOPE_LOGGER, ColoredFormatter, set_log_level

__all__ = ["CLOCKSCOPE_LOGGER", "ColoredFormatter", "set_log_level"]
