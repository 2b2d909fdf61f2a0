import logging
import os
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ControlCharacterFilter(logging.Filter):
    """Escape newlines and other control characters coming from client input.

    File names and form fields end up in log lines verbatim, so a crafted
    name could otherwise forge extra log records.
    """

    _TRANSLATION = {code: f'\\x{code:02x}' for code in range(32) if code != 9}

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = record.msg.translate(self._TRANSLATION)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._escape(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._escape(arg) for arg in record.args)

        return True

    def _escape(self, value):
        if isinstance(value, str):
            return value.translate(self._TRANSLATION)
        return value


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Args:
        component_name: Name of the component (e.g., 'server', 'cli')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(ControlCharacterFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
