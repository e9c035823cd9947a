"""
Centralized logging configuration for Coin Scout.
"""
import logging
import sys
from typing import Optional

# Global logger instance
_logger: Optional[logging.Logger] = None


def setup_logging(level: int = logging.INFO, name: str = "coin_scout", stream=None) -> logging.Logger:
    """
    Setup global logging configuration.

    Module loggers created with ``logging.getLogger(__name__)`` inside the
    ``coin_scout`` package propagate to this logger.

    Args:
        level: Logging level (default: INFO)
        name: Logger name
        stream: Handler stream (default: stdout)

    Returns:
        Configured logger instance
    """
    global _logger

    if _logger is not None:
        _logger.setLevel(level)
        for handler in _logger.handlers:
            handler.setLevel(level)
        return _logger

    _logger = logging.getLogger(name)
    _logger.setLevel(level)

    _logger.handlers.clear()

    # Console handler with formatting
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)

    # Format: [TIME] [LEVEL] [MODULE] Message
    formatter = logging.Formatter(
        fmt='[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    _logger.addHandler(handler)
    _logger.propagate = False

    return _logger


def level_from_name(name: Optional[str], default: int = logging.INFO) -> int:
    """Translate a level name such as ``"debug"`` into a logging constant."""
    if not name:
        return default
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else default


def mask_sensitive(text: str, show_last: int = 4) -> str:
    """
    Mask sensitive information (API keys, tokens, etc).

    Examples:
        >>> mask_sensitive("ABCDEFGHIJK1234", 4)
        '***1234'
    """
    if not text or not isinstance(text, str):
        return "***"

    if len(text) <= show_last:
        return "***"

    return "***" + text[-show_last:]
