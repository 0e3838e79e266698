import logging
import sys
from typing import Optional, TextIO

# Extra levels used by the archive pipeline
PROGRESS_LEVEL = 22
SUCCESS_LEVEL = 25
NOTICE_LEVEL = 35

logging.addLevelName(PROGRESS_LEVEL, "PROGRESS")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
logging.addLevelName(NOTICE_LEVEL, "NOTICE")


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps each record in an ANSI color picked by level."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "PROGRESS": "\033[94m",  # Bright Blue
        "SUCCESS": "\033[92m",  # Bright Green
        "WARNING": "\033[33m",  # Yellow
        "NOTICE": "\033[96m",  # Bright Cyan
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        stream: Optional[TextIO] = None,
    ):
        super().__init__(fmt, datefmt)
        self.stream = stream or sys.stderr

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        # Colors only make sense on a terminal
        isatty = getattr(self.stream, "isatty", None)
        if isatty is not None and isatty():
            level_color = self.COLORS.get(record.levelname, "")
            return f"{level_color}{message}{self.COLORS['RESET']}"

        return message


def setup_colored_logging(
    level: int = logging.INFO, stream: Optional[TextIO] = None
) -> None:
    """
    Configure colored console logging for the site-archive tools.

    Args:
        level: Root logging level (default: logging.INFO)
        stream: Output stream (default: sys.stderr)
    """
    stream = stream or sys.stderr
    formatter = ColoredFormatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=stream,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Drop handlers from earlier setup calls
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


class EnhancedLogger:
    """Logger wrapper exposing the pipeline's extra levels as methods."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def progress(self, msg, *args, **kwargs):
        """Log with PROGRESS level (bright blue) - per-component progress."""
        self._logger.log(PROGRESS_LEVEL, msg, *args, **kwargs)

    def success(self, msg, *args, **kwargs):
        """Log with SUCCESS level (bright green) - archive delivered."""
        self._logger.log(SUCCESS_LEVEL, msg, *args, **kwargs)

    def notice(self, msg, *args, **kwargs):
        """Log with NOTICE level (bright cyan) - things the operator should see."""
        self._logger.log(NOTICE_LEVEL, msg, *args, **kwargs)

    # debug/info/warning/error/critical and friends go to the wrapped logger
    def __getattr__(self, name):
        return getattr(self._logger, name)


def get_colored_logger(name: str) -> EnhancedLogger:
    """
    Get a logger with the progress/success/notice helpers.

    Args:
        name: Logger name (typically __name__)

    Returns:
        EnhancedLogger wrapping logging.getLogger(name)
    """
    return EnhancedLogger(logging.getLogger(name))
