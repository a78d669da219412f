"""
Logging configuration for shardkit.

ShardkitLogger provides human-readable, color-coded logging. Every message
is tagged with the component that emitted it (the last part of the logger
name, e.g. ``shardkit.connections.manager`` -> ``[manager]``) and written to
both the console and ``logs/shardkit.log``.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

import colorama

# Initialize colorama for cross-platform color support
colorama.init()


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors"""

    COLORS = {
        "INFO": colorama.Fore.BLUE,
        "WARNING": colorama.Fore.YELLOW,
        "ERROR": colorama.Fore.RED,
        "DEBUG": colorama.Fore.BLUE,
        "START": colorama.Fore.BLUE,
        "OK": colorama.Fore.GREEN,
    }

    def format(self, record):
        # shardkit.connections.manager -> [manager]
        if record.name.startswith("shardkit."):
            component = record.name.rsplit(".", 1)[-1]
            white = colorama.Fore.WHITE
            reset = colorama.Style.RESET_ALL
            record.component = f"{white}[{component}]{reset} "
        else:
            record.component = ""

        if record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            record.levelname = f"{color}{record.levelname}{colorama.Style.RESET_ALL}"

        # Add color to message for START and OK prefixes
        if hasattr(record, "color_prefix"):
            color = self.COLORS.get(record.color_prefix, "")
            record.msg = f"{color}{record.msg}{colorama.Style.RESET_ALL}"

        return super().format(record)


class ShardkitLogger:
    """
    Central logging class for shardkit.

    Wraps a standard library logger, installing a colored console handler
    and a file handler the first time a given name is requested. The
    wrapped logger is available as ``.logger`` for code (and tests) that
    need the standard interface.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

        # Only set up handlers if they haven't been set up already
        if not self.logger.handlers:
            self.logger.setLevel(logging.INFO)

            log_dir = Path.cwd() / "logs"
            log_dir.mkdir(exist_ok=True)

            log_file = log_dir / "shardkit.log"
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                ColorFormatter(
                    "%(asctime)s  %(component)s%(message)s", datefmt="%H:%M:%S"
                )
            )

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.DEBUG)
            console_handler.setFormatter(
                ColorFormatter(
                    "%(asctime)s  %(component)s%(message)s", datefmt="%H:%M:%S"
                )
            )

            self.logger.addHandler(file_handler)
            self.logger.addHandler(console_handler)

            # Prevent logs from being passed to root logger
            self.logger.propagate = False

    def info(self, msg: str, color_prefix: Optional[str] = None) -> None:
        """Log info message with optional color prefix"""
        extra = {"color_prefix": color_prefix} if color_prefix else None
        self.logger.info(msg, extra=extra)

    def start(self, msg: str) -> None:
        """Log start message"""
        self.info(f"START {msg}", color_prefix="START")

    def success(self, msg: str) -> None:
        """Log success message in green"""
        self.info(f"OK {msg}", color_prefix="OK")

    def error(self, msg: str) -> None:
        """Log error message in red"""
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        """Log warning message in yellow"""
        self.logger.warning(msg)

    def debug(self, msg: str) -> None:
        """Log debug message in blue"""
        self.logger.debug(msg)


def get_logger(name: str) -> ShardkitLogger:
    """Get a configured logger instance."""
    return ShardkitLogger(name)
