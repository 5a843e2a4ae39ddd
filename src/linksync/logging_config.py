"""
Logging configuration for linksync.

Provides centralized logging setup with support for:
- CLI verbosity flags (--quiet, --verbose, --debug)
- Level names taken from the [logging] config table
- Console and optional file logging
"""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(message)s"
DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    format_str: Optional[str] = None,
) -> None:
    """
    Configure logging for linksync.

    Should be called once early in the CLI entrypoint. Subsequent calls
    reconfigure the root logger.

    Args:
        level: The logging level (e.g., logging.DEBUG, logging.INFO).
        log_file: Optional path to a log file. Directory will be created if missing.
        format_str: Optional custom format string. If None, uses level-appropriate default.
    """
    if format_str is None:
        format_str = DEBUG_FORMAT if level <= logging.DEBUG else DEFAULT_FORMAT

    root_logger = logging.getLogger()

    # Clear existing handlers to allow reconfiguration
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format_str))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.getLogger(__name__).debug(
                f"Could not set up file logging to {log_file}: {e}"
            )

    logging.getLogger("linksync").setLevel(level)


def get_log_level_from_flags(
    quiet: bool = False,
    verbose: bool = False,
    debug: bool = False,
    default: int = logging.WARNING,
) -> int:
    """
    Determine the log level from CLI flags.

    Precedence: --debug, then --quiet, then --verbose, then ``default``.
    """
    if debug:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.INFO
    return default


def level_from_name(name: Optional[str], default: int = logging.WARNING) -> int:
    """Convert a level name such as ``"info"`` into a logging constant."""
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    if isinstance(level, int):
        return level
    logging.getLogger(__name__).warning(f"Unknown log level '{name}', using default")
    return default


def setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
    default_level: int = logging.WARNING,
) -> None:
    """
    Configure logging based on CLI verbosity flags.

    Args:
        verbose: Enable INFO level logging.
        debug: Enable DEBUG level logging (overrides verbose and quiet).
        quiet: Enable ERROR level only (overrides verbose, overridden by debug).
        log_file: Optional path to a log file.
        default_level: Level used when no flag is given.
    """
    level = get_log_level_from_flags(
        quiet=quiet, verbose=verbose, debug=debug, default=default_level
    )
    configure_logging(level=level, log_file=log_file)
