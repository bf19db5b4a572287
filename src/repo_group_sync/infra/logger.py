# Console logging helpers
#
# Main functions:
#   - log_info() / log_success() / log_warning() / log_error()
#   - set_log_callback(): mirror formatted lines to a UI sink
#
# Features:
#   - timestamped lines
#   - ANSI colors when the terminal supports them (colorama on Windows)
#   - lines are printed through the current sys.stdout/sys.stderr, so a live
#     display that redirects them keeps log output above its frame

import sys
import threading
from datetime import datetime
from typing import Callable, Optional

import colorama

colorama.just_fix_windows_console()

# ANSI color codes
COLOR_RESET = '\033[0m'
COLOR_INFO = '\033[0;36m'      # cyan
COLOR_SUCCESS = '\033[0;32m'   # green
COLOR_ERROR = '\033[0;31m'     # red
COLOR_WARNING = '\033[0;33m'   # yellow

LogCallback = Callable[[str, str], None]

_log_callback: Optional[LogCallback] = None
_log_lock = threading.Lock()
_use_color = True


def _get_timestamp() -> str:
    """Current timestamp for log lines."""
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _format_message(level: str, color: str, message: str, colored: bool) -> str:
    """Format one log line"""
    timestamp = _get_timestamp()
    if colored:
        return f"{color}[{level}]{COLOR_RESET} [{timestamp}] {message}"
    return f"[{level}] [{timestamp}] {message}"


def _supports_color(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    return _use_color and isatty is not None and isatty()


def set_log_callback(callback: Optional[LogCallback]) -> None:
    """Install (or clear with ``None``) a callback receiving ``(level, line)``."""
    global _log_callback
    with _log_lock:
        _log_callback = callback


def set_color_enabled(enabled: bool) -> None:
    global _use_color
    _use_color = enabled


def _emit(level: str, color: str, message: str, stream=None) -> None:
    target = stream or sys.stdout
    with _log_lock:
        callback = _log_callback
        print(_format_message(level, color, message, _supports_color(target)), file=target)
    if callback is not None:
        callback(level, _format_message(level, color, message, False))


def log_info(message: str) -> None:
    """Informational line."""
    _emit("INFO", COLOR_INFO, message)


def log_success(message: str) -> None:
    _emit("SUCCESS", COLOR_SUCCESS, message)


def log_error(message: str) -> None:
    """Error line (written to stderr)."""
    _emit("ERROR", COLOR_ERROR, message, sys.stderr)


def log_warning(message: str) -> None:
    _emit("WARNING", COLOR_WARNING, message)
