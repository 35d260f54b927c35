"""Coloured console logger with key=value fields."""

import inspect
import os
import sys
import threading
from datetime import datetime
from pathlib import Path

_THIS_FILE = __file__
_RESET = "\x1b[0m"

_GREEN = "32"
_YELLOW = "33"
_RED = "31"
_CYAN = "36"
_BOLD_GREEN = "32;1"
_MAGENTA = "35"
_WHITE = "37"
_BLUE = "34"
_BOLD = "1"
_BOLD_MAGENTA = "35;1"

_CONTEXT_KEYS = ("service", "module")


def _colors_enabled(stream) -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _call_site() -> str:
    frame = inspect.currentframe()
    while frame is not None and frame.f_code.co_filename == _THIS_FILE:
        frame = frame.f_back
    if frame is None:
        return "unknown:0"
    return f"{Path(frame.f_code.co_filename).name}:{frame.f_lineno}"


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


class ColorLogger:
    """Writes one line per message: time, call site, level, context, message and fields."""

    def __init__(self, stream=None):
        self._stream = stream
        self._lock = threading.Lock()

    def info(self, message, **kwargs):
        self._emit("INFO", _GREEN, message, False, kwargs)

    def info_with_blank_line(self, message, **kwargs):
        self._emit("INFO", _GREEN, message, True, kwargs)

    def warn(self, message, **kwargs):
        self._emit("WARN", _YELLOW, message, False, kwargs)

    def warn_with_blank_line(self, message, **kwargs):
        self._emit("WARN", _YELLOW, message, True, kwargs)

    def error(self, message, **kwargs):
        self._emit("ERROR", _RED, message, False, kwargs)

    def error_with_blank_line(self, message, **kwargs):
        self._emit("ERROR", _RED, message, True, kwargs)

    def debug(self, message, **kwargs):
        self._emit("DEBUG", _CYAN, message, False, kwargs)

    def debug_with_blank_line(self, message, **kwargs):
        self._emit("DEBUG", _CYAN, message, True, kwargs)

    def success(self, message, **kwargs):
        self._emit("SUCCESS", _BOLD_GREEN, message, False, kwargs)

    def success_with_blank_line(self, message, **kwargs):
        self._emit("SUCCESS", _BOLD_GREEN, message, True, kwargs)

    def highlight(self, message, **kwargs):
        self._emit("HIGHLIGHT", _MAGENTA, message, False, kwargs)

    def highlight_with_blank_line(self, message, **kwargs):
        self._emit("HIGHLIGHT", _MAGENTA, message, True, kwargs)

    def fatal(self, message, **kwargs):
        """Log the message and terminate with exit status 1."""
        self._emit("FATAL", _RED, message, False, kwargs)
        sys.exit(1)

    def fatal_with_blank_line(self, message, **kwargs):
        """Log the message, add a blank line and terminate with exit status 1."""
        self._emit("FATAL", _RED, message, True, kwargs)
        sys.exit(1)

    def _emit(self, label, codes, message, blank_line, fields):
        stream = self._stream if self._stream is not None else sys.stdout
        colored = _colors_enabled(stream)

        def paint(text, color_codes):
            return f"\x1b[{color_codes}m{text}{_RESET}" if colored else text

        service = fields.get("service")
        module = fields.get("module")
        service = service if isinstance(service, str) else ""
        module = module if isinstance(module, str) else ""
        if service and module:
            context = f" {paint('', _BOLD_MAGENTA)}[{service}:{module}]"
        elif service or module:
            context = f" {paint('', _BOLD_MAGENTA)}[{service or module}]"
        else:
            context = ""

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = (
            f"{paint(timestamp, _WHITE)} {paint(_call_site(), _BLUE)} "
            f"{paint(label, codes)}{context} {message}"
        )
        line += "".join(
            f" {paint(key, _BOLD)}={_format_value(value)}"
            for key, value in fields.items()
            if key not in _CONTEXT_KEYS
        )

        with self._lock:
            stream.write(line + "\n")
            if blank_line:
                stream.write("\n")
            stream.flush()