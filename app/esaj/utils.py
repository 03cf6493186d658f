from __future__ import annotations

import logging
import re
import sys
import urllib.parse
from pathlib import Path

from . import config

LOGGER = logging.getLogger("esaj")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path = config.LOG_FILE
_CONSOLE_STREAM = "stdout"

_PROTOCOL_STRIP = re.compile(r"[\s.\-]")


class _ConsoleHandler(logging.StreamHandler):
    """Stream handler that resolves ``sys.stdout``/``sys.stderr`` per record."""

    def __init__(self, stream_name: str) -> None:
        super().__init__(getattr(sys, stream_name))
        self.stream_name = stream_name

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = getattr(sys, self.stream_name)
        super().emit(record)


def set_console_stream(stream_name: str) -> None:
    """Send console log lines to ``"stdout"`` or ``"stderr"``; the log file is unaffected."""

    global _CONSOLE_STREAM

    if stream_name not in ("stdout", "stderr"):
        raise ValueError(f"unknown console stream: {stream_name!r}")
    _CONSOLE_STREAM = stream_name
    for handler in LOGGER.handlers:
        if isinstance(handler, _ConsoleHandler):
            handler.stream_name = stream_name


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = _ConsoleHandler(_CONSOLE_STREAM)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def get_current_log_path() -> Path:
    """Return the path to the log file currently receiving log lines."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def ensure_dirs() -> None:
    """Ensure that the data, log and download directories exist."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    config.DOWNLOADS_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to the console stream and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def normalize_protocol(raw: str | None) -> str:
    """Return the protocol number without whitespace, dots or hyphens.

    ``" 1234567-89.2024.8.26.0100 "`` becomes ``"12345678920248260100"``.
    """

    return _PROTOCOL_STRIP.sub("", (raw or "").strip())


def redact_url(url: str) -> str:
    """Drop the query string so document identifiers stay out of the logs."""

    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except Exception:
        return url


def page_origin(page_url: str) -> str:
    """Return ``scheme://host`` for ``page_url`` (empty when unparsable)."""

    try:
        parsed = urllib.parse.urlparse(page_url or "")
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def normalize_url(raw: str | None, *, page_url: str) -> str:
    """Resolve ``raw`` against ``page_url``; blank for script or anchor links."""

    raw = (raw or "").strip()
    if not raw:
        return ""
    lowered = raw.lower()
    if lowered.startswith("javascript:") or raw.startswith("#"):
        return ""
    if raw.startswith("//"):
        return "https:" + raw
    if lowered.startswith(("http://", "https://")):
        return raw
    try:
        return urllib.parse.urljoin(page_url, raw)
    except ValueError:
        return raw


def sanitize_filename(name: str) -> str:
    """
    Return a filesystem-safe filename derived from *name*.
    Keeps only alphanumerics, dot, underscore, dash.
    """
    cleaned = "".join(
        ch if ch.isalnum() or ch in {".", "_", "-"} else "_"
        for ch in name.strip()
    ).strip("._")

    return cleaned or "file"


__all__ = [
    "LOGGER",
    "ensure_dirs",
    "get_current_log_path",
    "log_line",
    "normalize_protocol",
    "normalize_url",
    "page_origin",
    "redact_url",
    "sanitize_filename",
    "set_console_stream",
]
