from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _portal_event
from .utils import log_line

Entrypoint = Literal["api", "cli", "worker", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _portal_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    """

    if not config.ESAJ_URL.lower().startswith(("http://", "https://")):
        _raise_config_error(
            "ESAJ_URL must be an http(s) URL.",
            entrypoint=entrypoint,
            error="portal_url_invalid",
        )

    timeout_fields = [
        ("ESAJ_NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("ESAJ_SUBMIT_TIMEOUT_SECONDS", config.SUBMIT_TIMEOUT_SECONDS),
        ("ESAJ_SELECTOR_TIMEOUT_SECONDS", config.SELECTOR_TIMEOUT_SECONDS),
        ("ESAJ_VIEWER_TIMEOUT_SECONDS", config.VIEWER_TIMEOUT_SECONDS),
        ("ESAJ_DOWNLOAD_TIMEOUT_SECONDS", config.DOWNLOAD_TIMEOUT_SECONDS),
        ("ESAJ_DOWNLOAD_POLL_SECONDS", config.DOWNLOAD_POLL_SECONDS),
        ("ESAJ_PDF_FETCH_TIMEOUT_SECONDS", config.PDF_FETCH_TIMEOUT_SECONDS),
        ("ESAJ_OPERATION_TIMEOUT_SECONDS", config.OPERATION_TIMEOUT_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    if config.DOWNLOAD_POLL_SECONDS > config.DOWNLOAD_TIMEOUT_SECONDS:
        _raise_config_error(
            "ESAJ_DOWNLOAD_POLL_SECONDS must not exceed ESAJ_DOWNLOAD_TIMEOUT_SECONDS.",
            entrypoint=entrypoint,
            error="poll_interval_exceeds_ceiling",
        )

    if config.OPERATION_TIMEOUT_SECONDS < config.SUBMIT_TIMEOUT_SECONDS:
        _portal_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_warning",
            field="ESAJ_OPERATION_TIMEOUT_SECONDS",
            value=config.OPERATION_TIMEOUT_SECONDS,
            entrypoint=entrypoint,
        )
        log_line(
            "[CONFIG] ESAJ_OPERATION_TIMEOUT_SECONDS is shorter than the search submission timeout; "
            "searches may be cancelled before the portal answers."
        )


__all__ = ["validate_runtime_config", "Entrypoint"]
