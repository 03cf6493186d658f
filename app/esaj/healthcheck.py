from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from . import config
from .config_validation import validate_runtime_config
from .logging_utils import _portal_event
from .session import find_browser_executable
from .utils import ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def run_health_checks(entrypoint: str = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {"ok": True, "portal_url": config.ESAJ_URL}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    try:
        ensure_dirs()
        writable = os.access(config.DOWNLOADS_DIR, os.W_OK)
        checks["downloads_dir"] = {"ok": writable, "path": str(config.DOWNLOADS_DIR)}
    except OSError as exc:
        checks["downloads_dir"] = {"ok": False, "path": str(config.DOWNLOADS_DIR), "error": str(exc)}

    # A missing discovered executable is not fatal: Playwright may still
    # resolve its own bundled browser at launch time.
    executable = find_browser_executable()
    checks["browser"] = {
        "ok": True,
        "executable": executable or "playwright-managed",
        "headless": config.HEADLESS,
    }

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _portal_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
