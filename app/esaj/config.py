"""Configuration constants for the e-SAJ retrieval core."""
from __future__ import annotations

import os
from pathlib import Path


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_float_seconds(env_var: str, default: float, *, minimum: float = 0.1) -> float:
    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


DATA_DIR: Path = Path(os.getenv("ESAJ_DATA_DIR", str(Path.cwd() / "data")))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
DOWNLOADS_DIR: Path = Path(
    os.getenv("ESAJ_DOWNLOADS_DIR", str(DATA_DIR / "downloads_esaj"))
)

ESAJ_URL: str = (
    os.getenv("ESAJ_URL", "https://esaj.tjsp.jus.br/cpopg/open.do").strip()
    or "https://esaj.tjsp.jus.br/cpopg/open.do"
)

# Browser launch
HEADLESS: bool = _parse_bool("ESAJ_HEADLESS", True)
EXECUTABLE_PATH: str = os.getenv("ESAJ_EXECUTABLE_PATH", "").strip()
BROWSER_CACHE_DIR: str = os.getenv("ESAJ_BROWSER_CACHE_DIR", "").strip()
MAX_CACHE_SCAN_DEPTH: int = _parse_timeout_seconds(
    "ESAJ_MAX_CACHE_SCAN_DEPTH", 6, minimum=0
)
BROWSER_CACHE_DIRS: tuple[str, ...] = (
    str(Path.cwd() / ".cache" / "ms-playwright"),
    str(Path.cwd() / ".cache" / "puppeteer"),
    str(Path.home() / ".cache" / "ms-playwright"),
    str(Path.home() / ".cache" / "puppeteer"),
    "/opt/render/.cache/puppeteer",
    "/root/.cache/ms-playwright",
    "/root/.cache/puppeteer",
)
SYSTEM_BROWSER_PATHS: tuple[str, ...] = (
    "/usr/bin/google-chrome",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chrome",
)
BROWSER_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
)

# Playwright timeouts (seconds)
# Navigation timeout for page.goto calls.
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("ESAJ_NAV_TIMEOUT_SECONDS", 30)
# The portal is slow to answer a search submission.
SUBMIT_TIMEOUT_SECONDS: int = _parse_timeout_seconds("ESAJ_SUBMIT_TIMEOUT_SECONDS", 45)
# Element waits (form controls, viewer frames).
SELECTOR_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "ESAJ_SELECTOR_TIMEOUT_SECONDS", 10
)
VIEWER_TIMEOUT_SECONDS: int = _parse_timeout_seconds("ESAJ_VIEWER_TIMEOUT_SECONDS", 15)
# Binary download polling ceiling and granularity.
DOWNLOAD_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "ESAJ_DOWNLOAD_TIMEOUT_SECONDS", 60
)
DOWNLOAD_POLL_SECONDS: float = _parse_float_seconds("ESAJ_DOWNLOAD_POLL_SECONDS", 1.0)
PDF_FETCH_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "ESAJ_PDF_FETCH_TIMEOUT_SECONDS", 60
)
# Outer deadline applied by the HTTP and CLI surfaces to one portal job.
OPERATION_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "ESAJ_OPERATION_TIMEOUT_SECONDS", 300
)

# Click-level timeout remains in milliseconds to match Playwright API expectations.
CLICK_TIMEOUT_MS: int = int(os.getenv("ESAJ_CLICK_TIMEOUT_MS", "5000"))
# Delay between keystrokes when typing the protocol number.
TYPE_DELAY_MS: int = int(os.getenv("ESAJ_TYPE_DELAY_MS", "50"))
POST_CLICK_SLEEP_SECONDS: float = float(os.getenv("ESAJ_POST_CLICK_SLEEP_SECONDS", "2.0"))

UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": UA,
    "Accept": "application/pdf,application/octet-stream,*/*",
    "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
}

PORT: int = int(os.getenv("PORT", "8080"))
