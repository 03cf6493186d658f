from app.esaj import config
from app.esaj.config_validation import validate_runtime_config
import pytest


def test_defaults_are_valid() -> None:
    validate_runtime_config("tests")


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "NAV_TIMEOUT_SECONDS", 0)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_poll_interval_above_ceiling(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "DOWNLOAD_TIMEOUT_SECONDS", 2)
    monkeypatch.setattr(config, "DOWNLOAD_POLL_SECONDS", 5.0)
    with pytest.raises(ValueError):
        validate_runtime_config("api")


def test_portal_url_must_be_http(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "ESAJ_URL", "esaj.tjsp.jus.br/cpopg/open.do")
    with pytest.raises(ValueError):
        validate_runtime_config("worker")


def test_short_operation_deadline_only_warns(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "OPERATION_TIMEOUT_SECONDS", 10)
    validate_runtime_config("cli")


def test_timeout_env_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ESAJ_TEST_TIMEOUT", "abc")
    assert config._parse_timeout_seconds("ESAJ_TEST_TIMEOUT", 30) == 30
    monkeypatch.setenv("ESAJ_TEST_TIMEOUT", "-4")
    assert config._parse_timeout_seconds("ESAJ_TEST_TIMEOUT", 30) == 1
    monkeypatch.setenv("ESAJ_TEST_BOOL", "false")
    assert config._parse_bool("ESAJ_TEST_BOOL", True) is False
