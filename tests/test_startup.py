from unittest import mock

import pytest
from fastapi.testclient import TestClient

from cuentos import __main__ as entrypoint
from cuentos.main import app
from cuentos.settings import AppConfig, ConfigurationError


@pytest.fixture
def no_api_key(monkeypatch):
    for name in AppConfig._api_key_env_vars:
        monkeypatch.delenv(name, raising=False)


def test_main_exits_with_status_1_without_api_key(no_api_key, caplog):
    with mock.patch.object(entrypoint.uvicorn, "run") as run:
        assert entrypoint.main() == 1

    run.assert_not_called()
    assert "GEMINI_API_KEY is not defined" in caplog.text


def test_main_serves_on_configured_port(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    monkeypatch.setenv("CUENTOS_PORT", "8123")

    with mock.patch.object(entrypoint.uvicorn, "run") as run:
        assert entrypoint.main() == 0

    run.assert_called_once_with(app, host=AppConfig.get_value("host"), port=8123, log_level="info")


def test_app_refuses_to_start_without_api_key(no_api_key):
    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass
