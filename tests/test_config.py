import json

import pytest

from payfriends.config import Config
from payfriends.errors import ConfigError


@pytest.fixture
def env(monkeypatch):
    for name in ("FIREBASE_SERVICE_ACCOUNT", "FIREBASE_CREDENTIALS_FILE", "REPORT_TOKEN", "MAIL_DEFAULT_SENDER"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REPORT_TOKEN", "secret")
    monkeypatch.setenv("MAIL_DEFAULT_SENDER", "reports@example.com")
    return monkeypatch


def test_defaults(env):
    settings = Config()
    assert settings.GROUP_NAME == "no groupcest"
    assert settings.MAIL_SERVER == "smtp.postmarkapp.com"
    assert settings.REPORT_CRON_HOUR == 9
    assert settings.REPORT_TIMEZONE == "America/New_York"


def test_service_account_from_environment(env):
    env.setenv("FIREBASE_SERVICE_ACCOUNT", json.dumps({"type": "service_account", "private_key": "k"}))
    settings = Config()
    settings.validate()
    assert settings.firebase_credentials()["private_key"] == "k"


def test_malformed_service_account(env):
    env.setenv("FIREBASE_SERVICE_ACCOUNT", "{not json")
    with pytest.raises(ConfigError):
        Config().validate()


def test_missing_credentials_file(env, tmp_path):
    env.setenv("FIREBASE_CREDENTIALS_FILE", str(tmp_path / "missing.json"))
    with pytest.raises(ConfigError):
        Config().validate()


def test_missing_report_token(env):
    env.delenv("REPORT_TOKEN")
    env.setenv("FIREBASE_SERVICE_ACCOUNT", json.dumps({"private_key": "k"}))
    with pytest.raises(ConfigError) as info:
        Config().validate()
    assert "REPORT_TOKEN" in str(info.value)


def test_boolean_flags(env):
    env.setenv("SCHEDULER_ENABLED", "yes")
    env.setenv("MAIL_USE_TLS", "false")
    settings = Config()
    assert settings.SCHEDULER_ENABLED is True
    assert settings.MAIL_USE_TLS is False
