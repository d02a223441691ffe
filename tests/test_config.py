from config.logging_setup import sensitive_data_filter
from config.settings import AppSettings, load_settings


def test_settings_defaults(monkeypatch):
    for name in ("DB_PATH", "LOG_LEVEL", "LIVE_REFRESH_SECONDS", "EXPORT_FILENAME"):
        monkeypatch.delenv(name, raising=False)

    settings = AppSettings(_env_file=None)

    assert settings.db_path == "competition.db"
    assert settings.export_filename == "bridge-building-competition-results.xlsx"
    assert settings.export_sheet_name == "Competition Results"
    assert settings.live_refresh_seconds == 5
    assert settings.google_sheet_key is None


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("live_refresh_seconds", "2")

    settings = AppSettings(_env_file=None)

    assert settings.db_path == "/tmp/other.db"
    assert settings.live_refresh_seconds == 2


def test_invalid_log_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    assert load_settings().log_level == "INFO"


def test_log_level_is_normalized(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert load_settings().log_level == "DEBUG"


def test_sensitive_values_are_masked():
    record = {"extra": {"password": "hunter2", "api_token": "abcdefghijkl", "team": "12"}}

    assert sensitive_data_filter(record)
    assert record["extra"] == {"password": "********", "api_token": "ab****kl", "team": "12"}
