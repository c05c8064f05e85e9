import pytest
from pydantic import ValidationError

from tax_qualifications.config import Settings

ENV_NAMES = (
    "TAXQ_MONGO_URI",
    "TAXQ_DB_NAME",
    "TAXQ_BATCH_SIZE",
    "TAXQ_MAX_UPLOAD_MB",
    "TAXQ_MAX_COMMIT_WORKERS",
    "TAXQ_PROGRESS_INTERVAL",
    "TAXQ_STRICT_PERIOD",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings()

    assert settings.batch_size == 500
    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.max_commit_workers == 8
    assert settings.progress_interval == 100
    assert settings.strict_period_format is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TAXQ_MONGO_URI", "mongodb://db:27017/")
    monkeypatch.setenv("TAXQ_DB_NAME", "prod")
    monkeypatch.setenv("TAXQ_BATCH_SIZE", "250")
    monkeypatch.setenv("TAXQ_MAX_UPLOAD_MB", "2")
    monkeypatch.setenv("TAXQ_STRICT_PERIOD", "false")

    settings = Settings()

    assert settings.mongo_uri == "mongodb://db:27017/"
    assert settings.db_name == "prod"
    assert settings.batch_size == 250
    assert settings.max_upload_bytes == 2 * 1024 * 1024
    assert settings.strict_period_format is False


@pytest.mark.parametrize("value", ["0", "501", "many"])
def test_invalid_batch_size(monkeypatch, value):
    monkeypatch.setenv("TAXQ_BATCH_SIZE", value)

    with pytest.raises(ValidationError, match="batch_size"):
        Settings()


def test_settings_are_immutable():
    settings = Settings()

    with pytest.raises(ValidationError):
        settings.batch_size = 10
