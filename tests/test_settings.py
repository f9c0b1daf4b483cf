import pytest
from pydantic import ValidationError

from firegrid.settings import Settings


def test_cors_origins_are_read_from_a_comma_list(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_CORS_ORIGINS", "http://a.test, http://b.test,,")
    assert Settings(environment="test").cors_origins == ["http://a.test", "http://b.test"]


def test_postgres_urls_use_psycopg() -> None:
    assert Settings(database_url="postgres://u:p@db/app").database_url == "postgresql+psycopg://u:p@db/app"
    assert Settings(database_url="postgresql://u:p@db/app").database_url == "postgresql+psycopg://u:p@db/app"
    assert Settings(database_url="sqlite://").database_url == "sqlite://"


def test_production_rules() -> None:
    with pytest.raises(ValidationError):
        Settings(environment="production", database_url="sqlite:///prod.db")
    with pytest.raises(ValidationError):
        Settings(environment="production", database_url="postgresql://db/app", cors_origins=["*"])
    settings = Settings(environment="production", database_url="postgresql://db/app")
    assert settings.is_production


def test_timezone_and_delays_are_validated() -> None:
    assert Settings(grid_timezone="America/Sao_Paulo").tzinfo.key == "America/Sao_Paulo"
    with pytest.raises(ValidationError):
        Settings(grid_timezone="Mars/Olympus")
    with pytest.raises(ValidationError):
        Settings(autosave_debounce_seconds=-1)
