import logging
import os

import pytest

from article_ingest import config as config_module
from article_ingest.config import ConfigManager, parse_env_line
from article_ingest.exceptions import ConfigurationError

ENV_KEYS = [
    "SUPABASE_URL", "SUPABASE_SERVICE_KEY", "SUPABASE_ANON_KEY", "SUPABASE_DB_PASSWORD", "DATABASE_URL",
    "DB_SCHEMA", "DB_CONNECTION_TIMEOUT", "DB_POOL_MIN_SIZE", "DB_POOL_MAX_SIZE", "USE_DIRECT_CONNECTION",
    "MAX_TITLE_LENGTH", "MAX_DESCRIPTION_LENGTH", "MAX_TOPICS_PER_ARTICLE", "LINK_UNIQUE_CONSTRAINT",
    "COMPENSATION_ATTEMPTS", "IMPORT_WORKERS", "LOG_LEVEL", "VERBOSE_LOGGING",
]


@pytest.fixture
def env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env file out of the picture
    monkeypatch.setattr(ConfigManager, "_load_environment", lambda self: None)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")
    config_module.reset_config()
    yield monkeypatch
    config_module.reset_config()


def test_defaults(env):
    config = ConfigManager().get_config()

    assert config.database.db_schema == "app"
    assert config.database.api_key == "service-key"
    assert config.database.has_rest_api()
    assert not config.database.has_direct_connection()
    assert config.app.max_title_length == 1000
    assert config.app.max_description_length == 5000
    assert config.app.max_topics_per_article == 20
    assert config.app.link_unique_constraint == "articles_link_key"
    assert config.app.compensation_attempts == 3
    assert config.app.import_workers == 4
    assert config.app.log_level == "INFO"


def test_environment_overrides(env):
    env.setenv("DB_SCHEMA", "staging")
    env.setenv("USE_DIRECT_CONNECTION", "true")
    env.setenv("IMPORT_WORKERS", "8")
    env.setenv("LOG_LEVEL", "debug")

    config = ConfigManager().get_config()

    assert config.database.db_schema == "staging"
    assert config.database.use_direct_connection is True
    assert config.app.import_workers == 8
    assert config.app.log_level == "DEBUG"


def test_anon_key_is_fallback(env):
    env.delenv("SUPABASE_SERVICE_KEY")
    env.setenv("SUPABASE_ANON_KEY", "anon-key")

    assert ConfigManager().get_config().database.api_key == "anon-key"


def test_validation_errors_are_collected(env):
    env.delenv("SUPABASE_SERVICE_KEY")
    env.setenv("IMPORT_WORKERS", "64")
    env.setenv("LOG_LEVEL", "LOUD")

    with pytest.raises(ConfigurationError) as exc_info:
        ConfigManager().get_config()

    issue = exc_info.value.context["issue"]
    assert "Either SUPABASE_URL" in issue
    assert "IMPORT_WORKERS" in issue
    assert "LOG_LEVEL" in issue


def test_non_integer_value(env):
    env.setenv("COMPENSATION_ATTEMPTS", "three")

    with pytest.raises(ConfigurationError) as exc_info:
        ConfigManager().get_config()
    assert exc_info.value.context["config_key"] == "COMPENSATION_ATTEMPTS"


def test_env_file_does_not_override_environment(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text('# comment\nDB_SCHEMA="from_file"\nLOG_LEVEL=ERROR\nnot a pair\n', encoding="utf-8")
    # setenv first so teardown removes whatever the file loads
    monkeypatch.setenv("DB_SCHEMA", "placeholder")
    monkeypatch.delenv("DB_SCHEMA")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setattr(ConfigManager, "_load_environment", lambda self: None)

    ConfigManager()._load_env_file(env_file)

    assert os.environ["DB_SCHEMA"] == "from_file"
    assert os.environ["LOG_LEVEL"] == "DEBUG"


def test_update_logging_applies_level(env):
    env.setenv("LOG_LEVEL", "WARNING")
    root = logging.getLogger()
    previous = root.level

    try:
        ConfigManager().update_logging()
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_global_config_is_cached(env):
    assert config_module.get_config() is config_module.get_config()


@pytest.mark.parametrize("line,expected", [
    ("KEY=value", ("KEY", "value")),
    ("  KEY = 'quoted value' ", ("KEY", "quoted value")),
    ('URL="postgresql://u:p@h/db?a=b"', ("URL", "postgresql://u:p@h/db?a=b")),
    ("# comment", None),
    ("", None),
])
def test_parse_env_line(line, expected):
    assert parse_env_line(line) == expected


def test_parse_env_line_rejects_malformed():
    with pytest.raises(ValueError):
        parse_env_line("not a pair")
