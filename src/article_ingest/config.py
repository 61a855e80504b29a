#!/usr/bin/env python3
"""
Ingestion configuration.

Settings come from the process environment, with a project-root .env file
filling in whatever the environment leaves unset. Every value is checked
once, when the configuration is built.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from pathlib import Path

from article_ingest.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
VERBOSE_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'


@dataclass
class DatabaseConfig:
    """Where the ingestion tables live and how to reach them."""
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_db_password: Optional[str] = None
    database_url: Optional[str] = None
    db_schema: str = "app"
    connection_timeout: int = 30
    pool_min_size: int = 1
    pool_max_size: int = 10
    use_direct_connection: bool = False

    @property
    def api_key(self) -> Optional[str]:
        # Service key first (writer identity), fallback to anon key
        return self.supabase_service_key or self.supabase_anon_key

    def has_rest_api(self) -> bool:
        return bool(self.supabase_url and self.api_key)

    def has_direct_connection(self) -> bool:
        return bool(self.database_url or (self.supabase_url and self.supabase_db_password))


@dataclass
class ApplicationConfig:
    """Request limits and write-path behaviour."""
    max_title_length: int = 1000
    max_description_length: int = 5000
    max_topics_per_article: int = 20

    link_unique_constraint: str = "articles_link_key"
    compensation_attempts: int = 3
    import_workers: int = 4

    log_level: str = "INFO"
    verbose_logging: bool = False


@dataclass
class Config:
    """Complete ingestion configuration."""
    database: DatabaseConfig
    app: ApplicationConfig

    environment: str = field(default_factory=lambda: os.getenv('ENVIRONMENT', 'development'))
    is_ci: bool = field(default_factory=lambda: bool(os.getenv('CI') or os.getenv('GITHUB_ACTIONS')))


def parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Split one .env line into (key, value).

    Returns None for blanks and comments. Matching surrounding quotes are
    stripped from the value.

    Raises:
        ValueError: Line is not KEY=VALUE
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None
    if '=' not in line:
        raise ValueError(line)

    key, value = (part.strip() for part in line.split('=', 1))
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return key, value


class ConfigManager:
    """Builds, validates and caches the ingestion configuration."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            env_file_path: .env file name, relative to the project root
        """
        self._config: Optional[Config] = None
        self._env_file_path = env_file_path
        self._load_environment()

    def _load_environment(self) -> None:
        env_path = PROJECT_ROOT / self._env_file_path
        if env_path.exists():
            self._load_env_file(env_path)
        else:
            logger.debug(f"No .env file at {env_path}")

    def _load_env_file(self, env_path: Path) -> Dict[str, str]:
        """
        Export .env values the environment does not already define.

        Returns:
            The values actually exported
        """
        try:
            lines = env_path.read_text(encoding='utf-8').splitlines()
        except OSError as e:
            logger.error(f"Cannot read {env_path}: {e}")
            return {}

        exported: Dict[str, str] = {}
        for number, line in enumerate(lines, 1):
            try:
                entry = parse_env_line(line)
            except ValueError:
                logger.warning(f"{env_path.name}:{number} is not KEY=VALUE, skipped")
                continue
            if entry is None:
                continue

            key, value = entry
            # Real environment variables win over the file
            if key in os.environ:
                continue
            os.environ[key] = value
            exported[key] = value

        logger.info(f"Exported {len(exported)} settings from {env_path}")
        return exported

    def get_config(self, force_reload: bool = False) -> Config:
        """
        Get the validated configuration, building it on first use.

        Raises:
            ConfigurationError: A value is malformed or required settings are missing
        """
        if self._config is None or force_reload:
            self._config = self._build_config()
        return self._config

    def _build_config(self) -> Config:
        database = DatabaseConfig(
            supabase_url=os.getenv('SUPABASE_URL'),
            supabase_service_key=os.getenv('SUPABASE_SERVICE_KEY'),
            supabase_anon_key=os.getenv('SUPABASE_ANON_KEY'),
            supabase_db_password=os.getenv('SUPABASE_DB_PASSWORD'),
            database_url=os.getenv('DATABASE_URL'),
            db_schema=os.getenv('DB_SCHEMA', 'app'),
            connection_timeout=self._get_int('DB_CONNECTION_TIMEOUT', 30),
            pool_min_size=self._get_int('DB_POOL_MIN_SIZE', 1),
            pool_max_size=self._get_int('DB_POOL_MAX_SIZE', 10),
            use_direct_connection=self._get_bool('USE_DIRECT_CONNECTION')
        )

        app = ApplicationConfig(
            max_title_length=self._get_int('MAX_TITLE_LENGTH', 1000),
            max_description_length=self._get_int('MAX_DESCRIPTION_LENGTH', 5000),
            max_topics_per_article=self._get_int('MAX_TOPICS_PER_ARTICLE', 20),
            link_unique_constraint=os.getenv('LINK_UNIQUE_CONSTRAINT', 'articles_link_key'),
            compensation_attempts=self._get_int('COMPENSATION_ATTEMPTS', 3),
            import_workers=self._get_int('IMPORT_WORKERS', 4),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            verbose_logging=self._get_bool('VERBOSE_LOGGING')
        )

        config = Config(database=database, app=app)
        self._validate_config(config)
        return config

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        raw = os.getenv(key)
        if raw is None or raw == '':
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(key, f"expected an integer, got {raw!r}")

    @staticmethod
    def _get_bool(key: str) -> bool:
        return os.getenv(key, 'false').lower() in ('1', 'true', 'yes')

    def _validate_config(self, config: Config) -> None:
        """Collect every problem, then raise them together."""
        database, app = config.database, config.app
        problems = []

        if database.supabase_url and not database.supabase_url.startswith(('https://', 'http://')):
            problems.append("SUPABASE_URL must start with https:// or http://")
        if not database.has_rest_api() and not database.has_direct_connection():
            problems.append("Either SUPABASE_URL with an API key, or DATABASE_URL, must be set")
        if not database.db_schema.isidentifier():
            problems.append("DB_SCHEMA must be a valid identifier")
        if database.pool_min_size < 1 or database.pool_max_size < database.pool_min_size:
            problems.append("DB_POOL_MAX_SIZE must be >= DB_POOL_MIN_SIZE >= 1")

        if app.max_title_length < 1:
            problems.append("MAX_TITLE_LENGTH must be at least 1")
        if app.max_topics_per_article < 0:
            problems.append("MAX_TOPICS_PER_ARTICLE must not be negative")
        if app.compensation_attempts < 1:
            problems.append("COMPENSATION_ATTEMPTS must be at least 1")
        if not 1 <= app.import_workers <= 32:
            problems.append("IMPORT_WORKERS must be between 1 and 32")
        if app.log_level not in LOG_LEVELS:
            problems.append(f"LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}")

        if problems:
            raise ConfigurationError('environment', '; '.join(problems))

    def update_logging(self) -> None:
        """Apply LOG_LEVEL and VERBOSE_LOGGING to the root logger and its handlers."""
        app = self.get_config().app
        level = getattr(logging, app.log_level)
        formatter = logging.Formatter(
            VERBOSE_LOG_FORMAT if app.verbose_logging else LOG_FORMAT,
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the process-wide configuration manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Config:
    """Get the process-wide configuration."""
    return get_config_manager().get_config()


def reset_config() -> None:
    """Forget the process-wide configuration (useful for testing)."""
    global _config_manager
    _config_manager = None
