"""Engine configuration, read from the environment and an optional .env file."""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings
from sqlalchemy.engine import make_url


class Settings(BaseSettings):
    """Workflow engine settings.

    Attributes:
        ENVIRONMENT: development, testing, staging or production
        DATABASE_URL: SQLAlchemy async URL of the instance/definition store
        SQLALCHEMY_ECHO: Log every SQL statement
        DB_POOL_SIZE / DB_MAX_OVERFLOW: Pool sizing for server databases
        LOG_LEVEL: Root log level name
        LOG_FORMAT: "json" or "text"
    """

    APP_NAME: str = "Durable Workflow Engine"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite+aiosqlite:///./workflows.db"
    SQLALCHEMY_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def log_level(self) -> int:
        """LOG_LEVEL as a logging constant, INFO when unrecognised."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO

    @property
    def safe_database_url(self) -> str:
        """DATABASE_URL with any password masked, for logging."""
        return make_url(self.DATABASE_URL).render_as_string(hide_password=True)

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Settings are loaded once per process."""
    return Settings()
