"""
Settings for the CI health service.

Every value can be overridden through the environment or a .env file in the
working directory. Names are case sensitive.
"""
from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATABASE_SCHEMES = ('sqlite:///', 'postgresql://', 'postgresql+psycopg2://', 'mysql+pymysql://')


class Settings(BaseSettings):
    """Environment-backed settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra='ignore'
    )

    DATABASE_URL: str = "sqlite:///./data/ci_health.db"

    # Source of bug-to-test mappings; sync is skipped while the URL is empty
    BUG_DATA_URL: str = ""
    BUG_DATA_USER: str = ""
    BUG_DATA_TOKEN: str = ""
    BUG_DATA_VERIFY_SSL: bool = True
    BUG_SYNC_ENABLED: bool = False
    BUG_SYNC_INTERVAL_HOURS: float = 1.0

    REPORT_CURRENT_DAYS: int = 7
    REPORT_PREVIOUS_DAYS: int = 7  # immediately precedes the current period
    FAILURE_GROUP_THRESHOLD: int = 10  # test failures in one run

    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8080"  # comma separated

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 100

    CACHE_ENABLED: bool = True
    CACHE_TTL_SECONDS: int = 300
    REDIS_URL: str = ""  # in-memory cache when empty

    @field_validator('DATABASE_URL')
    @classmethod
    def check_database_scheme(cls, v: str) -> str:
        if not v.startswith(DATABASE_SCHEMES):
            raise ValueError(f'DATABASE_URL must start with one of: {", ".join(DATABASE_SCHEMES)}')
        return v

    @field_validator('REPORT_CURRENT_DAYS', 'REPORT_PREVIOUS_DAYS', 'FAILURE_GROUP_THRESHOLD')
    @classmethod
    def check_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError('must be greater than zero')
        return v

    @property
    def origins(self) -> list:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()
