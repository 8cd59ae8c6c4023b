"""Configuration using pydantic-settings (pydantic v2).

Values are read from the environment and from an optional `.env` file in the
working directory.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "ESP Device Hub"
    SECRET_KEY: str = "changeme_in_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./device_hub.db"
    # When running tests, set TESTING=1 in env to force plaintext hashing
    TESTING: bool = False
    # Password scheme preference: 'bcrypt', 'argon2', 'plaintext', or 'auto'
    # 'auto' will try bcrypt then argon2 and fall back to plaintext.
    PASSWORD_SCHEME: str = "auto"
    LOG_LEVEL: str = "INFO"
    # Bearer secret expected by the maintenance (retention purge) endpoint.
    MAINTENANCE_SHARED_SECRET: str = "maintenance_shared_secret"

    # Retention windows, in days
    ACTION_RETENTION_DAYS: int = 30
    SENSOR_RETENTION_DAYS: int = 90
    AUDIT_RETENTION_DAYS: int = 365

    # Listing defaults
    DEFAULT_ACTION_LIMIT: int = 50
    DEFAULT_SENSOR_LIMIT: int = 100
    MAX_QUERY_LIMIT: int = 1000
    STATS_WINDOW_DAYS: int = 7

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
