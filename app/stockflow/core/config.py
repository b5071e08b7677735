from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "STOCKFLOW"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./stockflow.db"
    DB_LOCK_TIMEOUT_SEC: int = 5
    TRANSFER_NUMBER_PREFIX: str = "TRF"
    TRANSFER_NUMBER_MAX_ATTEMPTS: int = 3
    TRANSFER_LIST_MAX_ROWS: int = 500
    LOG_LEVEL: str = "INFO"
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8000
    METRICS_ENABLED: bool = True
    OPS_ENABLE_INTEGRITY_SCAN: bool = True

settings = Settings()
