from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "TBMS"
    APP_VERSION: str = "TBMS 2.1"
    DATABASE_URL: str = "sqlite+pysqlite:///./tbms.db"
    WORKBOOK_PATH: str = "./tbms.xlsx"
    PHOTO_STORAGE_PATH: str = "./photo_storage"
    PHOTO_MAX_BYTES: int = 5 * 1024 * 1024
    LOCK_TIMEOUT_SEC: float = 30.0
    TIMEZONE: str = "Europe/London"
    SETTINGS_KEY_PREFIX: str = "tbms_"
    STORE_DATA_DEFAULT_SHEETS: str = "Staff,Attendance"
    METRICS_ENABLED: bool = True
    CORS_ALLOW_ORIGINS: str = "*"


settings = Settings()
