from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "STOCKFLOW"
    DATABASE_URL: str = "sqlite+pysqlite:///./stockflow.db"
    MAIN_STORE_ID: str = "00000000-0000-0000-0000-000000000001"
    MAIN_STORE_NAME: str = "Main Store"
    TRANSFERS_DEFAULT_PAGE_SIZE: int = 20
    TRANSFERS_LIST_MAX_PAGE_SIZE: int = 200
    AUDIT_LIST_MAX_PAGE_SIZE: int = 200
    METRICS_ENABLED: bool = True
    OPS_ENABLE_INTEGRITY_SCAN: bool = True

settings = Settings()
