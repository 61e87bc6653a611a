from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "ClientDesk API"
    app_env: str = "development"
    app_debug: bool = True
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./clientdesk.db"
    jwt_secret: str = "replace-me"
    jwt_refresh_secret: str = "replace-me-too"
    jwt_algorithm: str = "HS256"
    jwt_access_expires_minutes: int = 15
    jwt_refresh_expires_days: int = 7
    upload_path: str = "./uploads"
    upload_max_size: int = 5 * 1024 * 1024
    cors_origins: list[str] = ["http://localhost:5173"]
    rate_limit_disabled: bool = False
    rate_limit_mutations_per_minute: int = 60
    rate_limit_window_seconds: int = 60
    metrics_enabled: bool = False
    otel_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"local", "dev", "development"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
