from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    FRONTEND_URL: str = "http://localhost:3000"
    FRONTEND_URLS: str | None = None

    STORAGE_ENDPOINT_URL: str | None = None
    STORAGE_BUCKET_NAME: str = "recuerdos"
    STORAGE_ACCESS_KEY_ID: str | None = None
    STORAGE_SECRET_ACCESS_KEY: str | None = None
    STORAGE_REGION: str = "auto"
    STORAGE_PUBLIC_BASE_URL: str | None = None
    STORAGE_TIMEOUT_SECONDS: float = 10.0
    MAX_PHOTO_BYTES: int = 10 * 1024 * 1024

    DB_POOL_TIMEOUT_SECONDS: float = 10.0
    DB_COMMAND_TIMEOUT_SECONDS: float = 10.0
    AUTO_CREATE_TABLES: bool = False

    AUTH_RATE_LIMIT: str = "20/minute"
    RATE_LIMIT_ENABLED: bool = True

    STATIC_DIR: str = "public"
    LOG_LEVEL: str = "INFO"
    PORT: int = 5000

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.STORAGE_ENDPOINT_URL
            and self.STORAGE_BUCKET_NAME
            and self.STORAGE_ACCESS_KEY_ID
            and self.STORAGE_SECRET_ACCESS_KEY
        )

    def allowed_origins(self) -> list[str]:
        origins = [self.FRONTEND_URL.rstrip("/")]
        if self.FRONTEND_URLS:
            extra = [item.strip().rstrip("/") for item in self.FRONTEND_URLS.split(",") if item.strip()]
            origins.extend(extra)
        return list(dict.fromkeys(origins))


@lru_cache
def get_settings() -> Settings:
    return Settings()
