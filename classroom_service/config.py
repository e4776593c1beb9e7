from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./classroom.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "dev-secret-classroom"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"
    CACHE_TTL: int = 300  # 5 minutes
    CACHE_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_ENABLED: bool = True
    STORAGE_BUCKET: str = "classroom-uploads.appspot.com"
    STORAGE_CREDENTIALS_FILE: str | None = None
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024
    CLASSROOM_CODE_LENGTH: int = 7

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
