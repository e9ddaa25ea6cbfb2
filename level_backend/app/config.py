from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8098
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Database / Storage
    DATABASE_URL: str = "sqlite+aiosqlite:///level.db"
    DATABASE_ECHO: bool = False
    UPLOAD_DIR: str = "static/uploads"
    UPLOAD_URL_PREFIX: str = "/static/uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Auth
    JWT_SECRET: str = "level-dev-secret"
    JWT_ALGORITHM: str = "HS256"
    JWT_TTL_MINUTES: int = 60 * 24 * 14

    # Posts
    REPLIES_PAGE_SIZE: int = 20

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
