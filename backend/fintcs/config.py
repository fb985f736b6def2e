from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./fintcs.db"
    CREATE_TABLES_ON_STARTUP: bool = True
    JWT_SECRET: str = "fintcs-jwt-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 480
    AUDIT_STORAGE_PATH: str = "./audit_storage"
    AUDIT_RETENTION_ENABLED: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:4200", "http://localhost:5173"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
