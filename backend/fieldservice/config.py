from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://fieldservice:fieldservice@db:5432/fieldservice"
    JWT_SECRET: str = "fieldservice-dev-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ROLE_CLAIM: str = "role"
    JWT_USER_ID_CLAIM: str = "user_id"
    # JSON permission document; derived from entity metadata when unset
    PERMISSIONS_FILE: str | None = None
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:8080", "http://localhost:5173"]

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
