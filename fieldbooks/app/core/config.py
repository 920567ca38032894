from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./fieldbooks.db"
    SECRET_KEY: str = "dev-insecure-key-change-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # JSON list in the environment, e.g. CORS_ORIGINS=["https://app.example.com"]
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    # Financial dashboard
    FINANCIALS_DEFAULT_WINDOW_MONTHS: int = 12
    OVERDUE_TOP_N: int = 5
    RECENT_ACTIVITY_LIMIT: int = 3


settings = Settings()
