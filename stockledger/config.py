from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Stock Ledger"
    DATABASE_URL: str = "sqlite:///./stockledger.db"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    # Seeded on first start when the users table is empty
    DEFAULT_ADMIN_EMAIL: str = "stockmaster@example.com"
    DEFAULT_ADMIN_PASSWORD: str = "stockmaster"

    model_config = {"env_file": ".env"}


settings = Settings()
