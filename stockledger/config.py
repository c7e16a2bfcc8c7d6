from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Stock Ledger"
    DATABASE_URL: str = "sqlite:///./stockledger.db"

    LOG_LEVEL: str = "INFO"

    # Max seconds a writer waits for a product lock before giving up
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # Largest accepted relative price change (0.20 = 20% up or down)
    MAX_PRICE_CHANGE_RATIO: float = 0.20

    # Auth (JWT cookie/bearer)
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    # Load the demo catalog on startup when the database is empty
    SEED_DEMO_DATA: bool = False

    model_config = {"env_file": ".env"}


settings = Settings()
