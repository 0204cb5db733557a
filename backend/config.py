# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./bookshop_ledger.db"
    SHOP_NAME: str = "Bookshop"

    # Lowest quantity a movement may leave on hand
    STOCK_FLOOR: int = 0
    # When enabled, sales may drive stock below the floor (backorders)
    ALLOW_BACKORDER: bool = False

    # Outstanding balances at or under this amount count as settled
    BALANCE_TOLERANCE: float = 0.01

    TOP_PRODUCTS_LIMIT: int = 5
    RECENT_SALES_LIMIT: int = 5
    MOVEMENTS_DEFAULT_LIMIT: int = 100

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
