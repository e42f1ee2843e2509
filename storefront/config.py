# storefront/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    # Remote cart/order/promotion services
    API_URL: str = "http://localhost:5000"
    REQUEST_TIMEOUT: float = 10.0

    # Flat shipping fee in whole currency units (VND)
    DELIVERY_FEE: int = 30000

    # Minimum interval between two completed cart refreshes
    CART_REFRESH_DEBOUNCE_MS: int = 500

    # Auto-dismiss durations per emission site
    CART_NOTIFY_SECONDS: float = 3.0
    ORDER_NOTIFY_SECONDS: float = 5.0

    # Extra attempts of the cancel/confirm dual path before reporting failure
    ORDER_TRANSITION_RETRIES: int = 1

    # When both cancel/confirm paths fail, still advance local order state and
    # tag the result unconfirmed. False reports a plain failure instead.
    ORDER_OPTIMISTIC_FALLBACK: bool = True

    # How long the active promotion list is reused before it is fetched again
    PROMOTION_CACHE_SECONDS: float = 300.0

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
