"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass
class Settings:
    """Application settings. Secrets are optional so the API can boot in development."""

    database_url: str = "mongodb://localhost:27017"
    database_name: str = "crypto_tracker"

    coingecko_api_url: str = "https://api.coingecko.com/api/v3"
    coingecko_timeout: float = 15.0

    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None

    client_url: str = "http://localhost:3000"
    environment: str = "development"
    log_level: str = "INFO"
    mutation_retries: int = 5
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            coingecko_api_url=os.getenv("COINGECKO_API_URL", cls.coingecko_api_url).rstrip("/"),
            coingecko_timeout=float(os.getenv("COINGECKO_TIMEOUT", cls.coingecko_timeout)),
            razorpay_key_id=os.getenv("RAZORPAY_KEY_ID", "").strip() or None,
            razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET", "").strip() or None,
            client_url=os.getenv("CLIENT_URL", cls.client_url),
            environment=os.getenv("ENVIRONMENT", cls.environment),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            mutation_retries=int(os.getenv("MUTATION_RETRIES", cls.mutation_retries)),
            port=int(os.getenv("PORT", cls.port)),
        )
