"""Process-wide handles, created at startup and closed at shutdown."""

import logging
from dataclasses import dataclass

from fastapi import Request

from config import Settings
from database import Database
from pricing import CoinGecko

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    db: Database
    prices: CoinGecko

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        db = Database.connect(settings)
        prices = CoinGecko(settings.coingecko_api_url, timeout=settings.coingecko_timeout)
        return cls(settings=settings, db=db, prices=prices)

    def close(self) -> None:
        self.prices.close()
        self.db.close()
        logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    return request.app.state.context
