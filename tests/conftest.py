import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from context import AppContext
from database import Database
from errors import UpstreamUnavailable
from main import create_app

RAZORPAY_SECRET = "test_secret"


class FakePrices:
    """Stands in for the CoinGecko client; quotes are set per test."""

    def __init__(self):
        self.quotes_by_id = {}
        self.calls = []
        self.fail = False

    def quotes(self, coin_ids, vs_currency="usd"):
        ids = sorted(set(coin_ids))
        self.calls.append(("quotes", ids, vs_currency))
        if self.fail:
            raise UpstreamUnavailable("Price provider unavailable")
        return {c: self.quotes_by_id[c] for c in ids if c in self.quotes_by_id}

    def markets(self, vs_currency="usd", order="market_cap_desc", per_page=100, page=1):
        self.calls.append(("markets", vs_currency, order, per_page, page))
        if self.fail:
            raise UpstreamUnavailable("Price provider unavailable")
        return [{"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "current_price": 45000}]

    def coin(self, coin_id, vs_currency="usd"):
        return {"id": coin_id, "current_price": 45000}

    def search(self, query):
        return {"coins": [{"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"}]}

    def trending(self):
        return {"coins": []}

    def global_stats(self):
        return {"data": {"active_cryptocurrencies": 10000}}

    def market_overview(self, vs_currency="usd", top=10):
        return {"global": self.global_stats(), "top": self.markets(vs_currency, per_page=top)}

    def close(self):
        pass


@pytest.fixture
def settings():
    return Settings(razorpay_key_id="rzp_test_key", razorpay_key_secret=RAZORPAY_SECRET)


@pytest.fixture
def db(settings):
    return Database(mongomock.MongoClient(), "crypto_tracker_test", settings.mutation_retries)


@pytest.fixture
def prices():
    return FakePrices()


@pytest.fixture
def client(settings, db, prices):
    app = create_app(AppContext(settings=settings, db=db, prices=prices))
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth(client):
    resp = client.post("/api/auth/register", json={"name": "Alice", "email": "alice@example.com"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}