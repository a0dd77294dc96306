"""End-to-end tests over the HTTP API with an in-memory MongoDB."""

import pytest

from payments import sign
from portfolio import Quote
from tests.conftest import RAZORPAY_SECRET


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"


class TestAuth:

    def test_protected_routes_need_token(self, client):
        for method, path in [("get", "/api/portfolio"), ("get", "/api/alerts"), ("get", "/api/payments/wallet")]:
            resp = getattr(client, method)(path)
            assert resp.status_code == 401
            assert resp.json()["message"]

    def test_unknown_token(self, client):
        resp = client.get("/api/portfolio", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_wrong_scheme(self, client, auth):
        token = auth["Authorization"].split()[1]
        resp = client.get("/api/portfolio", headers={"Authorization": f"Basic {token}"})
        assert resp.status_code == 401

    def test_me(self, client, auth):
        resp = client.get("/api/auth/me", headers=auth)
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "alice@example.com"
        assert body["wallet"] == {"balance": 0.0, "currency": "INR"}

    def test_duplicate_registration(self, client, auth):
        resp = client.post("/api/auth/register", json={"name": "A", "email": "Alice@Example.com"})
        assert resp.status_code == 400

    def test_update_preferences(self, client, auth):
        resp = client.put("/api/auth/preferences", headers=auth,
                          json={"currency": "EUR", "notifications": {"email": False, "push": True}})
        assert resp.status_code == 200
        prefs = client.get("/api/auth/me", headers=auth).json()["preferences"]
        assert prefs["currency"] == "eur"
        assert prefs["theme"] == "light"
        assert prefs["notifications"] == {"email": False, "push": True}

    def test_notification_toggles_are_partial(self, client, auth):
        client.put("/api/auth/preferences", headers=auth, json={"notifications": {"push": False}})
        resp = client.put("/api/auth/preferences", headers=auth, json={"notifications": {"email": False}})
        assert resp.status_code == 200
        assert resp.json()["preferences"]["notifications"] == {"email": False, "push": False}


class TestPortfolio:

    def _add(self, client, auth, amount, price, coin_id="bitcoin"):
        return client.post("/api/portfolio", headers=auth, json={
            "coinId": coin_id, "symbol": "btc", "name": "Bitcoin", "amount": amount, "buyPrice": price,
        })

    def test_empty_portfolio(self, client, auth, prices):
        resp = client.get("/api/portfolio", headers=auth)
        assert resp.json() == {
            "portfolio": [],
            "summary": {"totalValue": 0, "totalProfitLoss": 0, "totalProfitLossPercentage": 0},
        }
        assert prices.calls == []

    def test_add_twice_and_value(self, client, auth, prices):
        assert self._add(client, auth, 1, 40000).json()["message"]
        self._add(client, auth, 1, 50000)
        prices.quotes_by_id["bitcoin"] = Quote(price=60000, change_24h=1.5)

        body = client.get("/api/portfolio", headers=auth).json()
        position = body["portfolio"][0]
        assert position["amount"] == 2
        assert position["buyPrice"] == pytest.approx(45000)
        assert position["totalValue"] == pytest.approx(120000)
        assert position["profitLoss"] == pytest.approx(30000)
        assert position["priceChange24h"] == 1.5
        assert body["summary"]["totalProfitLossPercentage"] == pytest.approx(100 * 30000 / 90000)

    def test_priced_in_preferred_currency(self, client, auth, prices):
        client.put("/api/auth/preferences", headers=auth, json={"currency": "inr"})
        self._add(client, auth, 1, 100)
        client.get("/api/portfolio", headers=auth)
        assert prices.calls[-1] == ("quotes", ["bitcoin"], "inr")

    def test_invalid_body_rejected(self, client, auth):
        resp = self._add(client, auth, 0, 100)
        assert resp.status_code == 400
        assert resp.json()["errors"]
        resp = self._add(client, auth, 1, -1)
        assert resp.status_code == 400
        assert client.get("/api/portfolio", headers=auth).json()["portfolio"] == []

    def test_edit_position(self, client, auth):
        self._add(client, auth, 1, 100)
        resp = client.put("/api/portfolio/bitcoin", headers=auth, json={"buyPrice": 80})
        assert resp.status_code == 200
        body = client.get("/api/portfolio", headers=auth).json()
        assert body["portfolio"][0]["buyPrice"] == 80
        assert body["portfolio"][0]["amount"] == 1

    def test_edit_missing_position(self, client, auth):
        resp = client.put("/api/portfolio/bitcoin", headers=auth, json={"amount": 3})
        assert resp.status_code == 404

    def test_remove_is_idempotent(self, client, auth):
        self._add(client, auth, 1, 100)
        assert client.delete("/api/portfolio/bitcoin", headers=auth).status_code == 200
        assert client.delete("/api/portfolio/bitcoin", headers=auth).status_code == 200
        assert client.get("/api/portfolio", headers=auth).json()["portfolio"] == []

    def test_upstream_failure(self, client, auth, prices):
        self._add(client, auth, 1, 100)
        prices.fail = True
        resp = client.get("/api/portfolio", headers=auth)
        assert resp.status_code == 502
        assert resp.json() == {"message": "Price provider unavailable"}

    def test_users_are_isolated(self, client, auth):
        self._add(client, auth, 1, 100)
        other = client.post("/api/auth/register", json={"name": "Eve", "email": "eve@example.com"}).json()
        headers = {"Authorization": f"Bearer {other['token']}"}
        assert client.get("/api/portfolio", headers=headers).json()["portfolio"] == []


class TestAlerts:

    def _create(self, client, auth, target=50000, condition="above"):
        return client.post("/api/alerts", headers=auth, json={
            "coinId": "bitcoin", "symbol": "btc", "targetPrice": target, "condition": condition,
        })

    def test_create_and_list(self, client, auth):
        assert self._create(client, auth).status_code == 200
        alerts = client.get("/api/alerts", headers=auth).json()
        assert len(alerts) == 1
        assert alerts[0]["coinId"] == "bitcoin"
        assert alerts[0]["condition"] == "above"
        assert alerts[0]["isActive"] is True
        assert alerts[0]["id"]

    def test_duplicate_rejected(self, client, auth):
        self._create(client, auth)
        resp = self._create(client, auth)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Alert already exists for this price target"

    @pytest.mark.parametrize("body", [
        {"targetPrice": 0, "condition": "above"},
        {"targetPrice": 100, "condition": "sideways"},
    ])
    def test_invalid_alert(self, client, auth, body):
        resp = client.post("/api/alerts", headers=auth, json={"coinId": "bitcoin", "symbol": "btc", **body})
        assert resp.status_code == 400

    def test_update_and_delete(self, client, auth):
        self._create(client, auth)
        alert_id = client.get("/api/alerts", headers=auth).json()[0]["id"]

        resp = client.put(f"/api/alerts/{alert_id}", headers=auth, json={"isActive": False})
        assert resp.status_code == 200
        alert = client.get("/api/alerts", headers=auth).json()[0]
        assert alert["isActive"] is False
        assert alert["targetPrice"] == 50000

        assert client.delete(f"/api/alerts/{alert_id}", headers=auth).status_code == 200
        assert client.get("/api/alerts", headers=auth).json() == []
        assert client.delete(f"/api/alerts/{alert_id}", headers=auth).status_code == 404
        assert client.put(f"/api/alerts/{alert_id}", headers=auth, json={"isActive": True}).status_code == 404

    def test_triggered(self, client, auth, prices):
        self._create(client, auth, target=50000, condition="above")
        self._create(client, auth, target=30000, condition="below")
        prices.quotes_by_id["bitcoin"] = Quote(price=50000)

        hits = client.get("/api/alerts/triggered", headers=auth).json()
        assert [(h["condition"], h["currentPrice"]) for h in hits] == [("above", 50000)]
        # evaluation does not deactivate
        assert all(a["isActive"] for a in client.get("/api/alerts", headers=auth).json())


class TestPayments:

    def _verify(self, client, auth, amount, signature=None):
        signature = signature or sign("order_1", "pay_1", RAZORPAY_SECRET)
        return client.post("/api/payments/verify", headers=auth, json={
            "orderId": "order_1", "paymentId": "pay_1", "signature": signature, "amount": amount,
        })

    def test_create_order(self, client, auth):
        resp = client.post("/api/payments/create-order", headers=auth, json={"amount": 10})
        assert resp.status_code == 200
        body = resp.json()
        assert body["key"] == "rzp_test_key"
        assert body["order"]["amount"] == 1000
        assert body["order"]["currency"] == "INR"

    def test_create_order_rejects_small_amount(self, client, auth):
        resp = client.post("/api/payments/create-order", headers=auth, json={"amount": 0.5})
        assert resp.status_code == 400

    def test_verified_top_up_credits_wallet(self, client, auth):
        resp = self._verify(client, auth, 100)
        assert resp.status_code == 200
        assert resp.json()["wallet"] == {"balance": 100.0, "currency": "INR"}
        assert client.get("/api/payments/wallet", headers=auth).json()["balance"] == 100

    def test_replayed_payment_not_credited_again(self, client, auth):
        assert self._verify(client, auth, 100).status_code == 200
        resp = self._verify(client, auth, 5000)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Payment already processed"
        assert client.get("/api/payments/wallet", headers=auth).json()["balance"] == 100

    def test_bad_signature_does_not_credit(self, client, auth):
        resp = self._verify(client, auth, 100, signature="forged")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid payment signature"
        assert client.get("/api/payments/wallet", headers=auth).json()["balance"] == 0

    def test_withdraw(self, client, auth):
        self._verify(client, auth, 100)
        resp = client.post("/api/payments/withdraw", headers=auth, json={"amount": 150})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Insufficient wallet balance"
        assert client.get("/api/payments/wallet", headers=auth).json()["balance"] == 100

        resp = client.post("/api/payments/withdraw", headers=auth, json={"amount": 50})
        assert resp.status_code == 200
        assert resp.json()["wallet"]["balance"] == 50


class TestMarketData:

    def test_prices_pass_through(self, client, prices):
        resp = client.get("/api/crypto/prices", params={"per_page": 10, "vs_currency": "eur"})
        assert resp.status_code == 200
        assert resp.json()[0]["id"] == "bitcoin"
        assert prices.calls[-1] == ("markets", "eur", "market_cap_desc", 10, 1)

    def test_search_requires_query(self, client):
        assert client.get("/api/crypto/search").status_code == 400
        assert client.get("/api/crypto/search", params={"query": "bit"}).status_code == 200

    def test_public_routes(self, client):
        for path in ["/api/crypto/coin/bitcoin", "/api/crypto/trending", "/api/crypto/global",
                     "/api/crypto/overview"]:
            assert client.get(path).status_code == 200

    def test_upstream_failure(self, client, prices):
        prices.fail = True
        assert client.get("/api/crypto/prices").status_code == 502
