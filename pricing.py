"""CoinGecko price source."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

import requests

from errors import NotFoundError, UpstreamUnavailable
from portfolio import Quote

logger = logging.getLogger(__name__)

COINGECKO_BASE = "https://api.coingecko.com/api/v3"


class CoinGecko:
    """
    Thin client over the public CoinGecko API.

    Every call is bounded by ``timeout`` seconds. Network errors, non-2xx
    responses and unparseable bodies all surface as UpstreamUnavailable;
    nothing is retried here.
    """

    def __init__(self, base_url: str = COINGECKO_BASE, timeout: float = 15.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("CoinGecko request to %s failed: %s", path, e)
            raise UpstreamUnavailable("Price provider unavailable")
        if r.status_code == 404:
            raise NotFoundError("Coin not found")
        try:
            r.raise_for_status()
            return r.json()
        except (requests.HTTPError, ValueError) as e:
            logger.error("CoinGecko %s returned an unusable response: %s", path, e)
            raise UpstreamUnavailable("Price provider unavailable")

    # --------- Pass-through market data ---------

    def markets(self, vs_currency: str = "usd", order: str = "market_cap_desc",
                per_page: int = 100, page: int = 1) -> List[Dict[str, Any]]:
        params = {
            "vs_currency": vs_currency,
            "order": order,
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
            "price_change_percentage": "1h,24h,7d",
        }
        return self._get("/coins/markets", params)

    def coin(self, coin_id: str, vs_currency: str = "usd") -> Dict[str, Any]:
        data = self._get(f"/coins/{coin_id}", {
            "localization": "false",
            "tickers": "false",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
            "sparkline": "false",
        })
        market = data.get("market_data") or {}

        def in_currency(key: str):
            return (market.get(key) or {}).get(vs_currency)

        return {
            "id": data.get("id"),
            "symbol": data.get("symbol"),
            "name": data.get("name"),
            "image": data.get("image"),
            "current_price": in_currency("current_price"),
            "market_cap": in_currency("market_cap"),
            "total_volume": in_currency("total_volume"),
            "price_change_percentage_24h": market.get("price_change_percentage_24h"),
            "price_change_percentage_7d": in_currency("price_change_percentage_7d_in_currency"),
            "high_24h": in_currency("high_24h"),
            "low_24h": in_currency("low_24h"),
            "description": (data.get("description") or {}).get("en", ""),
        }

    def search(self, query: str) -> Dict[str, Any]:
        return self._get("/search", {"query": query})

    def trending(self) -> Dict[str, Any]:
        return self._get("/search/trending")

    def global_stats(self) -> Dict[str, Any]:
        return self._get("/global")

    def market_overview(self, vs_currency: str = "usd", top: int = 10) -> Dict[str, Any]:
        """Global stats and the top coins, fetched in parallel."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            global_future = pool.submit(self.global_stats)
            top_future = pool.submit(self.markets, vs_currency, "market_cap_desc", top, 1)
            return {"global": global_future.result(), "top": top_future.result()}

    # --------- Quotes for valuation ---------

    def quotes(self, coin_ids: Iterable[str], vs_currency: str = "usd") -> Dict[str, Quote]:
        """
        Spot price and 24h change per coin id in ``vs_currency``.
        Coins CoinGecko does not know are simply absent from the result.
        """
        ids = sorted({c for c in coin_ids if c})
        if not ids:
            return {}
        vs = vs_currency.lower()
        data = self._get("/simple/price", {
            "ids": ",".join(ids),
            "vs_currencies": vs,
            "include_24hr_change": "true",
        })
        quotes = {}
        for coin_id, values in data.items():
            if vs not in (values or {}):
                continue
            quotes[coin_id] = Quote(
                price=float(values[vs] or 0),
                change_24h=float(values.get(f"{vs}_24h_change") or 0),
            )
        return quotes
