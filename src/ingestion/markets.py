"""
Market prices: Bitcoin (CoinGecko), gold (metalpriceapi) and WTI crude oil (EIA)
"""
import logging
import math
from typing import Any, Dict, Optional

import httpx

from core.errors import CollectionError
from ingestion.base import CryptoPrice, GoldPrice, OilPrice, SignalCollector, SignalEvent
from services.logging import signal_extra

logger = logging.getLogger(__name__)

DEFAULT_GOLD_PRICE = 1800.0
MIN_PLAUSIBLE_GOLD_PRICE = 100.0


def sanitize_gold_price(price: float) -> float:
    """Replace implausible gold prices (NaN, inf, below 100) with a sane default."""
    if math.isnan(price) or math.isinf(price) or price < MIN_PLAUSIBLE_GOLD_PRICE:
        logger.warning(f"Implausible gold price {price}, using {DEFAULT_GOLD_PRICE}", extra=signal_extra("gold"))
        return DEFAULT_GOLD_PRICE
    return price


def percent_change(current: float, previous: Optional[float]) -> float:
    if not previous:
        return 0.0
    return (current - previous) / previous * 100.0


async def _get_json(url: str, timeout: float, kind: str, **kwargs) -> Any:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(url, **kwargs)
            resp.raise_for_status()
            return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        raise CollectionError(f"{kind} request failed: {e}", kind=kind) from e


class CryptoCollector(SignalCollector):
    URL = "https://api.coingecko.com/api/v3/coins/markets"

    kind = "crypto"

    def __init__(self, coin_id: str = "bitcoin", timeout: float = 10.0):
        self.coin_id = coin_id
        self.timeout = timeout
        self.name = "coingecko"

    def parse(self, data: Any) -> CryptoPrice:
        if not isinstance(data, list) or not data:
            raise CollectionError("CoinGecko returned no market data", kind=self.kind)
        coin = data[0]
        try:
            return CryptoPrice(
                symbol=str(coin.get("symbol", "btc")).upper(),
                price_usd=float(coin["current_price"]),
                change_24h=float(coin.get("price_change_percentage_24h") or 0.0),
                volume_24h=float(coin.get("total_volume") or 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CollectionError(f"Unexpected CoinGecko payload: {e}", kind=self.kind) from e

    async def collect(self) -> SignalEvent:
        data = await _get_json(
            self.URL,
            self.timeout,
            self.kind,
            params={"vs_currency": "usd", "ids": self.coin_id, "per_page": 1, "page": 1},
        )
        return SignalEvent(kind=self.kind, value=self.parse(data), source=self.name)


class GoldCollector(SignalCollector):
    URL = "https://api.metalpriceapi.com/v1/convert"

    kind = "gold"

    def __init__(self, api_key: str, timeout: float = 10.0):
        if not api_key:
            raise ValueError("Gold collector requires METALPRICE_API_KEY")
        self.api_key = api_key
        self.timeout = timeout
        self.name = "metalpriceapi"
        self.last_price: Optional[float] = None

    def parse(self, data: Dict[str, Any]) -> GoldPrice:
        if not isinstance(data, dict) or not data.get("success"):
            raise CollectionError("metalpriceapi returned success=false", kind=self.kind)
        try:
            price = sanitize_gold_price(float(data["result"]))
        except (KeyError, TypeError, ValueError) as e:
            raise CollectionError(f"Unexpected metalpriceapi payload: {e}", kind=self.kind) from e

        change = percent_change(price, self.last_price)
        self.last_price = price
        return GoldPrice(price_usd=price, change_24h=change)

    async def collect(self) -> SignalEvent:
        data = await _get_json(
            self.URL,
            self.timeout,
            self.kind,
            params={"from": "XAU", "to": "USD", "amount": 1},
            headers={"X-API-KEY": self.api_key},
        )
        return SignalEvent(kind=self.kind, value=self.parse(data), source=self.name)


class OilCollector(SignalCollector):
    URL = "https://api.eia.gov/v2/seriesid/PET.RWTC.D"

    kind = "oil"

    def __init__(self, api_key: str, timeout: float = 10.0):
        if not api_key:
            raise ValueError("Oil collector requires EIA_API_KEY")
        self.api_key = api_key
        self.timeout = timeout
        self.name = "eia"

    def parse(self, data: Dict[str, Any]) -> OilPrice:
        try:
            rows = data["response"]["data"]
            current = float(rows[0]["value"])
            previous = float(rows[1]["value"]) if len(rows) > 1 else None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise CollectionError(f"Unexpected EIA payload: {e}", kind=self.kind) from e

        return OilPrice(price_usd=current, change_24h=percent_change(current, previous))

    async def collect(self) -> SignalEvent:
        data = await _get_json(
            self.URL,
            self.timeout,
            self.kind,
            params={
                "api_key": self.api_key,
                "sort[0][column]": "period",
                "sort[0][direction]": "desc",
                "length": 2,
            },
        )
        return SignalEvent(kind=self.kind, value=self.parse(data), source=self.name)
