"""
Base classes for signal collection
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WeatherInfo(BaseModel):
    condition: str
    location: str = ""
    temp_c: float
    humidity: int = 0
    wind_kph: float = 0.0
    is_extreme: bool = False


class CryptoPrice(BaseModel):
    symbol: str = "BTC"
    price_usd: float
    change_24h: float = 0.0
    volume_24h: float = 0.0


class GoldPrice(BaseModel):
    price_usd: float
    change_24h: float = 0.0


class OilPrice(BaseModel):
    price_usd: float
    change_24h: float = 0.0


class NewsItem(BaseModel):
    """
    A single news headline. This is the source material that gets spent
    by fish generation, identified by source + headline.
    """
    headline: str
    source: str
    content: str = ""
    url: str = ""
    category: str = "general"
    keywords: List[str] = Field(default_factory=list)
    sentiment: float = 0.0  # -1.0 (negative) to 1.0 (positive)
    published_at: Optional[datetime] = None
    collected_at: datetime = Field(default_factory=_utcnow)

    @property
    def source_id(self) -> str:
        return f"{self.source}:{self.headline}"


SignalValue = Union[WeatherInfo, CryptoPrice, GoldPrice, OilPrice, List[NewsItem]]


class SignalEvent(BaseModel):
    """
    One observation pushed by a collector into the coordinator.
    """
    kind: str  # weather, crypto, gold, oil, news
    value: SignalValue
    source: str
    timestamp: datetime = Field(default_factory=_utcnow)


class SignalCollector(ABC):
    """
    Base interface for all signal collectors.
    """

    kind: str
    name: str

    @abstractmethod
    async def collect(self) -> SignalEvent:
        """
        Fetch the current value of this signal.
        Raises CollectionError when nothing usable could be fetched.
        """
        raise NotImplementedError
