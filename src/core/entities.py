from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.errors import MalformedPersistedStateError
from ingestion.base import CryptoPrice, GoldPrice, NewsItem, OilPrice, WeatherInfo


@dataclass(frozen=True)
class GenerationRequest:
    """
    A queued instruction to generate one fish.
    Reason is a human-readable provenance string; source_ids lists the
    news items the request was built from (empty for manual triggers).
    """
    reason: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_ids: tuple = ()

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reason": self.reason,
            "enqueued_at": self.enqueued_at.isoformat(),
            "source_ids": list(self.source_ids),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "GenerationRequest":
        try:
            reason = record["reason"]
            if not isinstance(reason, str) or not reason:
                raise ValueError("empty reason")
            enqueued_at = datetime.fromisoformat(record["enqueued_at"])
            if enqueued_at.tzinfo is None:
                enqueued_at = enqueued_at.replace(tzinfo=timezone.utc)
            source_ids = tuple(str(s) for s in record.get("source_ids") or ())
            return cls(
                reason=reason,
                id=str(record.get("id") or uuid.uuid4().hex),
                enqueued_at=enqueued_at,
                source_ids=source_ids,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPersistedStateError(
                f"Cannot decode generation request: {e}", record=record
            ) from e


@dataclass
class ContextSnapshot:
    """
    Most recent observed value of each signal kind.
    Read at invocation time, so a request is generated with the freshest
    context rather than what was present when it was enqueued.
    """
    weather: Optional[WeatherInfo] = None
    crypto: Optional[CryptoPrice] = None
    gold: Optional[GoldPrice] = None
    oil: Optional[OilPrice] = None
    primary_news: Optional[NewsItem] = None
    merged_news: List[NewsItem] = field(default_factory=list)

    def copy(self) -> "ContextSnapshot":
        return ContextSnapshot(
            weather=self.weather,
            crypto=self.crypto,
            gold=self.gold,
            oil=self.oil,
            primary_news=self.primary_news,
            merged_news=list(self.merged_news),
        )

    def sources_available(self) -> int:
        """Number of non-news signals present."""
        return sum(
            1 for value in (self.weather, self.crypto, self.gold, self.oil)
            if value is not None
        )

    def news_items(self) -> List[NewsItem]:
        items = [self.primary_news] if self.primary_news else []
        return items + list(self.merged_news)


@dataclass(frozen=True)
class FishRecord:
    """
    Final, storable fish: LLM description plus programmatic rolls.
    """
    name: str
    description: str
    appearance: str
    color: str
    diet: str
    habitat: str
    effect: str
    favorite_weather: str
    existence_reason: str
    rarity: str
    length_m: float
    weight_kg: float
    catch_chance: float
    value: float
    generation_reason: str
    degraded: bool = False
    used_articles: List[Dict[str, Any]] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
