"""
Storage interfaces used by the coordinator, plus an in-memory implementation
for tests and for running without a database file.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from core.entities import FishRecord, GenerationRequest
from core.errors import MalformedPersistedStateError
from ingestion.base import NewsItem

logger = logging.getLogger(__name__)


class PersistenceAdapter(ABC):
    """
    Durable save/load of the dedup set and the generation queue.
    Always called with a private copy of state, never under the coordinator lock.
    """

    @abstractmethod
    async def save_used_ids(self, used_ids: List[str]) -> None:
        """Persist used ids in eviction order, least recently marked first."""
        raise NotImplementedError

    @abstractmethod
    async def load_used_ids(self) -> List[str]:
        """Return used ids in the order they were saved."""
        raise NotImplementedError

    @abstractmethod
    async def save_queue(self, queue: List[GenerationRequest]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def load_queue(self) -> List[GenerationRequest]:
        """
        Return persisted requests in their original order.
        Malformed records are skipped, never raised.
        """
        raise NotImplementedError


class SourceProvider(ABC):
    """
    Read access to collected source material.
    """

    @abstractmethod
    async def recent_items(self, kind: str, limit: int) -> List[NewsItem]:
        """
        Most recent items first.
        Raises SourceQueryError when the store cannot be queried.
        """
        raise NotImplementedError


class NewsStore(ABC):

    @abstractmethod
    async def save_news(self, item: NewsItem) -> bool:
        """Store a news item. Returns False if it was already stored."""
        raise NotImplementedError


class ArtifactStore(ABC):

    @abstractmethod
    async def save_artifact(self, record: FishRecord) -> Any:
        raise NotImplementedError


def decode_queue_records(records: Iterable[Dict[str, Any]]) -> List[GenerationRequest]:
    """
    Decode persisted queue records, skipping (and logging) malformed ones.
    """
    queue: List[GenerationRequest] = []
    for record in records:
        try:
            queue.append(GenerationRequest.from_record(record))
        except MalformedPersistedStateError as e:
            logger.warning(f"Skipping malformed queue record: {e}")
    return queue


class InMemoryStorage(PersistenceAdapter, SourceProvider, NewsStore, ArtifactStore):
    """
    Keeps everything in process memory. Persisted queue entries are stored as
    plain records so loading goes through the same decoding path as SQLite.
    """

    def __init__(self):
        self.news: List[NewsItem] = []
        self.used_ids: List[str] = []
        self.queue_records: List[Dict[str, Any]] = []
        self.artifacts: List[FishRecord] = []

    async def save_used_ids(self, used_ids: List[str]) -> None:
        self.used_ids = list(used_ids)

    async def load_used_ids(self) -> List[str]:
        return list(self.used_ids)

    async def save_queue(self, queue: List[GenerationRequest]) -> None:
        self.queue_records = [request.to_record() for request in queue]

    async def load_queue(self) -> List[GenerationRequest]:
        return decode_queue_records(self.queue_records)

    async def recent_items(self, kind: str, limit: int) -> List[NewsItem]:
        if kind != "news":
            return []
        ordered = sorted(self.news, key=lambda n: n.collected_at, reverse=True)
        return ordered[:limit]

    async def save_news(self, item: NewsItem) -> bool:
        if any(n.source_id == item.source_id for n in self.news):
            return False
        self.news.append(item)
        return True

    async def save_artifact(self, record: FishRecord) -> int:
        self.artifacts.append(record)
        return len(self.artifacts)
