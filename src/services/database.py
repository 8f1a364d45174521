import aiosqlite
import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from core.entities import FishRecord, GenerationRequest
from core.errors import PersistenceError, SourceQueryError
from ingestion.base import NewsItem
from services.storage import (
    ArtifactStore,
    NewsStore,
    PersistenceAdapter,
    SourceProvider,
    decode_queue_records,
)

logger = logging.getLogger(__name__)


class Database(PersistenceAdapter, SourceProvider, NewsStore, ArtifactStore):
    def __init__(self, path: str):
        self.path = path
        self._initialized = False

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await aiosqlite.connect(self.path)
        await conn.execute("PRAGMA journal_mode=WAL;")
        await conn.execute("PRAGMA foreign_keys=ON;")
        try:
            yield conn
        finally:
            await conn.close()

    async def execute(self, query: str, params: tuple = ()) -> None:
        async with self.connect() as conn:
            await conn.execute(query, params)
            await conn.commit()

    async def fetchall(self, query: str, params: tuple = ()):
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchall()

    async def init_tables(self) -> None:
        """Create tables for news, dedup state, the generation queue and fish."""
        if self._initialized:
            return

        db_dir = os.path.dirname(self.path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        async with self.connect() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS news_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL,
                    headline TEXT NOT NULL,
                    content TEXT,
                    url TEXT,
                    category TEXT NOT NULL,
                    keywords TEXT,
                    sentiment REAL,
                    published_at TIMESTAMP,
                    collected_at TIMESTAMP NOT NULL,
                    UNIQUE (source, headline)
                )
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_news_items_collected_at ON news_items(collected_at)
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS used_sources (
                    source_id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS generation_queue (
                    position INTEGER PRIMARY KEY,
                    payload TEXT NOT NULL
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS fish (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    rarity TEXT NOT NULL,
                    generation_reason TEXT,
                    degraded INTEGER DEFAULT 0,
                    payload TEXT NOT NULL,
                    generated_at TIMESTAMP NOT NULL
                )
            """)
            await conn.commit()

        self._initialized = True
        logger.info("Database tables initialized")

    # ----------------------------
    # Persistence of coordinator state
    # ----------------------------
    async def save_used_ids(self, used_ids: List[str]) -> None:
        await self.init_tables()
        try:
            async with self.connect() as conn:
                await conn.execute("DELETE FROM used_sources")
                await conn.executemany(
                    "INSERT OR REPLACE INTO used_sources (source_id, position) VALUES (?, ?)",
                    [(source_id, position) for position, source_id in enumerate(used_ids)],
                )
                await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to save used source ids: {e}") from e

    async def load_used_ids(self) -> List[str]:
        await self.init_tables()
        try:
            rows = await self.fetchall(
                "SELECT source_id FROM used_sources ORDER BY position"
            )
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to load used source ids: {e}") from e
        return [row[0] for row in rows if isinstance(row[0], str) and row[0]]

    async def save_queue(self, queue: List[GenerationRequest]) -> None:
        await self.init_tables()
        try:
            async with self.connect() as conn:
                await conn.execute("DELETE FROM generation_queue")
                await conn.executemany(
                    "INSERT INTO generation_queue (position, payload) VALUES (?, ?)",
                    [
                        (position, json.dumps(request.to_record()))
                        for position, request in enumerate(queue)
                    ],
                )
                await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to save generation queue: {e}") from e

    async def load_queue(self) -> List[GenerationRequest]:
        await self.init_tables()
        try:
            rows = await self.fetchall(
                "SELECT position, payload FROM generation_queue ORDER BY position"
            )
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to load generation queue: {e}") from e

        records = []
        for position, payload in rows:
            try:
                record = json.loads(payload)
            except (TypeError, ValueError):
                logger.warning(f"Skipping undecodable queue row at position {position}")
                continue
            if not isinstance(record, dict):
                logger.warning(f"Skipping non-object queue row at position {position}")
                continue
            records.append(record)

        return decode_queue_records(records)

    # ----------------------------
    # Source material
    # ----------------------------
    async def save_news(self, item: NewsItem) -> bool:
        await self.init_tables()
        try:
            async with self.connect() as conn:
                cursor = await conn.execute(
                    """
                    INSERT OR IGNORE INTO news_items
                    (source, headline, content, url, category, keywords, sentiment, published_at, collected_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        item.source,
                        item.headline,
                        item.content,
                        item.url,
                        item.category,
                        json.dumps(item.keywords),
                        item.sentiment,
                        item.published_at.isoformat() if item.published_at else None,
                        item.collected_at.isoformat(),
                    ),
                )
                await conn.commit()
                return cursor.rowcount > 0
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to save news item: {e}") from e

    async def recent_items(self, kind: str, limit: int) -> List[NewsItem]:
        if kind != "news":
            return []
        await self.init_tables()
        try:
            rows = await self.fetchall(
                """SELECT source, headline, content, url, category, keywords,
                          sentiment, published_at, collected_at
                   FROM news_items
                   ORDER BY collected_at DESC, id DESC
                   LIMIT ?""",
                (limit,),
            )
        except aiosqlite.Error as e:
            raise SourceQueryError(f"Failed to query recent news: {e}") from e

        items = []
        for row in rows:
            item = self._decode_news_row(row)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _decode_news_row(row) -> Optional[NewsItem]:
        """Decode one news_items row, or None (logged) when it is malformed."""
        source, headline, content, url, category, keywords, sentiment, published, collected = row
        try:
            return NewsItem(
                source=source,
                headline=headline,
                content=content or "",
                url=url or "",
                category=category,
                keywords=json.loads(keywords) if keywords else [],
                sentiment=sentiment or 0.0,
                published_at=datetime.fromisoformat(published) if published else None,
                collected_at=datetime.fromisoformat(collected),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed news row '{str(headline)[:30]}' from {source}: {e}")
            return None

    # ----------------------------
    # Generated fish
    # ----------------------------
    async def save_artifact(self, record: FishRecord) -> int:
        await self.init_tables()
        payload = {
            "description": record.description,
            "appearance": record.appearance,
            "color": record.color,
            "diet": record.diet,
            "habitat": record.habitat,
            "effect": record.effect,
            "favorite_weather": record.favorite_weather,
            "existence_reason": record.existence_reason,
            "length_m": record.length_m,
            "weight_kg": record.weight_kg,
            "catch_chance": record.catch_chance,
            "value": record.value,
            "used_articles": record.used_articles,
        }
        try:
            async with self.connect() as conn:
                cursor = await conn.execute(
                    """
                    INSERT INTO fish (name, rarity, generation_reason, degraded, payload, generated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.name,
                        record.rarity,
                        record.generation_reason,
                        int(record.degraded),
                        json.dumps(payload, default=str),
                        record.generated_at.isoformat(),
                    ),
                )
                await conn.commit()
                return cursor.lastrowid
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to save fish: {e}") from e
