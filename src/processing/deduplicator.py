from collections import OrderedDict
from typing import Iterable, List, Optional


class Deduplicator:
    """
    Tracks which source items have already been spent on a generation.
    Identifiers are never un-marked; when max_entries is set the least
    recently marked identifiers are evicted once the cap is exceeded.

    Not thread-safe on its own: callers hold the coordinator lock.
    """

    def __init__(self, max_entries: Optional[int] = 10000):
        self.max_entries = max_entries
        self._used: "OrderedDict[str, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._used)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._used

    def mark_used(self, source_id: str) -> None:
        if source_id in self._used:
            self._used.move_to_end(source_id)
            return
        self._used[source_id] = None
        self._evict()

    def mark_many(self, source_ids: Iterable[str]) -> None:
        for source_id in source_ids:
            self.mark_used(source_id)

    def is_used(self, source_id: str) -> bool:
        return source_id in self._used

    def snapshot(self) -> List[str]:
        """Used ids, least recently marked first."""
        return list(self._used)

    def restore(self, source_ids: Iterable[str]) -> None:
        """Replace contents with a persisted snapshot, oldest first. Called once at startup."""
        self._used = OrderedDict((str(s), None) for s in source_ids)
        self._evict()

    def _evict(self) -> None:
        if self.max_entries is None:
            return
        while len(self._used) > self.max_entries:
            self._used.popitem(last=False)
