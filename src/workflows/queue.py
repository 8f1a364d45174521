from collections import deque
from typing import Deque, Iterable, List, Optional

from core.entities import GenerationRequest


class GenerationQueue:
    """
    FIFO of pending generation requests.
    Mutated only while holding the coordinator lock.
    """

    def __init__(self, requests: Optional[Iterable[GenerationRequest]] = None):
        self._items: Deque[GenerationRequest] = deque(requests or ())

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def enqueue(self, request: GenerationRequest) -> int:
        self._items.append(request)
        return len(self._items)

    def pop(self) -> Optional[GenerationRequest]:
        if not self._items:
            return None
        return self._items.popleft()

    def peek(self) -> Optional[GenerationRequest]:
        return self._items[0] if self._items else None

    def snapshot(self) -> List[GenerationRequest]:
        return list(self._items)

    def restore(self, requests: Iterable[GenerationRequest]) -> None:
        self._items = deque(requests)
