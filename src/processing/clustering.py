from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ingestion.base import NewsItem


def truncate_text(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def group_by_category(items: List[NewsItem]) -> Dict[str, List[NewsItem]]:
    """
    Groups items by category, keeping store order inside each group.
    Categories appear in the order their first item was seen.
    """
    groups: Dict[str, List[NewsItem]] = defaultdict(list)

    for item in items:
        groups[item.category].append(item)

    return dict(groups)


@dataclass(frozen=True)
class GroupSelection:
    """
    Items chosen for a single generation request.
    The first item is the primary news, the rest are merged into its context.
    """
    category: str
    items: List[NewsItem]
    reason: str

    @property
    def merged(self) -> bool:
        return len(self.items) > 1

    @property
    def source_ids(self) -> List[str]:
        return [item.source_id for item in self.items]


class ThematicGrouper:
    """
    Picks unused news to spend on the next fish.

    Prefers the category with the most unused items (at least
    min_category_merge_count of them) and merges up to max_merge_items of
    its headlines into one request. Falls back to a single unused item.
    """

    def __init__(self, min_category_merge_count: int = 2, max_merge_items: int = 3):
        self.min_category_merge_count = min_category_merge_count
        self.max_merge_items = max_merge_items

    def select(
        self,
        items: List[NewsItem],
        is_used: Callable[[str], bool],
    ) -> Optional[GroupSelection]:
        # The same headline can show up twice in a window; keep the first
        unused: List[NewsItem] = []
        seen = set()
        for item in items:
            if item.source_id in seen or is_used(item.source_id):
                continue
            seen.add(item.source_id)
            unused.append(item)

        if not unused or self.max_merge_items < 1:
            return None

        groups = group_by_category(unused)

        best_category: Optional[str] = None
        max_items = 0
        for category, group in groups.items():
            if len(group) >= self.min_category_merge_count and len(group) > max_items:
                best_category = category
                max_items = len(group)

        if best_category is not None:
            selected = groups[best_category][:self.max_merge_items]
            headlines = " + ".join(truncate_text(item.headline, 20) for item in selected)
            return GroupSelection(
                category=best_category,
                items=selected,
                reason=f"merged news [{best_category}]: {headlines}",
            )

        item = unused[0]
        return GroupSelection(
            category=item.category,
            items=[item],
            reason=f"news [{item.category}]: {truncate_text(item.headline, 40)}",
        )
