from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


def _default_listing_items() -> list[Any]:
    return []


@dataclass(frozen=True)
class ListingPage:
    items: Sequence[Any] = field(default_factory=_default_listing_items)
    continuation_cursor: Any | None = None

    @property
    def has_continuation(self) -> bool:
        if self.continuation_cursor is None:
            return False
        if isinstance(self.continuation_cursor, str):
            return bool(self.continuation_cursor.strip())
        return True


class PlatformCollaborator(Protocol):
    """Upstream access capability owned by the caller.

    Implementations raise ``PlatformNotFoundError`` / ``PlatformUnavailableError``
    for missing or blocked entities. Any other exception is treated as a
    transport failure by the service.
    """

    def fetch_item(self, item_id: str) -> Any:
        ...

    def fetch_collection(self, collection_id: str) -> Any:
        ...

    def fetch_collection_tab(self, collection: Any, tab_name: str) -> Any | None:
        ...

    def fetch_listing_first_page(self, collection_or_tab: Any) -> ListingPage:
        ...

    def fetch_listing_continuation(self, page: ListingPage) -> ListingPage | None:
        ...

    def fetch_search(self, query: str) -> ListingPage:
        ...
