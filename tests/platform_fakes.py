from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from backend.app.services.platform_collaborator import ListingPage
from backend.app.services.platform_errors import PlatformNotFoundError

FIXED_NOW = datetime(2024, 3, 15, tzinfo=UTC)


class FakeCollaborator:
    """In-memory collaborator that records every call it receives.

    Listings are stored as a list of page batches keyed by the `listing_key`
    found on the collection or tab node; cursors are `(key, page_index)` pairs.
    """

    def __init__(self) -> None:
        self.items: dict[str, Any] = {}
        self.item_failures: dict[str, Exception] = {}
        self.collections: dict[str, Any] = {}
        self.tabs: dict[str, Any] = {}
        self.listings: dict[str, list[list[Any]]] = {}
        self.continuation_failures: dict[tuple[str, int], Exception] = {}
        self.search_results: dict[str, list[Any]] = {}
        self.search_failure: Exception | None = None
        self.calls: list[tuple[str, object]] = []

    def fetch_item(self, item_id: str) -> Any:
        self.calls.append(("fetch_item", item_id))
        failure = self.item_failures.get(item_id)
        if failure is not None:
            raise failure
        if item_id not in self.items:
            raise PlatformNotFoundError(f"Item not found: {item_id}", entity_id=item_id)
        return self.items[item_id]

    def fetch_collection(self, collection_id: str) -> Any:
        self.calls.append(("fetch_collection", collection_id))
        if collection_id not in self.collections:
            raise PlatformNotFoundError(
                f"Collection not found: {collection_id}",
                entity_id=collection_id,
            )
        return self.collections[collection_id]

    def fetch_collection_tab(self, collection: Any, tab_name: str) -> Any | None:
        _ = collection
        self.calls.append(("fetch_collection_tab", tab_name))
        return self.tabs.get(tab_name)

    def fetch_listing_first_page(self, collection_or_tab: Any) -> ListingPage:
        key = collection_or_tab["listing_key"]
        self.calls.append(("fetch_listing_first_page", key))
        return self._page(key, 0)

    def fetch_listing_continuation(self, page: ListingPage) -> ListingPage | None:
        key, index = page.continuation_cursor
        self.calls.append(("fetch_listing_continuation", (key, index)))
        failure = self.continuation_failures.get((key, index))
        if failure is not None:
            raise failure
        if index >= len(self.listings.get(key, [])):
            return None
        return self._page(key, index)

    def fetch_search(self, query: str) -> ListingPage:
        self.calls.append(("fetch_search", query))
        if self.search_failure is not None:
            raise self.search_failure
        return ListingPage(items=list(self.search_results.get(query, [])))

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def _page(self, key: str, index: int) -> ListingPage:
        pages = self.listings.get(key, [])
        items = pages[index] if index < len(pages) else []
        cursor = (key, index + 1) if index + 1 < len(pages) else None
        return ListingPage(items=list(items), continuation_cursor=cursor)


def make_row(
    item_id: str,
    *,
    title: str | None = None,
    published: str | None = None,
    view_count: str | None = None,
    duration: str | None = None,
    row_type: str = "Video",
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "type": row_type,
        "id": item_id,
        "title": {"text": title or f"Row title {item_id}"},
        "author": {"id": "UCcurrentchannel00000001", "name": "Row Channel"},
        "thumbnails": [
            {"url": f"https://img.example/{item_id}/small.jpg", "width": 120},
            {"url": f"https://img.example/{item_id}/large.jpg", "width": 480},
        ],
        "description_snippet": {"runs": [{"text": "Snippet for "}, {"text": item_id}]},
    }
    if published is not None:
        row["published"] = {"text": published}
    if view_count is not None:
        row["view_count"] = {"text": view_count}
    if duration is not None:
        row["duration"] = {"text": duration}
    return row


def make_detail(item_id: str, *, channel_id: str = "UCcurrentchannel00000001") -> dict[str, Any]:
    return {
        "basic_info": {
            "id": item_id,
            "title": f"Detail title {item_id}",
            "channel_id": channel_id,
            "author": "Detail Channel",
            "view_count": 1_000,
            "duration": 321,
            "short_description": f"Short description {item_id}",
            "thumbnail": [{"url": f"https://img.example/{item_id}/detail.jpg", "width": 1280}],
        },
        "microformat": {"publish_date": "2024-01-10T08:30:00-05:00"},
        "secondary_info": {"description": {"text": f"Full description {item_id}"}},
    }


def make_listing_rows(prefix: str, count: int) -> list[dict[str, Any]]:
    return [make_row(f"{prefix}{index:02d}") for index in range(count)]
