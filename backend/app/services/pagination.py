from __future__ import annotations

import logging
from dataclasses import dataclass

from backend.app.services.platform_collaborator import ListingPage, PlatformCollaborator
from backend.app.services.platform_errors import summarize_exception_message
from backend.app.services.raw_node import RawNode

LOGGER = logging.getLogger("tubelens.pagination")


@dataclass(frozen=True)
class WalkedPage:
    page_number: int
    items: list[RawNode]
    has_more: bool
    exhausted: bool


class PaginationWalker:
    """Walks a listing's continuation chain.

    The walk has two states. While a non-empty page is held, a continuation
    fetch that yields at least one item moves to the next page. A missing
    cursor, an empty page (the first one included), a missing continuation page
    or a failed fetch ends the walk for good.
    """

    def __init__(self, collaborator: PlatformCollaborator) -> None:
        self._collaborator = collaborator

    def advance(
        self,
        first_page: ListingPage,
        target_page: int,
        page_size: int | None = None,
    ) -> WalkedPage:
        target = max(1, target_page)
        current = first_page
        page_number = 1
        exhausted = False

        while page_number < target:
            next_page = self._next_page(current, page_number=page_number)
            if next_page is None:
                exhausted = True
                break
            current = next_page
            page_number += 1

        items = [RawNode.wrap(item) for item in current.items]
        if page_size is not None:
            items = items[: max(0, page_size)]

        if page_number < target:
            LOGGER.info(
                "listing target page clamped requested_page=%s reached_page=%s",
                target,
                page_number,
            )
        continuable = current.has_continuation and bool(current.items)
        return WalkedPage(
            page_number=page_number,
            items=items,
            has_more=not exhausted and continuable,
            exhausted=exhausted or not continuable,
        )

    def fetch_all(self, first_page: ListingPage) -> list[RawNode]:
        items = [RawNode.wrap(item) for item in first_page.items]
        current = first_page
        page_number = 1
        while True:
            next_page = self._next_page(current, page_number=page_number)
            if next_page is None:
                break
            items.extend(RawNode.wrap(item) for item in next_page.items)
            current = next_page
            page_number += 1

        LOGGER.debug("listing walked to exhaustion pages=%s items=%s", page_number, len(items))
        return items

    def _next_page(self, page: ListingPage, *, page_number: int) -> ListingPage | None:
        if not page.has_continuation or not page.items:
            return None
        try:
            next_page = self._collaborator.fetch_listing_continuation(page)
        except Exception as exc:
            LOGGER.warning(
                "listing continuation failed; treating listing as exhausted after_page=%s error=%s",
                page_number,
                summarize_exception_message(exc),
            )
            return None
        if next_page is None or len(next_page.items) == 0:
            return None
        return next_page
