from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any, TypeVar

from backend.app.config import DEFAULT_THUMBNAIL_URL_TEMPLATE
from backend.app.models.platform_contracts import (
    CollectionListing,
    CollectionPage,
    ItemErrorKind,
    ItemErrorMarker,
    NormalizedCollection,
    NormalizedItem,
    SearchResults,
    ViewCountResult,
    ViewCountTrace,
)
from backend.app.services.field_resolver import (
    COLLECTION_DESCRIPTION_CHAIN,
    COLLECTION_ID_CHAIN,
    COLLECTION_THUMBNAIL_CHAIN,
    COLLECTION_TITLE_CHAIN,
    VIEW_COUNT_CHAIN,
    ItemSources,
    build_normalized_item,
    collection_tab_names,
    resolve,
    row_item_id,
    trace,
)
from backend.app.services.pagination import PaginationWalker
from backend.app.services.platform_collaborator import ListingPage, PlatformCollaborator
from backend.app.services.platform_errors import (
    PlatformNotFoundError,
    PlatformRequestError,
    PlatformServiceError,
    PlatformTransportError,
    PlatformUnavailableError,
    summarize_exception_message,
)
from backend.app.services.raw_node import RawNode
from backend.app.services.secondary_discovery import (
    DEFAULT_SECONDARY_TAB_NAME,
    DEFAULT_STRATEGIES,
    DiscoveryContext,
    DiscoveryStrategy,
    discover_secondary_collection,
)
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tubelens.platform")

ResultT = TypeVar("ResultT")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PlatformService:
    """Answers item, collection, listing and search queries in normalized form.

    The collaborator is a capability owned by the caller. Nothing here keeps
    state between calls, so one service instance can serve concurrent
    requests as long as the collaborator itself allows it.
    """

    def __init__(
        self,
        collaborator: PlatformCollaborator,
        *,
        default_page_size: int = 20,
        max_page_size: int = 100,
        enrichment_batch_size: int = 5,
        enrichment_batch_delay_seconds: float = 0.25,
        discovery_enabled_by_default: bool = True,
        secondary_tab_name: str = DEFAULT_SECONDARY_TAB_NAME,
        thumbnail_url_template: str = DEFAULT_THUMBNAIL_URL_TEMPLATE,
        discovery_strategies: tuple[DiscoveryStrategy, ...] = DEFAULT_STRATEGIES,
        telemetry: TelemetryClient | None = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._collaborator = collaborator
        self._max_page_size = max(1, max_page_size)
        self._default_page_size = max(1, min(default_page_size, self._max_page_size))
        self._enrichment_batch_size = max(1, enrichment_batch_size)
        self._enrichment_batch_delay_seconds = max(0.0, enrichment_batch_delay_seconds)
        self._discovery_enabled_by_default = discovery_enabled_by_default
        self._secondary_tab_name = secondary_tab_name
        self._thumbnail_url_template = thumbnail_url_template
        self._discovery_strategies = discovery_strategies
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._clock = clock
        self._sleep = sleep

    def get_item(self, item_id: str) -> NormalizedItem:
        normalized_id = _require_identifier(item_id, label="item_id")
        detail = self._fetch_required("fetch_item", self._collaborator.fetch_item, normalized_id)
        return build_normalized_item(
            self._item_sources(normalized_id, detail=detail, row=RawNode.empty())
        )

    def get_view_count(self, item_id: str) -> ViewCountResult:
        normalized_id = _require_identifier(item_id, label="item_id")
        detail = self._fetch_required("fetch_item", self._collaborator.fetch_item, normalized_id)
        sources = self._item_sources(normalized_id, detail=detail, row=RawNode.empty())
        return ViewCountResult(item_id=normalized_id, view_count=resolve(sources, VIEW_COUNT_CHAIN))

    def trace_view_count(self, item_id: str) -> ViewCountTrace:
        normalized_id = _require_identifier(item_id, label="item_id")
        detail = self._fetch_required("fetch_item", self._collaborator.fetch_item, normalized_id)
        sources = self._item_sources(normalized_id, detail=detail, row=RawNode.empty())
        candidates = trace(sources, VIEW_COUNT_CHAIN)
        resolved_by: str | None = None
        view_count: int | None = None
        for name, value in candidates:
            if value is not None:
                resolved_by = name
                view_count = value
                break
        return ViewCountTrace(
            item_id=normalized_id,
            view_count=view_count,
            resolved_by=resolved_by,
            candidates=dict(candidates),
        )

    def get_collection(
        self,
        collection_id: str,
        include_discovery: bool | None = None,
    ) -> NormalizedCollection:
        normalized_id = _require_identifier(collection_id, label="collection_id")
        collection = self._fetch_required(
            "fetch_collection",
            self._collaborator.fetch_collection,
            normalized_id,
        )
        resolved_id = resolve(collection, COLLECTION_ID_CHAIN) or normalized_id

        run_discovery = (
            self._discovery_enabled_by_default if include_discovery is None else include_discovery
        )
        secondary = None
        if run_discovery:
            secondary = discover_secondary_collection(
                DiscoveryContext(
                    collection_id=resolved_id,
                    collection=collection,
                    collaborator=self._collaborator,
                    secondary_tab_name=self._secondary_tab_name,
                    telemetry=self._telemetry,
                ),
                self._discovery_strategies,
            )

        return NormalizedCollection(
            id=resolved_id,
            title=resolve(collection, COLLECTION_TITLE_CHAIN),
            description=resolve(collection, COLLECTION_DESCRIPTION_CHAIN),
            thumbnail_url=resolve(collection, COLLECTION_THUMBNAIL_CHAIN),
            tabs=collection_tab_names(collection),
            secondary_collection=secondary,
        )

    def get_collection_page(
        self,
        collection_id: str,
        tab: str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> CollectionPage:
        normalized_id = _require_identifier(collection_id, label="collection_id")
        tab_name = _normalize_tab(tab)
        if page < 1:
            raise PlatformRequestError("page must be >= 1.")
        effective_page_size = self._resolve_page_size(page_size)

        collection, first_page = self._open_listing(normalized_id, tab_name)
        walked = PaginationWalker(self._collaborator).advance(
            first_page,
            page,
            effective_page_size,
        )
        items = self._enrich_rows(walked.items, reference_time=self._clock())
        degraded_count = sum(1 for item in items if item.error is not None)

        LOGGER.info(
            (
                "collection page served collection_id=%s tab=%s requested_page=%s page=%s "
                "items=%s degraded=%s exhausted=%s"
            ),
            normalized_id,
            tab_name,
            page,
            walked.page_number,
            len(items),
            degraded_count,
            walked.exhausted,
        )
        self._telemetry.emit(
            "platform.pagination.walked",
            collection_id=normalized_id,
            tab=tab_name,
            requested_page=page,
            page=walked.page_number,
            items=len(items),
            degraded=degraded_count,
        )
        return CollectionPage(
            collection_id=resolve(collection, COLLECTION_ID_CHAIN) or normalized_id,
            tab=tab_name,
            requested_page=page,
            page=walked.page_number,
            page_size=effective_page_size,
            has_more=walked.has_more,
            exhausted=walked.exhausted,
            items=tuple(items),
        )

    def list_collection_items(
        self,
        collection_id: str,
        tab: str | None = None,
    ) -> CollectionListing:
        normalized_id = _require_identifier(collection_id, label="collection_id")
        tab_name = _normalize_tab(tab)
        collection, first_page = self._open_listing(normalized_id, tab_name)
        rows = PaginationWalker(self._collaborator).fetch_all(first_page)
        items = self._normalize_rows(rows, reference_time=self._clock())
        LOGGER.info(
            "collection listing walked collection_id=%s tab=%s rows=%s items=%s",
            normalized_id,
            tab_name,
            len(rows),
            len(items),
        )
        return CollectionListing(
            collection_id=resolve(collection, COLLECTION_ID_CHAIN) or normalized_id,
            tab=tab_name,
            items=tuple(items),
        )

    def search(self, query: str) -> SearchResults:
        normalized_query = " ".join(query.split()) if isinstance(query, str) else ""
        if not normalized_query:
            raise PlatformRequestError("query must not be empty.")

        listing = self._call("fetch_search", self._collaborator.fetch_search, normalized_query)
        rows = [RawNode.wrap(row) for row in (listing or ListingPage()).items]
        items = self._normalize_rows(rows, reference_time=self._clock())
        LOGGER.info("search served rows=%s items=%s", len(rows), len(items))
        return SearchResults(query=normalized_query, items=tuple(items))

    def _open_listing(
        self,
        collection_id: str,
        tab_name: str | None,
    ) -> tuple[RawNode, ListingPage]:
        collection = self._fetch_required(
            "fetch_collection",
            self._collaborator.fetch_collection,
            collection_id,
        )
        source = collection
        if tab_name is not None:
            raw_tab = self._call(
                "fetch_collection_tab",
                self._collaborator.fetch_collection_tab,
                collection.value,
                tab_name,
            )
            if raw_tab is None:
                raise PlatformNotFoundError(
                    f"Collection tab not found: {collection_id}/{tab_name}",
                    entity_id=collection_id,
                )
            source = RawNode.wrap(raw_tab)

        first_page = self._call(
            "fetch_listing_first_page",
            self._collaborator.fetch_listing_first_page,
            source.value,
        )
        return collection, first_page or ListingPage()

    def _enrich_rows(
        self,
        rows: Sequence[RawNode],
        *,
        reference_time: datetime,
    ) -> list[NormalizedItem]:
        pending = self._rows_with_ids(rows)
        if not pending:
            return []

        width = self._enrichment_batch_size
        enriched: list[NormalizedItem] = []

        def _enrich(entry: tuple[str, RawNode]) -> NormalizedItem:
            item_id, row = entry
            return self._enrich_row(item_id, row, reference_time=reference_time)

        with ThreadPoolExecutor(max_workers=width, thread_name_prefix="tubelens-enrich") as pool:
            for batch_start in range(0, len(pending), width):
                if batch_start > 0 and self._enrichment_batch_delay_seconds > 0:
                    self._sleep(self._enrichment_batch_delay_seconds)
                batch = pending[batch_start : batch_start + width]
                enriched.extend(pool.map(_enrich, batch))
        return enriched

    def _enrich_row(
        self,
        item_id: str,
        row: RawNode,
        *,
        reference_time: datetime,
    ) -> NormalizedItem:
        try:
            detail = self._fetch_required("fetch_item", self._collaborator.fetch_item, item_id)
        except PlatformServiceError as exc:
            marker = ItemErrorMarker(
                kind=_error_kind(exc),
                message=summarize_exception_message(exc, max_length=200),
            )
            LOGGER.warning(
                "item enrichment failed; degrading to listing row item_id=%s kind=%s error=%s",
                item_id,
                marker.kind,
                marker.message,
            )
            self._telemetry.emit("platform.item.degraded", item_id=item_id, kind=marker.kind)
            degraded = build_normalized_item(
                self._item_sources(
                    item_id,
                    detail=RawNode.empty(),
                    row=row,
                    reference_time=reference_time,
                )
            )
            return degraded.model_copy(update={"error": marker})

        return build_normalized_item(
            self._item_sources(item_id, detail=detail, row=row, reference_time=reference_time)
        )

    def _normalize_rows(
        self,
        rows: Sequence[RawNode],
        *,
        reference_time: datetime,
    ) -> list[NormalizedItem]:
        return [
            build_normalized_item(
                self._item_sources(
                    item_id,
                    detail=RawNode.empty(),
                    row=row,
                    reference_time=reference_time,
                )
            )
            for item_id, row in self._rows_with_ids(rows)
        ]

    def _rows_with_ids(self, rows: Sequence[RawNode]) -> list[tuple[str, RawNode]]:
        identified: list[tuple[str, RawNode]] = []
        skipped = 0
        for row in rows:
            item_id = row_item_id(row)
            if item_id is None:
                skipped += 1
                continue
            identified.append((item_id, row))
        if skipped:
            LOGGER.debug("skipped listing rows without an item id count=%s", skipped)
        return identified

    def _item_sources(
        self,
        item_id: str,
        *,
        detail: RawNode,
        row: RawNode,
        reference_time: datetime | None = None,
    ) -> ItemSources:
        return ItemSources(
            item_id=item_id,
            detail=detail,
            row=row,
            reference_time=reference_time or self._clock(),
            thumbnail_url_template=self._thumbnail_url_template,
        )

    def _resolve_page_size(self, page_size: int | None) -> int:
        if page_size is None:
            return self._default_page_size
        if page_size < 1 or page_size > self._max_page_size:
            raise PlatformRequestError(
                f"page_size must be between 1 and {self._max_page_size}."
            )
        return page_size

    def _fetch_required(
        self,
        operation: str,
        fetch: Callable[[str], Any],
        entity_id: str,
    ) -> RawNode:
        raw = self._call(operation, fetch, entity_id)
        if raw is None:
            raise PlatformNotFoundError(
                f"Upstream returned nothing for {entity_id}",
                entity_id=entity_id,
            )
        return RawNode.wrap(raw)

    def _call(self, operation: str, fetch: Callable[..., ResultT], *args: Any) -> ResultT:
        try:
            return fetch(*args)
        except PlatformServiceError:
            raise
        except Exception as exc:
            message = summarize_exception_message(exc)
            LOGGER.warning("collaborator call failed operation=%s error=%s", operation, message)
            raise PlatformTransportError(
                f"Upstream call {operation} failed: {message}",
                operation=operation,
            ) from exc


def _require_identifier(raw_value: str, *, label: str) -> str:
    normalized = raw_value.strip() if isinstance(raw_value, str) else ""
    if not normalized:
        raise PlatformRequestError(f"{label} must not be empty.")
    return normalized


def _normalize_tab(tab: str | None) -> str | None:
    if tab is None:
        return None
    normalized = tab.strip() if isinstance(tab, str) else ""
    if not normalized:
        raise PlatformRequestError("tab must not be blank.")
    return normalized


def _error_kind(exc: PlatformServiceError) -> ItemErrorKind:
    if isinstance(exc, PlatformNotFoundError):
        return "not_found"
    if isinstance(exc, PlatformUnavailableError):
        return "unavailable"
    return "transport"
