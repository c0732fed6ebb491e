"""Heuristic lookup of the secondary collection linked to a collection.

The platform rarely exposes the link directly, so discovery walks the
collection's structural surface with independent strategies. They run in
priority order and the first one that produces a result wins. A strategy
that raises (typically inside a collaborator sub-call) is skipped; it never
aborts the whole lookup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from backend.app.models.platform_contracts import DiscoveryResult, DiscoveryStrategyName
from backend.app.services.field_resolver import row_item_id
from backend.app.services.platform_collaborator import PlatformCollaborator
from backend.app.services.platform_errors import summarize_exception_message
from backend.app.services.raw_node import RawNode
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tubelens.discovery")

DEFAULT_SECONDARY_TAB_NAME = "Releases"
LINKED_COLLECTION_KEYS: tuple[str, ...] = (
    "linked_channel_id",
    "topic_channel_id",
    "music_channel_id",
)
SECONDARY_ID_PREFIXES: tuple[str, ...] = ("UC",)
SECONDARY_ID_PREFIXED_LENGTH = 24
SECONDARY_ID_TOKENS: tuple[str, ...] = ("topic",)
SHELF_TITLE_KEYWORDS: tuple[str, ...] = (
    "music",
    "topic",
    "releases",
    "albums",
    "singles",
    "official artist",
)
CATEGORY_FLAGS: tuple[str, ...] = ("is_artist", "is_music_channel", "is_topic_channel")
CATEGORY_VALUES: frozenset[str] = frozenset({"music"})

_NAVIGATION_TARGET_PATHS: tuple[tuple[str, ...], ...] = (
    ("endpoint", "payload", "browseId"),
    ("endpoint", "browse_id"),
    ("navigation_endpoint", "payload", "browseId"),
    ("navigation_endpoint", "browse_id"),
    ("browse_id",),
    ("endpoint", "payload", "canonicalBaseUrl"),
    ("endpoint", "url"),
)


@dataclass(frozen=True)
class DiscoveryContext:
    collection_id: str
    collection: RawNode
    collaborator: PlatformCollaborator
    secondary_tab_name: str = DEFAULT_SECONDARY_TAB_NAME
    telemetry: TelemetryClient = field(default_factory=TelemetryClient.disabled)


DiscoveryStrategy = Callable[[DiscoveryContext], DiscoveryResult | None]


def navigation_target_id(node: RawNode) -> str | None:
    for path in _NAVIGATION_TARGET_PATHS:
        target = node.string(*path)
        if target is not None:
            return target
    return None


def is_recognized_secondary_id(candidate: str | None, current_id: str) -> bool:
    if candidate is None or candidate == current_id:
        return False
    if (
        candidate.startswith(SECONDARY_ID_PREFIXES)
        and len(candidate) == SECONDARY_ID_PREFIXED_LENGTH
    ):
        return True
    lowered = candidate.lower()
    return any(token in lowered for token in SECONDARY_ID_TOKENS)


def _linked_collection_field(node: RawNode, current_id: str) -> str | None:
    for key in LINKED_COLLECTION_KEYS:
        value = node.string(key)
        if value is not None and value != current_id:
            return value
    return None


def _structured_result(
    node: RawNode,
    context: DiscoveryContext,
    strategy: DiscoveryStrategyName,
) -> DiscoveryResult | None:
    linked_id = _linked_collection_field(node, context.collection_id)
    if linked_id is None:
        return None
    return DiscoveryResult(
        collection_id=linked_id,
        confidence_label="high",
        source_strategy=strategy,
    )


def find_in_header(context: DiscoveryContext) -> DiscoveryResult | None:
    return _structured_result(context.collection.child("header"), context, "header_field")


def find_in_metadata(context: DiscoveryContext) -> DiscoveryResult | None:
    return _structured_result(context.collection.child("metadata"), context, "metadata_field")


def find_in_header_content(context: DiscoveryContext) -> DiscoveryResult | None:
    return _structured_result(
        context.collection.child("header", "content"),
        context,
        "header_content_field",
    )


def scan_tabs(context: DiscoveryContext) -> DiscoveryResult | None:
    for tab in context.collection.children("tabs"):
        result = _structured_result(tab, context, "tab_scan")
        if result is not None:
            return result
    return None


def probe_secondary_tab(context: DiscoveryContext) -> DiscoveryResult | None:
    tab_raw = context.collaborator.fetch_collection_tab(
        context.collection.value,
        context.secondary_tab_name,
    )
    if tab_raw is None:
        return None

    tab = RawNode.wrap(tab_raw)
    sub_collections = tab.children("contents") or tab.children("items")
    for sub_collection in sub_collections:
        target_id = navigation_target_id(sub_collection)
        if not is_recognized_secondary_id(target_id, context.collection_id):
            continue

        representative_id = sub_collection.string("first_video_id") or row_item_id(
            sub_collection.child("items", 0)
        )
        if representative_id is None:
            continue

        representative = RawNode.wrap(context.collaborator.fetch_item(representative_id))
        owner_id = representative.string("basic_info", "channel_id") or representative.string(
            "secondary_info", "owner", "author", "id"
        )
        if owner_id is None or owner_id == context.collection_id:
            continue

        assert target_id is not None
        return DiscoveryResult(
            collection_id=target_id,
            confidence_label="medium",
            source_strategy="secondary_tab_probe",
        )
    return None


def scan_keyword_shelves(context: DiscoveryContext) -> DiscoveryResult | None:
    shelves = context.collection.children("shelves") or context.collection.children("sections")
    for shelf in shelves:
        title = shelf.text("title")
        if title is None:
            continue
        lowered_title = title.lower()
        if not any(keyword in lowered_title for keyword in SHELF_TITLE_KEYWORDS):
            continue

        candidates = [shelf, *(shelf.children("items") or shelf.children("contents"))]
        for candidate in candidates:
            target_id = navigation_target_id(candidate)
            if is_recognized_secondary_id(target_id, context.collection_id):
                assert target_id is not None
                return DiscoveryResult(
                    collection_id=target_id,
                    confidence_label="medium",
                    source_strategy="shelf_keyword_scan",
                )
    return None


def echo_self_declared_category(context: DiscoveryContext) -> DiscoveryResult | None:
    declared = any(
        context.collection.boolean(block, flag) is True
        for block in ("metadata", "header")
        for flag in CATEGORY_FLAGS
    )
    if not declared:
        category = context.collection.string("metadata", "category")
        declared = category is not None and category.lower() in CATEGORY_VALUES
    if not declared:
        return None
    return DiscoveryResult(
        collection_id=context.collection_id,
        confidence_label="low",
        source_strategy="self_declared_category",
    )


DEFAULT_STRATEGIES: tuple[DiscoveryStrategy, ...] = (
    find_in_header,
    find_in_metadata,
    find_in_header_content,
    scan_tabs,
    probe_secondary_tab,
    scan_keyword_shelves,
    echo_self_declared_category,
)


def discover_secondary_collection(
    context: DiscoveryContext,
    strategies: tuple[DiscoveryStrategy, ...] = DEFAULT_STRATEGIES,
) -> DiscoveryResult | None:
    for strategy in strategies:
        strategy_name = getattr(strategy, "__name__", repr(strategy))
        try:
            result = strategy(context)
        except Exception as exc:
            LOGGER.warning(
                "discovery strategy failed; continuing collection_id=%s strategy=%s error=%s",
                context.collection_id,
                strategy_name,
                summarize_exception_message(exc),
            )
            context.telemetry.emit(
                "platform.discovery.strategy_failed",
                collection_id=context.collection_id,
                strategy=strategy_name,
                error_type=exc.__class__.__name__,
            )
            continue

        if result is not None:
            LOGGER.info(
                "secondary collection discovered collection_id=%s secondary_id=%s strategy=%s",
                context.collection_id,
                result.collection_id,
                result.source_strategy,
            )
            context.telemetry.emit(
                "platform.discovery.resolved",
                collection_id=context.collection_id,
                strategy=result.source_strategy,
                confidence=result.confidence_label,
            )
            return result

    LOGGER.debug("no secondary collection found collection_id=%s", context.collection_id)
    return None
