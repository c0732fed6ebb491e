from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, TypeVar

from backend.app.config import DEFAULT_THUMBNAIL_URL_TEMPLATE
from backend.app.models.platform_contracts import NormalizedItem
from backend.app.services.raw_node import RawNode
from backend.app.services.relative_time import normalize_relative_time, parse_absolute_datetime

LOGGER = logging.getLogger("tubelens.resolver")

SourceT = TypeVar("SourceT")
ValueT = TypeVar("ValueT")

SHORT_ROW_TYPES: frozenset[str] = frozenset({"ShortsLockupView", "ReelItem", "ShortsVideo"})

_SHORT_COUNT_PATTERN = re.compile(
    r"^(?P<number>\d[\d,]*(?:\.\d+)?)\s*(?P<suffix>[KMB])(?![A-Za-z])",
    re.IGNORECASE,
)
_DECIMAL_COMMA_PATTERN = re.compile(r"^\d+,\d{1,2}$")
_SHORT_COUNT_MULTIPLIERS: dict[str, int] = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
}


@dataclass(frozen=True)
class FieldExtractor(Generic[SourceT, ValueT]):
    name: str
    read: Callable[[SourceT], ValueT | None]


@dataclass(frozen=True)
class FieldFallbackChain(Generic[SourceT, ValueT]):
    field_name: str
    extractors: tuple[FieldExtractor[SourceT, ValueT], ...]
    default: ValueT | None = None


@dataclass(frozen=True)
class ItemSources:
    item_id: str
    detail: RawNode
    row: RawNode
    reference_time: datetime
    thumbnail_url_template: str = DEFAULT_THUMBNAIL_URL_TEMPLATE


def resolve(source: SourceT, chain: FieldFallbackChain[SourceT, ValueT]) -> ValueT | None:
    """Return the first value produced by the chain, or the chain default.

    Extractors run strictly in order and later ones are never called once a
    value is found. An extractor that raises counts as declining.
    """
    for extractor in chain.extractors:
        value = _run_extractor(source, chain, extractor)
        if value is not None:
            return value

    LOGGER.debug("field fallback chain declined field=%s", chain.field_name)
    return chain.default


def trace(
    source: SourceT,
    chain: FieldFallbackChain[SourceT, ValueT],
) -> list[tuple[str, ValueT | None]]:
    return [
        (extractor.name, _run_extractor(source, chain, extractor))
        for extractor in chain.extractors
    ]


def _run_extractor(
    source: SourceT,
    chain: FieldFallbackChain[SourceT, ValueT],
    extractor: FieldExtractor[SourceT, ValueT],
) -> ValueT | None:
    try:
        return extractor.read(source)
    except Exception as exc:
        LOGGER.debug(
            "field extractor failed; treating as absent field=%s extractor=%s error=%s",
            chain.field_name,
            extractor.name,
            exc.__class__.__name__,
        )
        return None


# Value parsers shared by the chains.


def parse_view_count_text(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    compact = raw_value.strip()
    matched = _SHORT_COUNT_PATTERN.match(compact)
    if matched is not None:
        try:
            number = Decimal(_count_number_text(matched.group("number")))
        except InvalidOperation:
            return None
        multiplier = _SHORT_COUNT_MULTIPLIERS[matched.group("suffix").upper()]
        return int(number * multiplier)

    digits = re.sub(r"[^0-9]", "", compact)
    if not digits:
        return None
    return int(digits)


def _count_number_text(number_text: str) -> str:
    if _DECIMAL_COMMA_PATTERN.match(number_text):
        return number_text.replace(",", ".")
    return number_text.replace(",", "")


def parse_duration_text(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    parts = raw_value.strip().split(":")
    if not 2 <= len(parts) <= 3 or not all(part.isdigit() for part in parts):
        return None
    total_seconds = 0
    for part in parts:
        total_seconds = total_seconds * 60 + int(part)
    return total_seconds


def best_thumbnail_url(node: RawNode) -> str | None:
    direct = node.string("url")
    if direct is not None:
        return direct

    candidates = node.children()
    if not candidates:
        candidates = node.children("thumbnails")

    best_url: str | None = None
    best_width = -1
    for candidate in candidates:
        url = candidate.string("url")
        if url is None:
            continue
        width = candidate.integer("width") or 0
        if width > best_width:
            best_url = url
            best_width = width
    return best_url


def row_item_id(row: RawNode) -> str | None:
    return row.string("id") or row.string("video_id") or row.string("content_id")


def _absolute_date(raw_value: Any) -> datetime | None:
    if isinstance(raw_value, datetime):
        if raw_value.tzinfo is None:
            return raw_value.replace(tzinfo=UTC)
        return raw_value.astimezone(UTC)
    if isinstance(raw_value, str):
        return parse_absolute_datetime(raw_value)
    return None


def _row_published(sources: ItemSources) -> datetime | None:
    text = sources.row.text("published") or sources.row.text("published_time_text")
    return normalize_relative_time(text, now=sources.reference_time)


def _row_view_count(sources: ItemSources) -> int | None:
    text = sources.row.text("view_count") or sources.row.text("short_view_count")
    return parse_view_count_text(text)


def _row_duration(sources: ItemSources) -> int | None:
    seconds = sources.row.integer("duration", "seconds")
    if seconds is not None:
        return seconds
    text = sources.row.text("duration") or sources.row.text("length_text")
    return parse_duration_text(text)


def _row_thumbnail(sources: ItemSources) -> str | None:
    return best_thumbnail_url(sources.row.child("thumbnails")) or best_thumbnail_url(
        sources.row.child("thumbnail")
    )


def _row_is_short(sources: ItemSources) -> bool | None:
    row_type = sources.row.string("type")
    if row_type is None:
        return None
    return True if row_type in SHORT_ROW_TYPES else None


def _default_thumbnail(sources: ItemSources) -> str | None:
    return sources.thumbnail_url_template.format(item_id=sources.item_id)


PUBLISHED_AT_CHAIN: FieldFallbackChain[ItemSources, datetime] = FieldFallbackChain(
    field_name="published_at",
    extractors=(
        FieldExtractor(
            "microformat.publish_date",
            lambda s: _absolute_date(s.detail.get("microformat", "publish_date")),
        ),
        FieldExtractor(
            "microformat.upload_date",
            lambda s: _absolute_date(s.detail.get("microformat", "upload_date")),
        ),
        FieldExtractor(
            "basic_info.publish_date",
            lambda s: _absolute_date(s.detail.get("basic_info", "publish_date")),
        ),
        FieldExtractor(
            "primary_info.published",
            lambda s: parse_absolute_datetime(s.detail.text("primary_info", "published")),
        ),
        FieldExtractor(
            "primary_info.date_text",
            lambda s: parse_absolute_datetime(s.detail.text("primary_info", "date_text")),
        ),
        FieldExtractor("row.published", _row_published),
    ),
)

VIEW_COUNT_CHAIN: FieldFallbackChain[ItemSources, int] = FieldFallbackChain(
    field_name="view_count",
    extractors=(
        FieldExtractor(
            "basic_info.view_count",
            lambda s: s.detail.integer("basic_info", "view_count"),
        ),
        FieldExtractor(
            "primary_info.view_count.original_view_count",
            lambda s: s.detail.integer("primary_info", "view_count", "original_view_count"),
        ),
        FieldExtractor(
            "primary_info.view_count.view_count",
            lambda s: parse_view_count_text(
                s.detail.text("primary_info", "view_count", "view_count")
            ),
        ),
        FieldExtractor(
            "primary_info.view_count.short_view_count",
            lambda s: parse_view_count_text(
                s.detail.text("primary_info", "view_count", "short_view_count")
            ),
        ),
        FieldExtractor(
            "primary_info.view_count.extra_short_view_count",
            lambda s: parse_view_count_text(
                s.detail.text("primary_info", "view_count", "extra_short_view_count")
            ),
        ),
        FieldExtractor("row.view_count", _row_view_count),
    ),
)

DESCRIPTION_CHAIN: FieldFallbackChain[ItemSources, str] = FieldFallbackChain(
    field_name="description",
    extractors=(
        FieldExtractor(
            "primary_info.description",
            lambda s: s.detail.text("primary_info", "description"),
        ),
        FieldExtractor(
            "secondary_info.description", lambda s: s.detail.text("secondary_info", "description")
        ),
        FieldExtractor(
            "basic_info.short_description",
            lambda s: s.detail.text("basic_info", "short_description"),
        ),
        FieldExtractor("row.description_snippet", lambda s: s.row.text("description_snippet")),
    ),
)

THUMBNAIL_URL_CHAIN: FieldFallbackChain[ItemSources, str] = FieldFallbackChain(
    field_name="thumbnail_url",
    extractors=(
        FieldExtractor(
            "basic_info.thumbnail",
            lambda s: best_thumbnail_url(s.detail.child("basic_info", "thumbnail")),
        ),
        FieldExtractor("row.thumbnails", _row_thumbnail),
        FieldExtractor("default_from_id", _default_thumbnail),
    ),
)

DURATION_CHAIN: FieldFallbackChain[ItemSources, int] = FieldFallbackChain(
    field_name="duration",
    extractors=(
        FieldExtractor("basic_info.duration", lambda s: s.detail.integer("basic_info", "duration")),
        FieldExtractor("row.duration", _row_duration),
    ),
)

TITLE_CHAIN: FieldFallbackChain[ItemSources, str] = FieldFallbackChain(
    field_name="title",
    extractors=(
        FieldExtractor("basic_info.title", lambda s: s.detail.text("basic_info", "title")),
        FieldExtractor("primary_info.title", lambda s: s.detail.text("primary_info", "title")),
        FieldExtractor("row.title", lambda s: s.row.text("title")),
    ),
)

CHANNEL_ID_CHAIN: FieldFallbackChain[ItemSources, str] = FieldFallbackChain(
    field_name="channel_id",
    extractors=(
        FieldExtractor(
            "basic_info.channel_id",
            lambda s: s.detail.string("basic_info", "channel_id"),
        ),
        FieldExtractor(
            "secondary_info.owner.author.id",
            lambda s: s.detail.string("secondary_info", "owner", "author", "id"),
        ),
        FieldExtractor("row.author.id", lambda s: s.row.string("author", "id")),
    ),
)

CHANNEL_TITLE_CHAIN: FieldFallbackChain[ItemSources, str] = FieldFallbackChain(
    field_name="channel_title",
    extractors=(
        FieldExtractor("basic_info.author", lambda s: s.detail.text("basic_info", "author")),
        FieldExtractor(
            "secondary_info.owner.author.name",
            lambda s: s.detail.text("secondary_info", "owner", "author", "name"),
        ),
        FieldExtractor("row.author.name", lambda s: s.row.text("author", "name")),
    ),
)

IS_SHORT_CHAIN: FieldFallbackChain[ItemSources, bool] = FieldFallbackChain(
    field_name="is_short",
    extractors=(
        FieldExtractor("basic_info.is_short", lambda s: s.detail.boolean("basic_info", "is_short")),
        FieldExtractor("row.type", _row_is_short),
    ),
    default=False,
)


def build_normalized_item(sources: ItemSources) -> NormalizedItem:
    return NormalizedItem(
        id=sources.item_id,
        title=resolve(sources, TITLE_CHAIN),
        description=resolve(sources, DESCRIPTION_CHAIN),
        thumbnail_url=resolve(sources, THUMBNAIL_URL_CHAIN),
        published_at=resolve(sources, PUBLISHED_AT_CHAIN),
        view_count=resolve(sources, VIEW_COUNT_CHAIN),
        duration=resolve(sources, DURATION_CHAIN),
        channel_id=resolve(sources, CHANNEL_ID_CHAIN),
        channel_title=resolve(sources, CHANNEL_TITLE_CHAIN),
        is_short=bool(resolve(sources, IS_SHORT_CHAIN)),
    )


# Collection root chains operate on the collection node directly.

COLLECTION_TITLE_CHAIN: FieldFallbackChain[RawNode, str] = FieldFallbackChain(
    field_name="collection.title",
    extractors=(
        FieldExtractor("metadata.title", lambda node: node.text("metadata", "title")),
        FieldExtractor("header.title", lambda node: node.text("header", "title")),
        FieldExtractor(
            "header.content.title",
            lambda node: node.text("header", "content", "title"),
        ),
    ),
)

COLLECTION_DESCRIPTION_CHAIN: FieldFallbackChain[RawNode, str] = FieldFallbackChain(
    field_name="collection.description",
    extractors=(
        FieldExtractor("metadata.description", lambda node: node.text("metadata", "description")),
        FieldExtractor(
            "header.content.description",
            lambda node: node.text("header", "content", "description"),
        ),
    ),
)

COLLECTION_THUMBNAIL_CHAIN: FieldFallbackChain[RawNode, str] = FieldFallbackChain(
    field_name="collection.thumbnail_url",
    extractors=(
        FieldExtractor(
            "metadata.avatar",
            lambda node: best_thumbnail_url(node.child("metadata", "avatar")),
        ),
        FieldExtractor(
            "metadata.thumbnail",
            lambda node: best_thumbnail_url(node.child("metadata", "thumbnail")),
        ),
        FieldExtractor(
            "header.avatar",
            lambda node: best_thumbnail_url(node.child("header", "avatar")),
        ),
        FieldExtractor(
            "header.content.image",
            lambda node: best_thumbnail_url(node.child("header", "content", "image")),
        ),
    ),
)

COLLECTION_ID_CHAIN: FieldFallbackChain[RawNode, str] = FieldFallbackChain(
    field_name="collection.id",
    extractors=(
        FieldExtractor("metadata.external_id", lambda node: node.string("metadata", "external_id")),
        FieldExtractor("header.channel_id", lambda node: node.string("header", "channel_id")),
    ),
)


def collection_tab_names(collection: RawNode) -> tuple[str, ...]:
    names: list[str] = []
    for tab in collection.children("tabs"):
        name = tab.string() if isinstance(tab.value, str) else tab.text("title")
        if name is not None and name not in names:
            names.append(name)
    return tuple(names)
