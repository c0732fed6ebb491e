from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ItemErrorKind = Literal["not_found", "unavailable", "transport"]
ConfidenceLabel = Literal["high", "medium", "low"]
DiscoveryStrategyName = Literal[
    "header_field",
    "metadata_field",
    "header_content_field",
    "tab_scan",
    "secondary_tab_probe",
    "shelf_keyword_scan",
    "self_declared_category",
]


class ItemErrorMarker(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ItemErrorKind
    message: str


class NormalizedItem(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    title: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None
    published_at: datetime | None = None
    view_count: int | None = None
    duration: int | None = Field(default=None, description="Duration in seconds.")
    channel_id: str | None = None
    channel_title: str | None = None
    is_short: bool = False
    error: ItemErrorMarker | None = None


class DiscoveryResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    collection_id: str
    confidence_label: ConfidenceLabel
    source_strategy: DiscoveryStrategyName


class NormalizedCollection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    title: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None
    tabs: tuple[str, ...] = ()
    secondary_collection: DiscoveryResult | None = None


class CollectionPage(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    collection_id: str
    tab: str | None = None
    requested_page: int
    page: int
    page_size: int
    has_more: bool
    exhausted: bool
    items: tuple[NormalizedItem, ...] = ()


class CollectionListing(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    collection_id: str
    tab: str | None = None
    items: tuple[NormalizedItem, ...] = ()


class SearchResults(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    query: str
    items: tuple[NormalizedItem, ...] = ()


class ViewCountResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    item_id: str
    view_count: int | None = None


class ViewCountTrace(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    item_id: str
    view_count: int | None = None
    resolved_by: str | None = None
    candidates: dict[str, int | None] = Field(default_factory=dict)
