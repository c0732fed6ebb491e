from __future__ import annotations

from functools import lru_cache

from backend.app.config import AppSettings, load_settings
from backend.app.services.platform_collaborator import PlatformCollaborator
from backend.app.services.platform_service import PlatformService
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def build_platform_service(collaborator: PlatformCollaborator) -> PlatformService:
    # One service per collaborator; the collaborator holds the upstream session.
    settings = get_settings()
    return PlatformService(
        collaborator,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
        enrichment_batch_size=settings.enrichment_batch_size,
        enrichment_batch_delay_seconds=settings.enrichment_batch_delay_seconds,
        discovery_enabled_by_default=settings.discovery_enabled_by_default,
        secondary_tab_name=settings.secondary_tab_name,
        thumbnail_url_template=settings.thumbnail_url_template,
        telemetry=get_telemetry(),
    )


def reset_cached_dependencies() -> None:
    get_telemetry.cache_clear()
    get_settings.cache_clear()
