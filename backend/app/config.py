from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".tubelens"
DEFAULT_THUMBNAIL_URL_TEMPLATE = "https://i.ytimg.com/vi/{item_id}/hqdefault.jpg"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "telemetry_enabled",
    "discovery_enabled_by_default",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class AppSettings(BaseSettings):
    """
    Runtime configuration for the aggregation core.

    Every option is read from a `TUBELENS_*` environment variable (or `.env`)
    and documents its default here.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUBELENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for local state and logs.",
    )

    # Listing traversal.
    default_page_size: int = Field(
        default=20,
        ge=1,
        description="Page size used when callers do not request one.",
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        description="Largest page size a caller may request.",
    )

    # Per-item enrichment pacing.
    enrichment_batch_size: int = Field(
        default=5,
        ge=1,
        le=32,
        description="Number of item detail fetches run concurrently within a page.",
    )
    enrichment_batch_delay_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Pause between enrichment batches, as a courtesy to the upstream source.",
    )

    # Secondary collection discovery.
    discovery_enabled_by_default: bool = Field(
        default=True,
        description="Run secondary-collection discovery when callers do not say otherwise.",
    )
    secondary_tab_name: str = Field(
        default="Releases",
        description="Collection tab probed for sub-collections during discovery.",
    )

    thumbnail_url_template: str = Field(
        default=DEFAULT_THUMBNAIL_URL_TEMPLATE,
        description="Fallback thumbnail URL; `{item_id}` is replaced with the item id.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description="Directory for log files. Defaults to `${TUBELENS_DATA_DIR}/logs`.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TUBELENS_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("TUBELENS_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("secondary_tab_name", mode="before")
    @classmethod
    def _normalize_secondary_tab_name(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("TUBELENS_SECONDARY_TAB_NAME must be a non-empty string.")
        return value.strip()

    @field_validator("thumbnail_url_template", mode="before")
    @classmethod
    def _validate_thumbnail_url_template(cls, value: Any) -> str:
        if not isinstance(value, str) or "{item_id}" not in value:
            raise ValueError("TUBELENS_THUMBNAIL_URL_TEMPLATE must contain `{item_id}`.")
        return value.strip()

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @model_validator(mode="after")
    def _check_page_size_bounds(self) -> AppSettings:
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                "TUBELENS_DEFAULT_PAGE_SIZE must not exceed TUBELENS_MAX_PAGE_SIZE."
            )
        return self


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
