"""Data models for Swimlane applications, fields and search results."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import ErrorDetail


class _CamelModel(BaseModel):
    """Model serialized with the camelCase keys the render consumer reads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_render(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _as_text(value: Any) -> Any:
    # Swimlane sends tracking ids and some timestamps as numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# =========================
# Directory Models
# =========================


class Application(BaseModel):
    """A Swimlane application (record-tracking workspace)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    acronym: str = ""


class LayoutNode(_CamelModel):
    """One container or field on the path from layout root to a field."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    name: str | None = None
    layout_type: str | None = None


class FieldInfo(BaseModel):
    """Field metadata for one (app_id, field_id) pair."""

    field_id: str
    field_name: str | None = None
    layout_path: tuple[LayoutNode, ...] | None = None


# =========================
# Search Models
# =========================


class SearchResult(_CamelModel):
    """A single matching field within a Swimlane record."""

    app_id: str
    app_name: str
    app_acronym: str
    field_id: str
    field_name: str
    layout_path: tuple[LayoutNode, ...] | None = None
    field_value: str
    record_tracking_id: str | None = None
    record_created_date: str | None = None
    record_modified_date: str | None = None
    record_total_time_spent: Any = None
    record_id: str
    record_url: str

    @field_validator(
        "record_tracking_id",
        "record_created_date",
        "record_modified_date",
        "record_id",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class SearchPage(BaseModel):
    """Matches for one entity plus the server-reported total count."""

    results: list[SearchResult] = Field(default_factory=list)
    total_count: int = 0


class ElasticHit(_CamelModel):
    """A document matched in the Elasticsearch mirror."""

    doc_id: str
    index: str
    score: float | None = None
    app_id: str | None = None
    app_name: str | None = None
    app_acronym: str | None = None
    record_tracking_id: str | None = None
    record_url: str | None = None
    source: dict[str, Any] = Field(default_factory=dict)

    @field_validator("doc_id", "record_tracking_id", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class HighlightedField(_CamelModel):
    """A highlighted field fragment resolved to its human field name."""

    field_id: str
    field_name: str
    fragments: list[str] = Field(default_factory=list)


class ElasticDetail(_CamelModel):
    """Details for a matched document, with highlight fragments."""

    hit: ElasticHit
    highlights: list[HighlightedField] = Field(default_factory=list)


# =========================
# Lookup Models
# =========================


class Entity(BaseModel):
    """An observable submitted for lookup."""

    value: str
    type: str | None = None


class LookupResult(BaseModel):
    """Lookup outcome for one entity.

    ``data`` is None when nothing matched. ``error`` is set instead of
    ``data`` when the entity's lookup failed.
    """

    entity: Entity
    data: dict[str, Any] | None = None
    error: ErrorDetail | None = None
