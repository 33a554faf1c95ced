from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Category = Literal[
    "war",
    "politics",
    "culture",
    "civilization",
    "exploration",
    "science",
    "technology",
    "religion",
    "history",
]

PrecisionLevel = Literal["year", "decade", "century"]

_QID_SUFFIX = re.compile(r"/(Q\d+)$")


class _CamelModel(BaseModel):
    # JSON artifacts are camelCase, attributes stay snake_case
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Source(_CamelModel):
    id: str = Field(min_length=1)
    source_name: str = Field(min_length=1)
    source_url: str = Field(min_length=1)
    license: str = Field(min_length=1)
    attribution_text: str = Field(min_length=1)
    retrieved_at: str = Field(min_length=1)

    def as_provenance(self) -> "Provenance":
        return Provenance(
            source_id=self.id,
            source_name=self.source_name,
            source_url=self.source_url,
            license=self.license,
            attribution_text=self.attribution_text,
            retrieved_at=self.retrieved_at,
        )


class Provenance(_CamelModel):
    source_id: str
    source_name: str
    source_url: str
    license: str
    attribution_text: str
    retrieved_at: str

    def as_source(self) -> Source:
        return Source(
            id=self.source_id,
            source_name=self.source_name,
            source_url=self.source_url,
            license=self.license,
            attribution_text=self.attribution_text,
            retrieved_at=self.retrieved_at,
        )


class EventCandidate(_CamelModel):
    """
    One historical occurrence discovered in the knowledge graph.
    `source_url` (the entity URI) is the natural key.
    """
    id: Optional[str] = None
    title: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    category: Category = "history"
    region_name: str = ""
    precision_level: PrecisionLevel = "year"
    confidence_score: float = Field(default=1.0, ge=0.0, le=1.0)
    time_start: int
    time_end: Optional[int] = None
    source_url: str = Field(min_length=1)
    lat: float = Field(allow_inf_nan=False)
    lng: float = Field(allow_inf_nan=False)
    image_url: Optional[str] = None
    wikipedia_url: Optional[str] = None
    youtube_video_id: Optional[str] = None
    license: str
    provenance: Provenance

    @property
    def qid(self) -> Optional[str]:
        m = _QID_SUFFIX.search(self.source_url)
        return m.group(1) if m else None


class TopicMatch(BaseModel):
    id: str
    label: str
    description: str = ""


class LicenseViolation(_CamelModel):
    event_id: Optional[str]
    source_id: str
    license: str


class AuditReport(_CamelModel):
    generated_at: str
    ok: bool
    allowed_licenses: List[str]
    violations: List[LicenseViolation] = Field(default_factory=list)


class NormalizedOutput(_CamelModel):
    generated_at: str
    sources: List[Source]
    events: List[EventCandidate]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
