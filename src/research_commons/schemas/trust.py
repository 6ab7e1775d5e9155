# src/research_commons/schemas/trust.py
"""Trust profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from research_commons.models import ConflictPhase, ProximityType


class TrustSignalsIn(BaseModel):
    """Provenance facts submitted for scoring."""

    author_known: bool = False
    institution: str | None = None
    verified_expert: bool = False
    accepted_contributions: int = Field(0, ge=0)
    retractions: int = Field(0, ge=0)
    method_described: bool = False
    reproducible: bool = False
    data_available: bool = False
    proximity_type: ProximityType = ProximityType.INFERRED
    firsthand: bool = False
    data_timestamp: datetime | None = None
    conflict_phase: ConflictPhase | None = None
    volatile: bool = False
    corroborating_count: int = Field(0, ge=0)
    contradicting_count: int = Field(0, ge=0)
    peer_reviewed: bool = False
    citation_count: int = Field(0, ge=0)


class TrustProfileResponse(BaseModel):
    """Five independent trust dimensions for one content item."""

    content_id: int
    content_type: str
    t1_source_score: int
    t1_author_known: bool
    t1_institution: str | None
    t2_method_score: int
    t2_method_described: bool
    t2_reproducible: bool
    t2_data_available: bool
    t3_proximity_score: int
    t3_proximity_type: str
    t3_firsthand: bool
    t4_temporal_score: int
    t4_conflict_phase: str | None
    t4_data_timestamp: datetime | None
    t4_is_time_sensitive: bool
    t5_validation_score: int
    t5_corroborating_count: int
    t5_contradicting_count: int
    trust_summary: str | None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
