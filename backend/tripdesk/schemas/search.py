"""
Search request/response models.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClassifiedTerm(BaseModel):
    term: str
    weight: float
    category: str  # email | name | location | date | number | descriptor | generic


class SurfaceRow(BaseModel):
    """Denormalized trip projection used for candidate scoring."""
    model_config = ConfigDict(from_attributes=True)

    trip_id: int
    trip_name: str
    trip_slug: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    destinations: Optional[str] = None
    primary_client_name: Optional[str] = None
    primary_client_email: Optional[str] = None
    traveler_names: Optional[str] = "[]"
    traveler_emails: Optional[str] = "[]"
    normalized_trip_name: Optional[str] = ""
    normalized_destinations: Optional[str] = ""
    normalized_travelers: Optional[str] = ""
    normalized_emails: Optional[str] = ""
    search_tokens: Optional[str] = ""
    phonetic_tokens: Optional[str] = ""
    traveler_count: int = 0
    last_synced: Optional[datetime] = None


class TripSurfaceMatch(BaseModel):
    trip_id: int
    trip_name: str
    trip_slug: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[str] = None
    destinations: Optional[str] = None
    primary_client_name: Optional[str] = None
    primary_client_email: Optional[str] = None
    score: int
    matched_tokens: List[str] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)


class SemanticComponentMatch(BaseModel):
    component_type: str
    component_value: str
    search_weight: float
    query_value: str


class SemanticMatch(BaseModel):
    trip_id: int
    trip_name: Optional[str] = None
    score: float
    total_weight: float
    matched_components: List[SemanticComponentMatch] = Field(default_factory=list)


class NoResults(BaseModel):
    """Structured empty result; returned instead of raising."""
    query: str
    suggestion: str
    attempts: List[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    query: str
    search_mode: str = Field(..., description="exact | fuzzy")
    tier: str = Field(..., description="identifier | primary | secondary | emergency | exhausted")
    strategy: Optional[str] = None
    terms: List[ClassifiedTerm] = Field(default_factory=list)
    complexity: Optional[str] = Field(None, description="simple | moderate | complex")
    optimized_terms: List[str] = Field(default_factory=list)
    variations: List[str] = Field(default_factory=list)
    matches: List[TripSurfaceMatch] = Field(default_factory=list)
    suggestion: Optional[str] = None
    elapsed_ms: float = 0.0
