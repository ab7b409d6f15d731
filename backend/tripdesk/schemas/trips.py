"""
Typed trip projections.
TripSnapshot is the single input every derived cache is rebuilt from.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TravelerInfo(BaseModel):
    email: str
    name: Optional[str] = None
    role: str = "traveler"


class DayInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_number: int
    day_date: Optional[date] = None
    title: Optional[str] = None


class ActivityInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_number: Optional[int] = None
    activity_type: Optional[str] = None
    name: Optional[str] = None
    cost: float = 0.0


class LegInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mode: Optional[str] = None
    depart_datetime: Optional[datetime] = None
    arrive_datetime: Optional[datetime] = None


class TripSnapshot(BaseModel):
    """Trip record plus travelers and schedule, as read from the source tables."""
    trip_id: int
    trip_name: str
    trip_slug: Optional[str] = None
    status: str = "planning"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    destinations: Optional[str] = None
    primary_client_email: Optional[str] = None
    primary_client_name: Optional[str] = None
    total_cost: Optional[float] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None
    travelers: List[TravelerInfo] = Field(default_factory=list)
    days: List[DayInfo] = Field(default_factory=list)
    activities: List[ActivityInfo] = Field(default_factory=list)
    legs: List[LegInfo] = Field(default_factory=list)


class FactsSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trip_id: int
    total_nights: int = 0
    total_hotels: int = 0
    total_activities: int = 0
    total_cost: float = 0.0
    transit_minutes: int = 0
    traveler_count: int = 0
    traveler_names: List[str] = Field(default_factory=list)
    traveler_emails: List[str] = Field(default_factory=list)
    primary_client_email: Optional[str] = None
    primary_client_name: Optional[str] = None
    version: int = 1
    last_computed: Optional[datetime] = None


class TripWithFacts(BaseModel):
    trip: TripSnapshot
    facts: Optional[FactsSummary] = None
    fresh: bool = Field(..., description="False when facts were stale and a refresh was deferred")
