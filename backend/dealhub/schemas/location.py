"""Candidate location schemas for the admin location search endpoints."""

from typing import Dict, List, Optional

from pydantic import Field

from dealhub.schemas.deal import CamelModel


class CandidateLocationResponse(CamelModel):
    """A search result the admin can turn into a deal location."""

    lat: float
    lng: float
    name: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    display_name: str = ""
    place_id: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)


class LocationSearchResponse(CamelModel):
    """Response for local and nationwide searches."""

    status: str = "success"
    data: List[CandidateLocationResponse]
    count: int
    cached: bool = False
