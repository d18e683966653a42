"""Pydantic schemas for DealHub API.

All request/response models are defined here for easy import.
"""

from dealhub.schemas.common import ApiResponse, ErrorDetail, ErrorResponse
from dealhub.schemas.deal import (
    BulkCreateResult,
    BulkDealCreateRequest,
    CoordinatesSchema,
    DealCreateRequest,
    DealEventRequest,
    DealItemSchema,
    DealListResponse,
    DealResponse,
    DealUpdateRequest,
    LocationSchema,
)
from dealhub.schemas.location import CandidateLocationResponse, LocationSearchResponse
from dealhub.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Deal
    "BulkCreateResult",
    "BulkDealCreateRequest",
    "CoordinatesSchema",
    "DealCreateRequest",
    "DealEventRequest",
    "DealItemSchema",
    "DealListResponse",
    "DealResponse",
    "DealUpdateRequest",
    "LocationSchema",
    # Location search
    "CandidateLocationResponse",
    "LocationSearchResponse",
    # Health
    "HealthCheckResponse",
]
