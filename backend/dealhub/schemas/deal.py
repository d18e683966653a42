"""Deal Pydantic schemas for request/response validation.

The wire format is camelCase (``storeName``, ``expiresAt``) to match the
web client; Python code uses the snake_case field names.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dealhub.models.deal import Deal


DealCategory = Literal["restaurant", "grocery", "gas", "coffee"]
DealBadge = Literal["great-deal", "ends-soon", "trending", "new"]
SortOption = Literal["closest", "highest-discount", "trending"]


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LocationSchema(CamelModel):
    """Store location: coordinates plus free-text address parts."""

    lat: float
    lng: float
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class DealItemSchema(CamelModel):
    """A sub-deal offered by the same store."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(..., min_length=1)
    description: str = ""
    image: Optional[str] = None
    discount: int = Field(..., ge=0, le=100)
    original_price: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    badge: Optional[DealBadge] = None
    expires_at: Optional[datetime] = None
    partner_app_url: Optional[str] = None
    partner_app_name: Optional[str] = None


class DealBase(CamelModel):
    """Fields shared by single and bulk deal creation."""

    store_name: str = Field(..., min_length=1, max_length=200)
    category: DealCategory
    title: str = Field(..., min_length=1, max_length=500)
    image: str = Field(..., min_length=1, max_length=1000)
    discount: int = Field(..., ge=0, le=100, description="Discount percentage")
    store_logo: Optional[str] = None
    description: str = ""
    original_price: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    badge: Optional[DealBadge] = None
    expires_at: Optional[datetime] = Field(
        None,
        description="Defaults to DEFAULT_DEAL_TTL_DAYS from now when omitted",
    )
    partner_app_url: Optional[str] = None
    partner_app_name: Optional[str] = None
    deals: List[DealItemSchema] = []

    @field_validator("store_name", "title")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class DealCreateRequest(DealBase):
    """Request body for ``POST /deals``."""

    location: LocationSchema


class BulkDealCreateRequest(DealBase):
    """One deal body replicated across several selected store locations."""

    locations: List[LocationSchema] = Field(..., min_length=1, max_length=5000)


class DealUpdateRequest(CamelModel):
    """Partial update; only fields present in the body are applied."""

    store_name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[DealCategory] = None
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    image: Optional[str] = Field(None, min_length=1, max_length=1000)
    discount: Optional[int] = Field(None, ge=0, le=100)
    store_logo: Optional[str] = None
    description: Optional[str] = None
    original_price: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    badge: Optional[DealBadge] = None
    expires_at: Optional[datetime] = None
    partner_app_url: Optional[str] = None
    partner_app_name: Optional[str] = None
    location: Optional[LocationSchema] = None
    deals: Optional[List[DealItemSchema]] = None


class DealEventRequest(CamelModel):
    """Engagement event recorded against a deal."""

    type: Literal["view", "click"]


class CoordinatesSchema(CamelModel):
    lat: float
    lng: float


class DealResponse(CamelModel):
    """Standard deal response schema."""

    id: UUID
    store_name: str
    store_logo: Optional[str] = None
    category: str
    title: str
    description: str = ""
    image: str
    discount: int
    original_price: Optional[float] = None
    discounted_price: Optional[float] = None
    location: LocationSchema
    distance: Optional[float] = Field(None, description="Distance from the origin in km")
    badge: Optional[str] = None
    expires_at: datetime
    views: int = 0
    clicks: int = 0
    partner_app_url: Optional[str] = None
    partner_app_name: Optional[str] = None
    deals: List[DealItemSchema] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, deal: Deal, distance: Optional[float] = None) -> "DealResponse":
        """Build the wire representation from a row, nesting the location."""
        return cls(
            id=deal.id,
            store_name=deal.store_name,
            store_logo=deal.store_logo,
            category=deal.category,
            title=deal.title,
            description=deal.description or "",
            image=deal.image,
            discount=deal.discount,
            original_price=float(deal.original_price) if deal.original_price is not None else None,
            discounted_price=float(deal.discounted_price) if deal.discounted_price is not None else None,
            location=LocationSchema(
                lat=deal.latitude,
                lng=deal.longitude,
                address=deal.address or "",
                city=deal.city or "",
                state=deal.state or "",
                zip_code=deal.zip_code or "",
            ),
            distance=distance,
            badge=deal.badge,
            expires_at=deal.expires_at,
            views=deal.views or 0,
            clicks=deal.clicks or 0,
            partner_app_url=deal.partner_app_url,
            partner_app_name=deal.partner_app_name,
            deals=[DealItemSchema.model_validate(item) for item in (deal.items or [])],
            created_at=deal.created_at,
        )


class DealListResponse(CamelModel):
    """Response for ``GET /deals``."""

    status: str = "success"
    data: List[DealResponse]
    count: int
    center: CoordinatesSchema


class BulkCreateResult(CamelModel):
    created: List[DealResponse]
    count: int
