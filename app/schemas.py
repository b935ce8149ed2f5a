# app/schemas.py
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime
from .models import DeviceType, ViewSource

class ListingOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    listing_type: str
    price: float
    area: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    city: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    facing: Optional[str] = None
    furnishing: Optional[str] = None
    parking: Optional[int] = None
    amenities: List[str] = []
    status: str
    is_featured: bool
    is_verified: bool
    view_count: int
    unique_views: int
    trend_score: int = 0
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

    @field_validator("price", mode="before")
    @classmethod
    def _decimal_price(cls, v):
        return float(v) if isinstance(v, Decimal) else v

class SearchHit(ListingOut):
    relevance: Optional[int] = None

class Pagination(BaseModel):
    current_page: int = Field(..., serialization_alias="currentPage")
    total_pages: int = Field(..., serialization_alias="totalPages")
    total_items: int = Field(..., serialization_alias="totalItems")
    items_per_page: int = Field(..., serialization_alias="itemsPerPage")

class SearchResponse(BaseModel):
    results: List[SearchHit]
    pagination: Pagination
    filters: Dict[str, object]

class ListingSuggestion(BaseModel):
    id: int
    title: str
    listing_type: str
    city: Optional[str] = None
    location: Optional[str] = None
    price: float
    class Config:
        from_attributes = True

    @field_validator("price", mode="before")
    @classmethod
    def _decimal_price(cls, v):
        return float(v) if isinstance(v, Decimal) else v

class SuggestionsResponse(BaseModel):
    locations: List[str]
    properties: List[ListingSuggestion]

class TrendingItem(BaseModel):
    listing: ListingOut
    raw_views: int
    unique_views: int
    inquiries: int
    trend_score: int

class TrendingResponse(BaseModel):
    window_days: int
    items: List[TrendingItem]

class NearbyItem(ListingOut):
    distance_km: float

class NearbyResponse(BaseModel):
    results: List[NearbyItem]
    count: int
    search_center: Dict[str, float]
    radius_km: float

class InteractionFlags(BaseModel):
    image_gallery_opened: bool = False
    map_viewed: bool = False
    contact_clicked: bool = False
    phone_revealed: bool = False
    whatsapp_clicked: bool = False
    share_clicked: bool = False
    favorited: bool = False
    inquiry_sent: bool = False

class ViewEventIn(BaseModel):
    listing_id: int
    session_id: str = Field(..., min_length=1, max_length=255)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: Optional[DeviceType] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    origin_city: Optional[str] = None
    origin_state: Optional[str] = None
    origin_country: Optional[str] = None
    referrer: Optional[str] = None
    source: ViewSource = ViewSource.direct
    search_query: Optional[str] = None
    view_duration: float = Field(0, ge=0)
    scroll_depth: float = Field(0, ge=0, le=100)
    image_views: int = Field(0, ge=0)
    interactions: InteractionFlags = InteractionFlags()

class ViewEventOut(BaseModel):
    id: int
    listing_id: int
    viewer_id: Optional[str] = None
    session_id: str
    device_type: str
    source: str
    view_duration: float
    scroll_depth: float
    image_views: int
    image_gallery_opened: bool
    map_viewed: bool
    contact_clicked: bool
    phone_revealed: bool
    whatsapp_clicked: bool
    share_clicked: bool
    favorited: bool
    inquiry_sent: bool
    engagement_score: int
    is_high_intent: bool
    bounced: bool
    is_unique: bool
    viewed_at: datetime
    exited_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class InteractionUpdate(BaseModel):
    interaction: str = Field(..., min_length=1)

class ViewSessionEnd(BaseModel):
    view_duration: float = Field(..., ge=0)
    scroll_depth: float = Field(..., ge=0, le=100)
