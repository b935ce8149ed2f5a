# app/models.py
"""SQLAlchemy ORM models for persisted entities.

`Listing` is the searchable property record (with its amenity rows) and
`ViewEvent` is one recorded visit to a listing's detail page.
"""
import enum
from sqlalchemy import (
    Boolean, Column, Float, ForeignKey, Index, Integer, Numeric, Text, TIMESTAMP,
)
from sqlalchemy.orm import relationship
from .db import Base
from .utils import utcnow


class ListingType(str, enum.Enum):
    flat = "flat"
    plot = "plot"
    villa = "villa"
    commercial = "commercial"


class ListingStatus(str, enum.Enum):
    active = "active"
    sold = "sold"
    rented = "rented"
    pending = "pending"
    inactive = "inactive"


class ViewSource(str, enum.Enum):
    direct = "direct"
    search = "search"
    featured = "featured"
    trending = "trending"
    similar = "similar"
    profile = "profile"
    favorites = "favorites"
    notification = "notification"
    external = "external"
    other = "other"


class DeviceType(str, enum.Enum):
    desktop = "desktop"
    mobile = "mobile"
    tablet = "tablet"
    unknown = "unknown"


class Listing(Base):
    __tablename__ = "listings"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, default="")
    listing_type = Column(Text, nullable=False, index=True)
    price = Column(Numeric(14, 2), nullable=False)
    area = Column(Float, default=0)
    bedrooms = Column(Integer, default=0)
    bathrooms = Column(Integer, default=0)
    city = Column(Text, default="")
    location = Column(Text, default="")
    latitude = Column(Float)
    longitude = Column(Float)
    facing = Column(Text)
    furnishing = Column(Text)
    parking = Column(Integer, default=0)
    status = Column(Text, nullable=False, default=ListingStatus.active.value)
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)
    unique_views = Column(Integer, nullable=False, default=0)
    trend_score = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    amenity_rows = relationship(
        "ListingAmenity", lazy="selectin", cascade="all, delete-orphan", back_populates="listing"
    )

    @property
    def amenities(self):
        return sorted(row.amenity for row in self.amenity_rows)


class ListingAmenity(Base):
    __tablename__ = "listing_amenities"
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True)
    amenity = Column(Text, primary_key=True)

    listing = relationship("Listing", back_populates="amenity_rows")


class ViewEvent(Base):
    __tablename__ = "view_events"
    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    viewer_id = Column(Text, index=True)
    session_id = Column(Text, nullable=False, index=True)
    ip_address = Column(Text)
    user_agent = Column(Text)
    device_type = Column(Text, nullable=False, default=DeviceType.unknown.value)
    browser = Column(Text)
    os = Column(Text)
    origin_city = Column(Text)
    origin_state = Column(Text)
    origin_country = Column(Text)
    referrer = Column(Text)
    source = Column(Text, nullable=False, default=ViewSource.direct.value, index=True)
    search_query = Column(Text)
    view_duration = Column(Float, nullable=False, default=0)
    scroll_depth = Column(Float, nullable=False, default=0)

    image_views = Column(Integer, nullable=False, default=0)
    image_gallery_opened = Column(Boolean, nullable=False, default=False)
    map_viewed = Column(Boolean, nullable=False, default=False)
    contact_clicked = Column(Boolean, nullable=False, default=False)
    phone_revealed = Column(Boolean, nullable=False, default=False)
    whatsapp_clicked = Column(Boolean, nullable=False, default=False)
    share_clicked = Column(Boolean, nullable=False, default=False)
    favorited = Column(Boolean, nullable=False, default=False)
    inquiry_sent = Column(Boolean, nullable=False, default=False)

    engagement_score = Column(Integer, nullable=False, default=0)
    is_high_intent = Column(Boolean, nullable=False, default=False)
    bounced = Column(Boolean, nullable=False, default=False, index=True)
    is_unique = Column(Boolean, nullable=False, default=True, index=True)
    viewed_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, index=True)
    exited_at = Column(TIMESTAMP(timezone=True))

    listing = relationship("Listing")


Index("idx_listings_price", Listing.price)
Index("idx_listings_created_at", Listing.created_at)
Index("idx_listings_status_active", Listing.status, Listing.is_active)
Index("idx_listings_city", Listing.city)
Index("idx_listings_view_count", Listing.view_count)
Index("idx_view_events_listing_viewed", ViewEvent.listing_id, ViewEvent.viewed_at)
Index("idx_view_events_session_listing", ViewEvent.session_id, ViewEvent.listing_id)
