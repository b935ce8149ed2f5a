# app/query.py
"""Query compiler: turns raw search parameters into a `CompiledQuery`.

Input is untyped (query-string values arrive as strings), so every field is
parsed here and validated before anything touches the store. Range errors raise
`InvalidRange`, malformed values raise `InvalidQuery`; both carry the name of
the offending field.
"""
import enum
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from .errors import InvalidQuery, InvalidRange
from .models import ListingType

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100
MIN_SUGGESTION_CHARS = 2
# largest value the store binds as an integer (offsets and integer filters)
MAX_STORE_INT = 2**31 - 1

_ws = re.compile(r"\s+")
_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class SortKey(str, enum.Enum):
    relevance = "relevance"
    price_asc = "price_asc"
    price_desc = "price_desc"
    area_asc = "area_asc"
    area_desc = "area_desc"
    newest = "newest"
    oldest = "oldest"
    popular = "popular"
    trending = "trending"


@dataclass(frozen=True)
class Range:
    low: Optional[float] = None
    high: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.low is None and self.high is None


@dataclass(frozen=True)
class CompiledQuery:
    text: Optional[str] = None
    listing_type: Optional[str] = None
    price: Range = field(default_factory=Range)
    area: Range = field(default_factory=Range)
    bedrooms: Range = field(default_factory=Range)
    min_bathrooms: Optional[int] = None
    city: Optional[str] = None
    location: Optional[str] = None
    amenities: Tuple[str, ...] = ()
    facing: Optional[str] = None
    furnishing: Optional[str] = None
    min_parking: Optional[int] = None
    is_featured: Optional[bool] = None
    is_verified: Optional[bool] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    requested_sort: SortKey = SortKey.relevance
    sort: SortKey = SortKey.newest

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def has_suggestion_text(self) -> bool:
        return self.text is not None and len(self.text) >= MIN_SUGGESTION_CHARS

    def describe(self) -> dict:
        """Echo of the applied filters, returned alongside results."""
        return {
            "query": self.text,
            "type": self.listing_type,
            "price_range": {"min": self.price.low, "max": self.price.high},
            "area_range": {"min": self.area.low, "max": self.area.high},
            "bedrooms": {"min": self.bedrooms.low, "max": self.bedrooms.high},
            "city": self.city,
            "location": self.location,
            "amenities": list(self.amenities) or None,
            "sort_by": self.sort.value,
        }


def normalize_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = _ws.sub(" ", str(value)).strip()
    return text or None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_number(params: Mapping[str, Any], name: str, integer: bool = False):
    value = params.get(name)
    if _blank(value):
        return None
    if isinstance(value, bool):
        raise InvalidQuery(f"{name} must be a number", field=name)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidQuery(f"{name} must be a number, got {value!r}", field=name)
    if number != number or number in (float("inf"), float("-inf")):
        raise InvalidQuery(f"{name} must be a finite number", field=name)
    number = max(0.0, number)
    if integer and number > MAX_STORE_INT:
        raise InvalidQuery(f"{name} must be at most {MAX_STORE_INT}", field=name)
    return int(number) if integer else number


def parse_bool(params: Mapping[str, Any], name: str) -> Optional[bool]:
    value = params.get(name)
    if _blank(value):
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidQuery(f"{name} must be true or false, got {value!r}", field=name)


def parse_range(params: Mapping[str, Any], low_name: str, high_name: str, integer: bool = False) -> Range:
    low = parse_number(params, low_name, integer=integer)
    high = parse_number(params, high_name, integer=integer)
    if low is not None and high is not None and low > high:
        raise InvalidRange(f"{low_name} ({low}) cannot exceed {high_name} ({high})", field=low_name)
    return Range(low, high)


def parse_amenities(value: Any) -> Tuple[str, ...]:
    if _blank(value):
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    seen = []
    for item in items:
        name = normalize_text(item)
        if name and name.lower() not in seen:
            seen.append(name.lower())
    return tuple(seen)


def parse_enum(params: Mapping[str, Any], name: str, enum_cls, default=None):
    value = params.get(name)
    if _blank(value):
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidQuery(f"{name} must be one of: {allowed}", field=name)


def resolve_sort(requested: SortKey, text: Optional[str]) -> SortKey:
    if requested is SortKey.relevance and not text:
        return SortKey.newest
    return requested


def compile_search(params: Mapping[str, Any]) -> CompiledQuery:
    text = normalize_text(params.get("q"))
    listing_type = parse_enum(params, "type", ListingType)

    page = parse_number(params, "page", integer=True)
    page = max(1, page or 1)
    # oversized limits clamp rather than fail
    limit = parse_number(params, "limit")
    page_size = DEFAULT_PAGE_SIZE if limit is None else int(min(MAX_PAGE_SIZE, max(1, limit)))
    if (page - 1) * page_size > MAX_STORE_INT:
        raise InvalidQuery(f"page {page} is beyond the last reachable page", field="page")

    requested = parse_enum(params, "sort_by", SortKey, default=SortKey.relevance)

    return CompiledQuery(
        text=text,
        listing_type=listing_type.value if listing_type else None,
        price=parse_range(params, "min_price", "max_price"),
        area=parse_range(params, "min_area", "max_area"),
        bedrooms=parse_range(params, "min_bedrooms", "max_bedrooms", integer=True),
        min_bathrooms=parse_number(params, "bathrooms", integer=True),
        city=normalize_text(params.get("city")),
        location=normalize_text(params.get("location")),
        amenities=parse_amenities(params.get("amenities")),
        facing=normalize_text(params.get("facing")),
        furnishing=normalize_text(params.get("furnishing")),
        min_parking=parse_number(params, "parking", integer=True),
        is_featured=parse_bool(params, "is_featured"),
        is_verified=parse_bool(params, "is_verified"),
        page=page,
        page_size=page_size,
        requested_sort=requested,
        sort=resolve_sort(requested, text),
    )
