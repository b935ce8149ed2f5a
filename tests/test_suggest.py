# tests/test_suggest.py
from app import suggest


def test_short_queries_return_empty_sets(db, make_listing):
    make_listing(city="Jaipur")
    assert suggest.suggestions(db, "j") == {"locations": [], "properties": []}
    assert suggest.suggestions(db, "  ") == {"locations": [], "properties": []}
    assert suggest.suggestions(db, None) == {"locations": [], "properties": []}


def test_location_suggestions_are_deduplicated(db, make_listing):
    make_listing(city="Jaipur", location="Jagatpura")
    make_listing(city="Jaipur", location="Jagatpura")
    make_listing(city="jaipur", location="Vaishali Nagar")
    make_listing(city="Ajmer", location="Ja Colony", status="sold")

    result = suggest.suggestions(db, "ja", limit=10)
    assert result["locations"] == ["Jaipur", "Jagatpura"]


def test_title_suggestions_respect_limit(db, make_listing):
    for i in range(5):
        make_listing(title=f"Sunny villa {i}")
    make_listing(title="Dark basement")
    result = suggest.suggestions(db, "villa", limit=3)
    assert len(result["properties"]) == 3
    assert all("villa" in p.title for p in result["properties"])


def test_price_buckets_are_static_and_half_open(db, make_listing):
    for price in (1000000, 5000000, 7499999, 7500000, 25000000):
        make_listing(price=price)
    make_listing(price=6000000, status="inactive")

    buckets = suggest.price_range_categories(db)
    assert [b["label"] for b in buckets] == [b["label"] for b in suggest.PRICE_BUCKETS]
    assert [b["count"] for b in buckets] == [1, 2, 1, 0, 1]


def test_search_facets(db, make_listing):
    make_listing(listing_type="flat", city="Jaipur", bedrooms=2, price=4000000, amenities=["parking", "lift"])
    make_listing(listing_type="flat", city="Jaipur", bedrooms=3, price=6000000, amenities=["parking"])
    make_listing(listing_type="villa", city="Udaipur", bedrooms=4, price=9000000, amenities=["garden"])
    make_listing(listing_type="plot", city="Kota", bedrooms=0, price=1000000, is_active=False)

    facets = suggest.search_facets(db)
    assert facets["types"] == [{"value": "flat", "count": 2}, {"value": "villa", "count": 1}]
    assert facets["cities"][0] == {"value": "Jaipur", "count": 2}
    assert [b["value"] for b in facets["bedroom_options"]] == [2, 3, 4]
    assert facets["amenities"][0] == {"value": "parking", "count": 2}
    assert facets["price_range"]["min"] == 4000000
    assert facets["price_range"]["max"] == 9000000
    assert len(facets["price_buckets"]) == 5


def test_popular_locations_and_stats(db, make_listing):
    make_listing(location="Civil Lines", view_count=5, price=2000000)
    make_listing(location="Civil Lines", view_count=7, price=4000000, listing_type="villa")
    make_listing(location="Raja Park", view_count=20)

    popular = suggest.popular_locations(db, limit=5)
    assert popular[0] == {"term": "Raja Park", "type": "location", "count": 20}
    assert popular[1]["count"] == 12

    stats = suggest.location_stats(db, city="jaipur")
    civil = next(s for s in stats if s["location"] == "Civil Lines")
    assert civil["count"] == 2
    assert civil["avg_price"] == 3000000
    assert civil["types"] == ["flat", "villa"]
