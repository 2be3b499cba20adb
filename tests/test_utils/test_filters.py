"""
Tests for listing filtering, sorting and filter query parameters.
"""
import pytest
from adoption_app.models.listing import Listing
from adoption_app.utils.filters import (
    ListingFilter, apply_filter, sort_listings, filter_and_sort, city_options, breed_options,
    serialize_filter_params, parse_filter_params,
)

NOW = 1_700_000_000.0
HOUR = 60 * 60
DAY = 24 * HOUR


def make_listing(listing_id, **kwargs):
    values = dict(owner_uid="u1", title="t", city="Osijek", description="d",
                  animal_type="dog", breed="Unknown", created_at=NOW - HOUR)
    values.update(kwargs)
    return Listing(id=listing_id, **values)


@pytest.fixture
def listings():
    return [
        make_listing("a", animal_type="dog", breed="Labrador Retriever", sex="male", age_years=2,
                     city="Osijek", created_at=NOW - 2 * HOUR),
        make_listing("b", animal_type="cat", breed="Persian", sex="female", age_years=None,
                     city="Zagreb", created_at=NOW - 3 * DAY),
        make_listing("c", animal_type="dog", breed="Unknown", sex="female", age_years=7,
                     city="Split", created_at=NOW - 20 * DAY, status="reserved"),
        make_listing("d", animal_type="bird", breed="Canary", sex="unknown", age_years=0.5,
                     city="Zagreb", created_at=NOW - 60 * DAY, status="adopted"),
        make_listing("e", animal_type="dog", breed="Labrador Retriever", sex="male", age_years=4,
                     city="Osijek", created_at=None),
    ]


def ids(items):
    return [x.id for x in items]


class TestListingFilter:
    """Tests for individual filter predicates."""

    def test_empty_filter_matches_all(self, listings):
        """Test absence of every dimension matches everything."""
        assert ids(apply_filter(listings, ListingFilter(), NOW)) == ["a", "b", "c", "d", "e"]
        assert not ListingFilter().is_active

    @pytest.mark.parametrize("posted,expected", [
        ("24h", ["a"]),
        ("7d", ["a", "b"]),
        ("30d", ["a", "b", "c"]),
    ])
    def test_posted_window(self, listings, posted, expected):
        """Test posting-age windows; a missing created_at is excluded."""
        assert ids(apply_filter(listings, ListingFilter(posted=posted), NOW)) == expected

    def test_animal_and_breed(self, listings):
        """Test exact animal and breed match."""
        f = ListingFilter(animal="dog", breed="Labrador Retriever")
        assert ids(apply_filter(listings, f, NOW)) == ["a", "e"]

    def test_cities_match_any(self, listings):
        """Test cities are a match-any set."""
        f = ListingFilter(cities=("Zagreb", "Split"))
        assert ids(apply_filter(listings, f, NOW)) == ["b", "c", "d"]

    def test_sex(self, listings):
        """Test exact sex match."""
        assert ids(apply_filter(listings, ListingFilter(sex="female"), NOW)) == ["b", "c"]

    def test_age_bounds_inclusive(self, listings):
        """Test inclusive bounds; null ages fail any bound."""
        assert ids(apply_filter(listings, ListingFilter(age_min=2, age_max=4), NOW)) == ["a", "e"]
        assert ids(apply_filter(listings, ListingFilter(age_max=100), NOW)) == ["a", "c", "d", "e"]
        assert "b" not in ids(apply_filter(listings, ListingFilter(age_min=0), NOW))

    def test_conjunction(self, listings):
        """Test results are a subset satisfying every predicate independently."""
        filters = [
            ListingFilter(animal="dog", sex="female"),
            ListingFilter(posted="30d", cities=("Osijek",)),
            ListingFilter(animal="dog", age_min=3, cities=("Osijek", "Split")),
        ]
        for combined in filters:
            result = apply_filter(listings, combined, NOW)
            assert set(ids(result)) <= set(ids(listings))
            singles = [
                ListingFilter(posted=combined.posted), ListingFilter(animal=combined.animal),
                ListingFilter(cities=combined.cities), ListingFilter(sex=combined.sex),
                ListingFilter(age_min=combined.age_min), ListingFilter(age_max=combined.age_max),
            ]
            for listing in result:
                assert all(single.matches(listing, NOW) for single in singles)
            for listing in listings:
                if listing not in result:
                    assert not all(single.matches(listing, NOW) for single in singles)


class TestSortListings:
    """Tests for the browse sort order."""

    def test_status_groups_then_newest(self, listings):
        """Test available first, then reserved, then the rest; newest first within a group."""
        assert ids(sort_listings(listings)) == ["a", "b", "e", "c", "d"]

    def test_stable_for_identical_keys(self):
        """Test identical rank and timestamp keep input order."""
        items = [make_listing(str(i), created_at=NOW) for i in range(5)]
        assert ids(sort_listings(items)) == ["0", "1", "2", "3", "4"]
        assert ids(sort_listings(list(reversed(items)))) == ["4", "3", "2", "1", "0"]

    def test_filter_and_sort(self, listings):
        """Test filtering then sorting."""
        assert ids(filter_and_sort(listings, ListingFilter(animal="dog"), NOW)) == ["a", "e", "c"]


class TestOptions:
    """Tests for filter option helpers."""

    def test_city_options(self):
        """Test distinct trimmed cities sorted case-insensitively."""
        items = [make_listing("1", city="zagreb"), make_listing("2", city="Osijek"),
                 make_listing("3", city="Osijek"), make_listing("4", city="")]
        assert city_options(items) == ["Osijek", "zagreb"]

    def test_breed_options(self):
        """Test breed options follow the selected animal."""
        assert breed_options(ListingFilter()) == []
        assert breed_options(ListingFilter(animal="cat")) == ["Persian", "Unknown"]


class TestFilterParams:
    """Tests for the shareable query-parameter representation."""

    @pytest.mark.parametrize("listing_filter", [
        ListingFilter(),
        ListingFilter(posted="7d"),
        ListingFilter(animal="dog", breed="Golden Retriever"),
        ListingFilter(cities=("Osijek", "Slavonski Brod")),
        ListingFilter(sex="female", age_min=0.5, age_max=3),
        ListingFilter(posted="24h", animal="cat", breed="Persian", cities=("Zagreb",),
                      sex="male", age_min=1, age_max=12.75),
    ])
    def test_round_trip(self, listing_filter):
        """Test parse(serialize(f)) == f."""
        assert parse_filter_params(serialize_filter_params(listing_filter)) == listing_filter

    def test_round_trip_preserves_results(self, listings):
        """Test a reconstructed filter yields the same filtered, sorted result."""
        f = ListingFilter(animal="dog", cities=("Osijek", "Split"), age_min=2)
        rebuilt = parse_filter_params(serialize_filter_params(f))
        assert ids(filter_and_sort(listings, rebuilt, NOW)) == ids(filter_and_sort(listings, f, NOW))

    def test_serialize(self):
        """Test parameter names and formatting."""
        params = serialize_filter_params(ListingFilter(cities=("A", "B"), age_min=2.0, age_max=2.5))
        assert params == {"cities": "A,B", "ageMin": "2", "ageMax": "2.5"}

    def test_parse_ignores_invalid(self):
        """Test malformed values are dropped."""
        f = parse_filter_params({
            "posted": "1y", "sex": "robot", "ageMin": "abc", "ageMax": "-2",
            "breed": "Persian", "cities": " Zagreb ,,Zagreb,Split ",
        })
        assert f == ListingFilter(cities=("Zagreb", "Split"))
