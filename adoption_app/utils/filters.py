"""
Filtering and sorting of listing collections.

Filters are applied in memory to the live listing snapshot; every dimension
left empty matches all listings. Filter state round-trips through flat query
parameters so a browse URL can be shared.
"""
import math
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from .. import catalog
from ..models.listing import Listing, SEXES, status_rank

POSTED_WINDOWS = {
    "24h": 24 * 60 * 60,
    "7d": 7 * 24 * 60 * 60,
    "30d": 30 * 24 * 60 * 60,
}

PARAM_POSTED = "posted"
PARAM_ANIMAL = "animal"
PARAM_BREED = "breed"
PARAM_CITIES = "cities"
PARAM_SEX = "sex"
PARAM_AGE_MIN = "ageMin"
PARAM_AGE_MAX = "ageMax"


@dataclass(frozen=True)
class ListingFilter:
    """Filter criteria for browsing listings."""
    posted: str = ""
    animal: str = ""
    breed: str = ""
    cities: tuple = ()
    sex: str = ""
    age_min: Optional[float] = None
    age_max: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return bool(
            self.posted or self.animal or self.breed or self.cities or self.sex
            or self.age_min is not None or self.age_max is not None
        )

    def matches(self, listing: Listing, now: Optional[float] = None) -> bool:
        """
        Check a listing against every specified predicate.

        Args:
            listing: Listing to test
            now: Current time in epoch seconds (defaults to time.time())

        Returns:
            bool: True if all non-empty predicates hold
        """
        window = POSTED_WINDOWS.get(self.posted)
        if window:
            now = time.time() if now is None else now
            if listing.created_timestamp < now - window:
                return False

        if self.animal and listing.animal_type != self.animal:
            return False
        if self.breed and listing.breed != self.breed:
            return False
        if self.cities and listing.city not in self.cities:
            return False
        if self.sex and listing.sex != self.sex:
            return False

        age = listing.age_years
        if self.age_min is not None:
            if age is None or float(age) < self.age_min:
                return False
        if self.age_max is not None:
            if age is None or float(age) > self.age_max:
                return False

        return True


def apply_filter(listings: Iterable[Listing], listing_filter: ListingFilter,
                 now: Optional[float] = None) -> list[Listing]:
    """Return the listings passing ``listing_filter``, in input order."""
    now = time.time() if now is None else now
    return [x for x in listings if listing_filter.matches(x, now)]


def sort_listings(listings: Iterable[Listing]) -> list[Listing]:
    """
    Sort listings by status rank, then newest first.

    Available listings come first, then reserved, then everything else.
    The sort is stable: listings with identical rank and creation time keep
    their input order.
    """
    return sorted(listings, key=lambda x: (status_rank(x.status), -x.created_timestamp))


def filter_and_sort(listings: Iterable[Listing], listing_filter: ListingFilter,
                    now: Optional[float] = None) -> list[Listing]:
    return sort_listings(apply_filter(listings, listing_filter, now))


def city_options(listings: Iterable[Listing]) -> list[str]:
    """Distinct non-empty city names, sorted case-insensitively."""
    cities = {(x.city or "").strip() for x in listings}
    cities.discard("")
    return sorted(cities, key=lambda c: (c.casefold(), c))


def breed_options(listing_filter: ListingFilter) -> list[str]:
    return catalog.breeds_for(listing_filter.animal)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _parse_number(raw: Optional[str]) -> Optional[float]:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def serialize_filter_params(listing_filter: ListingFilter) -> dict:
    """
    Convert a filter to flat query parameters.

    Empty dimensions are omitted; cities are comma-joined.
    """
    params = {}
    if listing_filter.posted:
        params[PARAM_POSTED] = listing_filter.posted
    if listing_filter.animal:
        params[PARAM_ANIMAL] = listing_filter.animal
    if listing_filter.breed:
        params[PARAM_BREED] = listing_filter.breed
    if listing_filter.cities:
        params[PARAM_CITIES] = ",".join(listing_filter.cities)
    if listing_filter.sex:
        params[PARAM_SEX] = listing_filter.sex
    if listing_filter.age_min is not None:
        params[PARAM_AGE_MIN] = _format_number(listing_filter.age_min)
    if listing_filter.age_max is not None:
        params[PARAM_AGE_MAX] = _format_number(listing_filter.age_max)
    return params


def parse_filter_params(params) -> ListingFilter:
    """
    Rebuild a filter from query parameters.

    Unknown windows or sexes, malformed or negative ages, and a breed given
    without an animal are ignored.

    Args:
        params: Mapping of parameter name to string value (e.g. request.args)

    Returns:
        ListingFilter: Parsed filter
    """
    posted = (params.get(PARAM_POSTED) or "").strip()
    if posted not in POSTED_WINDOWS:
        posted = ""

    animal = (params.get(PARAM_ANIMAL) or "").strip()
    breed = (params.get(PARAM_BREED) or "").strip() if animal else ""

    raw_cities = params.get(PARAM_CITIES) or ""
    cities = []
    for city in raw_cities.split(","):
        city = city.strip()
        if city and city not in cities:
            cities.append(city)

    sex = (params.get(PARAM_SEX) or "").strip()
    if sex not in SEXES:
        sex = ""

    return ListingFilter(
        posted=posted,
        animal=animal,
        breed=breed,
        cities=tuple(cities),
        sex=sex,
        age_min=_parse_number(params.get(PARAM_AGE_MIN)),
        age_max=_parse_number(params.get(PARAM_AGE_MAX)),
    )
