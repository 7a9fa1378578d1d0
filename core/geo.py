"""
Location helpers: radius search boxes, rough address parsing and postal-code lookup.

Radius search is a bounding-box approximation (1 degree of latitude ~ 111 km,
longitude scaled by cos(lat)); the box is pushed down to SQL as plain range
filters on latitude/longitude.
"""
from __future__ import annotations

import logging
import math
import os
from typing import Dict, List, NamedTuple, Optional

import httpx

log = logging.getLogger("geo")

MILES_TO_KM = 1.60934
KM_PER_DEGREE = 111.0
DEFAULT_RADIUS_MILES = 10
DEFAULT_CENTER = (51.5074, -0.1278)  # London

GEONAMES_URL = "http://api.geonames.org/postalCodeSearchJSON"
GEONAMES_TIMEOUT_SECONDS = 8.0


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def bounding_box(lat: float, lng: float, radius_miles: float = DEFAULT_RADIUS_MILES) -> BoundingBox:
    radius_km = float(radius_miles) * MILES_TO_KM
    lat_delta = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    # Near the poles cos(lat) -> 0; clamp so the box stays finite.
    lng_delta = radius_km / (KM_PER_DEGREE * max(cos_lat, 1e-6))
    return BoundingBox(lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta)


def in_bounding_box(box: BoundingBox, lat, lng) -> bool:
    if lat is None or lng is None:
        return False
    return box.min_lat <= float(lat) <= box.max_lat and box.min_lng <= float(lng) <= box.max_lng


def location_prefix(location: str | None) -> str:
    """First comma-separated part of a free-text location ("Leeds, UK" -> "Leeds")."""
    return (location or "").split(",")[0].strip()


_CITY_COORDINATES = {
    "san francisco": (37.7749, -122.4194),
    "new york": (40.7128, -74.0060),
    "seattle": (47.6062, -122.3321),
    "austin": (30.2672, -97.7431),
    "chicago": (41.8781, -87.6298),
    "los angeles": (34.0522, -118.2437),
    "boston": (42.3601, -71.0589),
    "denver": (39.7392, -104.9903),
    "london": (51.5074, -0.1278),
    "manchester": (53.4808, -2.2426),
    "birmingham": (52.4862, -1.8904),
    "leeds": (53.8008, -1.5491),
    "glasgow": (55.8642, -4.2518),
    "edinburgh": (55.9533, -3.1883),
    "bristol": (51.4545, -2.5879),
    "cardiff": (51.4816, -3.1791),
    "berlin": (52.5200, 13.4050),
    "amsterdam": (52.3676, 4.9041),
    "toronto": (43.6532, -79.3832),
    "sydney": (-33.8688, 151.2093),
    "tokyo": (35.6762, 139.6503),
    "paris": (48.8566, 2.3522),
    "madrid": (40.4168, -3.7038),
    "rome": (41.9028, 12.4964),
    "zurich": (47.3769, 8.5417),
    "stockholm": (59.3293, 18.0686),
    "copenhagen": (55.6761, 12.5683),
}

_COUNTRY_COORDINATES = {
    "usa": (39.8283, -98.5795),
    "uk": (55.3781, -3.4360),
    "canada": (56.1304, -106.3468),
    "germany": (51.1657, 10.4515),
    "netherlands": (52.1326, 5.2913),
    "australia": (-25.2744, 133.7751),
    "france": (46.6034, 1.8883),
}

# (markers in the last address part, canonical name, city taken from 3rd-from-last part)
_COUNTRY_RULES = [
    (("usa", "united states"), "USA", True),
    (("uk", "united kingdom"), "UK", False),
    (("canada",), "Canada", True),
    (("germany",), "Germany", False),
    (("netherlands",), "Netherlands", False),
    (("australia",), "Australia", False),
]


def approximate_coordinates(city: str, country: str) -> tuple[float, float]:
    coords = _CITY_COORDINATES.get((city or "").strip().lower())
    if coords:
        return coords
    return _COUNTRY_COORDINATES.get((country or "").strip().lower(), (0.0, 0.0))


def parse_address(address: str) -> Optional[Dict]:
    """
    Pull city/country out of a comma-separated address and attach approximate
    coordinates. Returns None when there are fewer than two parts.
    """
    parts = [p.strip() for p in (address or "").split(",")]
    if len(parts) < 2:
        return None

    last = parts[-1].lower()
    country = parts[-1]
    city = parts[-2] or parts[0]
    for markers, name, city_third_last in _COUNTRY_RULES:
        if any(m in last for m in markers):
            country = name
            if city_third_last:
                # US/Canadian addresses put state + zip before the country.
                city = parts[-3] if len(parts) >= 3 else ""
            break

    lat, lng = approximate_coordinates(city, country)
    return {
        "address": address,
        "formatted_address": address,
        "latitude": lat,
        "longitude": lng,
        "city": city,
        "country": country,
    }


def is_valid_location_for_mapping(location: Optional[Dict]) -> bool:
    if not location:
        return False
    return (
        bool(location.get("latitude"))
        and bool(location.get("longitude"))
        and bool(location.get("city"))
        and bool(location.get("country"))
    )


async def lookup_postal_code(zip_code: str, country: str | None = None, client: httpx.AsyncClient | None = None) -> List[Dict]:
    """
    Query GeoNames for up to five places matching a postal code.
    Raises httpx.HTTPError on transport or status failures.
    """
    params = {
        "postalcode": zip_code,
        "country": country or "GB",
        "maxRows": 5,
        "username": os.getenv("GEONAMES_USERNAME", "demo"),
    }
    if client is None:
        async with httpx.AsyncClient(timeout=GEONAMES_TIMEOUT_SECONDS) as own_client:
            response = await own_client.get(GEONAMES_URL, params=params)
    else:
        response = await client.get(GEONAMES_URL, params=params)
    response.raise_for_status()

    data = response.json()
    return [
        {
            "postalCode": item.get("postalCode"),
            "placeName": item.get("placeName"),
            "adminName1": item.get("adminName1"),
            "countryCode": item.get("countryCode"),
        }
        for item in data.get("postalCodes") or []
    ]


__all__ = [
    "MILES_TO_KM",
    "KM_PER_DEGREE",
    "DEFAULT_RADIUS_MILES",
    "DEFAULT_CENTER",
    "BoundingBox",
    "bounding_box",
    "in_bounding_box",
    "location_prefix",
    "approximate_coordinates",
    "parse_address",
    "is_valid_location_for_mapping",
    "lookup_postal_code",
]
