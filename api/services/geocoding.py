# SPDX-License-Identifier: Apache-2.0

"""
Place search and reverse geocoding through the Photon geocoder.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import ConnectTimeout, ReadTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential
from opentelemetry import trace

from models.entities import LocationAddress, LocationResult, ReverseGeocodeResult

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://photon.komoot.io"
MIN_SEARCH_LENGTH = 3
SEARCH_SUFFIX = " Brasil DF"


class GeocodingError(Exception):
    """Raised when the geocoder cannot be reached or answers garbage."""


def display_name(properties: Dict[str, Any]) -> str:
    """Join name, street, city, state and country of a Photon feature."""
    parts = [
        properties.get("name"),
        properties.get("street"),
        properties.get("city"),
        properties.get("state"),
        properties.get("country"),
    ]
    return ", ".join(str(p) for p in parts if p)


def admin_region(properties: Dict[str, Any]) -> Optional[str]:
    """Administrative region of a feature: state, city, county or district."""
    for key in ("state", "city", "county", "district"):
        if properties.get(key):
            return properties[key]
    return None


def feature_to_location(feature: Dict[str, Any]) -> LocationResult:
    """
    Map a Photon GeoJSON feature to a search result.

    Args:
        feature: GeoJSON feature

    Returns:
        LocationResult
    """
    properties = feature.get("properties") or {}
    coordinates = (feature.get("geometry") or {}).get("coordinates") or []

    place_id = properties.get("osm_id") or properties.get("id") or str(uuid.uuid4())
    lon = coordinates[0] if len(coordinates) > 0 else ""
    lat = coordinates[1] if len(coordinates) > 1 else ""

    return LocationResult(
        place_id=str(place_id),
        display_name=display_name(properties),
        lat=str(lat),
        lon=str(lon),
        address=LocationAddress(
            city=properties.get("city"),
            state=properties.get("state"),
            country=properties.get("country"),
            suburb=properties.get("district"),
            road=properties.get("street"),
            county=properties.get("county"),
        )
    )


class GeocodingService:
    """Photon client used by the location search and map picker."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None
    ):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = (5, timeout)
        self.session = session or requests.Session()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_random_exponential(multiplier=1, max=10),
        retry=(retry_if_exception_type(ConnectTimeout) | retry_if_exception_type(ReadTimeout)),
        reraise=True,
    )
    def _get(self, path: str, params: Dict[str, Any]) -> requests.Response:
        return self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)

    def _features(self, operation: str, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with tracer.start_as_current_span(f"geocoding.{operation}") as span:
            try:
                response = self._get(path, params)
                response.raise_for_status()
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                span.set_attribute("geocoding.result", "error")
                logger.error(f"Geocoding {operation} failed: {str(e)}")
                raise GeocodingError(f"Geocoding {operation} failed: {str(e)}") from e

            features = data.get("features") if isinstance(data, dict) else None
            if not isinstance(features, list):
                features = []

            span.set_attribute("geocoding.result_count", len(features))
            return features

    def search(self, term: str, limit: int = 5) -> List[LocationResult]:
        """
        Search places in the Federal District.

        Args:
            term: Free text typed by the citizen
            limit: Maximum number of results

        Returns:
            Matching places; empty for terms shorter than three characters
        """
        term = (term or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []

        features = self._features("search", "/api/", {"q": term + SEARCH_SUFFIX, "limit": limit})
        return [feature_to_location(f) for f in features if isinstance(f, dict)]

    def reverse(self, lat: float, lng: float) -> ReverseGeocodeResult:
        """
        Label and administrative region of a map point.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            ReverseGeocodeResult (label and region None when unknown)
        """
        features = self._features("reverse", "/reverse", {"lat": lat, "lon": lng, "limit": 1})
        properties = (features[0].get("properties") or {}) if features else {}

        return ReverseGeocodeResult(
            lat=lat,
            lng=lng,
            display_name=display_name(properties) or None,
            admin_region=admin_region(properties)
        )
