# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the Photon geocoding service.
"""

import pytest
import requests
from unittest.mock import MagicMock

from services.geocoding import (
    GeocodingService, GeocodingError, display_name, admin_region, feature_to_location
)

FEATURE = {
    "type": "Feature",
    "geometry": {"type": "Point", "coordinates": [-48.1076, -15.8183]},
    "properties": {
        "osm_id": 123456,
        "name": "Escola Classe 10",
        "street": "QNM 10",
        "district": "Ceilândia Norte",
        "city": "Ceilândia",
        "state": "Distrito Federal",
        "country": "Brasil"
    }
}


def _response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def geocoder(session):
    return GeocodingService(base_url="https://photon.example.com/", session=session)


class TestFeatureMapping:
    """Test mapping of GeoJSON features."""

    def test_display_name(self):
        assert display_name(FEATURE["properties"]) == (
            "Escola Classe 10, QNM 10, Ceilândia, Distrito Federal, Brasil"
        )

    def test_admin_region_prefers_state(self):
        assert admin_region(FEATURE["properties"]) == "Distrito Federal"
        assert admin_region({"county": "Taguatinga"}) == "Taguatinga"
        assert admin_region({}) is None

    def test_feature_to_location(self):
        location = feature_to_location(FEATURE)

        assert location.place_id == "123456"
        assert location.lat == "-15.8183"
        assert location.lon == "-48.1076"
        assert location.address.suburb == "Ceilândia Norte"
        assert location.address.road == "QNM 10"

    def test_feature_without_geometry_or_id(self):
        location = feature_to_location({"properties": {"name": "Lago"}})

        assert location.lat == ""
        assert location.lon == ""
        assert len(location.place_id) == 36


class TestGeocodingService:
    """Test search and reverse calls."""

    def test_search(self, geocoder, session):
        session.get.return_value = _response({"features": [FEATURE]})

        results = geocoder.search("  escola classe  ", limit=3)

        assert [r.display_name for r in results] == [display_name(FEATURE["properties"])]
        url = session.get.call_args.args[0]
        assert url == "https://photon.example.com/api/"
        assert session.get.call_args.kwargs["params"] == {"q": "escola classe Brasil DF", "limit": 3}

    def test_short_term_skips_request(self, geocoder, session):
        assert geocoder.search("ab") == []
        session.get.assert_not_called()

    def test_search_without_features(self, geocoder, session):
        session.get.return_value = _response({"type": "FeatureCollection"})

        assert geocoder.search("Taguatinga") == []

    def test_reverse(self, geocoder, session):
        session.get.return_value = _response({"features": [FEATURE]})

        result = geocoder.reverse(-15.8183, -48.1076)

        assert result.admin_region == "Distrito Federal"
        assert result.display_name.startswith("Escola Classe 10")
        assert session.get.call_args.kwargs["params"] == {"lat": -15.8183, "lon": -48.1076, "limit": 1}

    def test_reverse_nothing_found(self, geocoder, session):
        session.get.return_value = _response({"features": []})

        result = geocoder.reverse(-15.0, -47.0)

        assert result.display_name is None
        assert result.admin_region is None
        assert result.lat == -15.0

    def test_http_error(self, geocoder, session):
        session.get.return_value = _response({}, status_code=503)

        with pytest.raises(GeocodingError):
            geocoder.search("Asa Norte")

    def test_invalid_json(self, geocoder, session):
        response = _response(None)
        response.json.side_effect = ValueError("not json")
        session.get.return_value = response

        with pytest.raises(GeocodingError):
            geocoder.reverse(-15.8, -47.9)
