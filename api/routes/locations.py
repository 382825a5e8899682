# SPDX-License-Identifier: Apache-2.0

"""
Location endpoints proxied to the Photon geocoder.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from models.requests import LocationSearchParams, ReverseGeocodeParams
from services.geocoding import GeocodingError
from middleware.error_handler import UpstreamServiceException
from middleware.validation import validate_query

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

locations_tag = Tag(name="Locations", description="Place search and reverse geocoding")
locations_bp = APIBlueprint(
    'locations',
    __name__,
    url_prefix='/api/locations',
    abp_tags=[locations_tag]
)


@locations_bp.get('/search')
@validate_query(LocationSearchParams)
def search_locations(params: LocationSearchParams):
    """
    Search places in the Federal District.

    Terms shorter than three characters return an empty list without
    calling the geocoder.
    """
    with tracer.start_as_current_span("locations.search") as span:
        try:
            results = current_app.geocoding_service.search(params.q, limit=params.limit)
        except GeocodingError as e:
            span.set_status(Status(StatusCode.ERROR, "geocoder_error"))
            raise UpstreamServiceException(
                "Location search is unavailable right now",
                service="geocoder"
            ) from e

        span.set_attribute("locations.result_count", len(results))
        return jsonify(current_app.hal_formatter.format_locations(
            params.q.strip(),
            [r.model_dump() for r in results]
        ))


@locations_bp.get('/reverse')
@validate_query(ReverseGeocodeParams)
def reverse_geocode(params: ReverseGeocodeParams):
    """Label and administrative region of a point picked on the map."""
    with tracer.start_as_current_span("locations.reverse") as span:
        try:
            place = current_app.geocoding_service.reverse(params.lat, params.lng)
        except GeocodingError as e:
            span.set_status(Status(StatusCode.ERROR, "geocoder_error"))
            raise UpstreamServiceException(
                "Reverse geocoding is unavailable right now",
                service="geocoder"
            ) from e

        links = {
            'self': current_app.hal_formatter.builder.link_builder.build_self_link(
                f"/api/locations/reverse?lat={params.lat}&lng={params.lng}"
            )
        }
        return jsonify(current_app.hal_formatter.builder.build_resource_response(place.model_dump(), links))
