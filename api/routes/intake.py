# SPDX-License-Identifier: Apache-2.0

"""
Intake helper endpoints used by the complaint form.

Sensitive data screening runs locally: the text is inspected in process and
never forwarded. The recording profile tells the browser which MediaRecorder
format to use.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.sensitive_data import screen_text
from domain.media import pick_recording_mime, recording_candidates
from models.requests import ScreeningRequest, RecordingProfileParams
from middleware.validation import validate_json, validate_query

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

intake_tag = Tag(name="Intake", description="Sensitive data screening and media capture settings")
intake_bp = APIBlueprint(
    'intake',
    __name__,
    url_prefix='/api',
    abp_tags=[intake_tag]
)


@intake_bp.post('/screening')
@validate_json(ScreeningRequest)
def screen_sensitive_data(data: ScreeningRequest):
    """
    Detect personal data (CPF, CNPJ, e-mail, phone, RG, address) in a text.

    Returns the detected types with their labels, every match and the text
    with the matches masked.
    """
    with tracer.start_as_current_span("intake.screening") as span:
        report = screen_text(data.text)

        span.set_attributes({
            "screening.has_sensitive_data": report["has_sensitive_data"],
            "screening.match_count": len(report["matches"])
        })
        logger.debug(
            "Text screened",
            extra={"types": report["types"], "match_count": len(report["matches"])}
        )

        links = {
            'self': current_app.hal_formatter.builder.link_builder.build_link(
                "/api/screening",
                method="POST",
                content_type="application/json",
                title="Screen text"
            )
        }
        return jsonify(current_app.hal_formatter.builder.build_resource_response(report, links))


@intake_bp.get('/media/recording-profile')
@validate_query(RecordingProfileParams)
def recording_profile(params: RecordingProfileParams):
    """Recording MIME type to use given what the browser supports."""
    mime_type = pick_recording_mime(params.kind, params.supported)

    document = {
        'kind': params.kind,
        'mime_type': mime_type,
        'candidates': recording_candidates(params.kind),
        'max_bytes': current_app.media_limits.max_bytes
    }
    links = {
        'self': current_app.hal_formatter.builder.link_builder.build_self_link(
            "/api/media/recording-profile"
        )
    }
    return jsonify(current_app.hal_formatter.builder.build_resource_response(document, links))
