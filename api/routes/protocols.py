# SPDX-License-Identifier: Apache-2.0

"""
Protocol lookup endpoint.

Citizens follow a submitted manifestation with the protocol number they
received. The detail comes from the ouvidoria API; the attachment list is
embedded when available.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError
import logging

from domain.admin import status_label
from models.requests import ProtocolPath
from services.ouvidoria import OuvidoriaAPIError, ProtocolNotFoundError
from middleware.error_handler import ValidationException, NotFoundException, UpstreamServiceException

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

protocols_tag = Tag(name="Protocols", description="Follow up of submitted manifestations")
protocols_bp = APIBlueprint(
    'protocols',
    __name__,
    url_prefix='/api/protocols',
    abp_tags=[protocols_tag]
)


def _list_attachments(protocol: str):
    """Attachments of a protocol; the detail is still shown when the list fails."""
    try:
        listing = current_app.ouvidoria_client.list_attachments(protocol)
    except (OuvidoriaAPIError, ValidationError) as e:
        logger.warning(
            "Attachment list unavailable for protocol",
            extra={"protocol": protocol, "error": str(e)}
        )
        return []
    return [attachment.model_dump() for attachment in listing.attachments]


@protocols_bp.get('/<protocol>')
def get_protocol(path: ProtocolPath):
    """Look up a manifestation by protocol number."""
    protocol = path.protocol.strip()

    with tracer.start_as_current_span(
        "protocol.lookup",
        attributes={"protocol": protocol}
    ) as span:
        if not protocol:
            raise ValidationException(
                "Protocol number is required",
                [{"field": "protocol", "message": "Protocol must not be blank", "type": "value_error", "input": path.protocol}]
            )

        try:
            detail = current_app.ouvidoria_client.get_by_protocol(protocol)
        except ProtocolNotFoundError:
            span.set_attribute("protocol.found", False)
            logger.info("Protocol not found", extra={"protocol": protocol})
            raise NotFoundException(f"Protocol {protocol} not found")
        except OuvidoriaAPIError as e:
            span.set_status(Status(StatusCode.ERROR, "upstream_error"))
            raise UpstreamServiceException(
                "Protocol lookup is unavailable right now",
                service="ouvidoria-api",
                upstream_status=e.status_code
            )
        except ValidationError as e:
            span.set_status(Status(StatusCode.ERROR, "invalid_upstream_payload"))
            logger.error(
                "Unexpected protocol payload from ouvidoria API",
                extra={"protocol": protocol, "error_count": e.error_count()}
            )
            raise UpstreamServiceException("Protocol lookup returned an unexpected answer")

        span.set_attributes({"protocol.found": True, "manifestation.status": detail.status})

        document = detail.model_dump()
        document['status_label'] = status_label(detail.status)

        return jsonify(current_app.hal_formatter.format_protocol(document, _list_attachments(protocol)))
