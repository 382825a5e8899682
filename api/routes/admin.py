# SPDX-License-Identifier: Apache-2.0

"""
Admin dashboard endpoints.

Requires a bearer token with the ``manifestation:list`` permission.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError
import logging

from domain import admin as admin_domain
from models.entities import UserContext
from models.enums import AdminPermission
from models.requests import PaginationParams
from services.ouvidoria import OuvidoriaAPIError
from middleware.auth import require_permission
from middleware.error_handler import UpstreamServiceException
from middleware.validation import validate_query

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

admin_tag = Tag(name="Admin", description="Manifestation listing for the ouvidoria staff")
admin_bp = APIBlueprint(
    'admin',
    __name__,
    url_prefix='/api/admin',
    abp_tags=[admin_tag]
)


@admin_bp.get('/manifestations')
@require_permission(AdminPermission.MANIFESTATION_LIST.value)
@validate_query(PaginationParams)
def list_manifestations(params: PaginationParams, user_context: UserContext):
    """
    List manifestations with per-page statistics.

    Statistics cover the returned page: anonymous share and the number of
    manifestations per input type.
    """
    with tracer.start_as_current_span(
        "admin.manifestations.list",
        attributes={
            "user.id": user_context.user_id,
            "pagination.page": params.page,
            "pagination.per_page": params.per_page
        }
    ) as span:
        try:
            listing = current_app.ouvidoria_client.admin_list(page=params.page, per_page=params.per_page)
        except OuvidoriaAPIError as e:
            span.set_status(Status(StatusCode.ERROR, "upstream_error"))
            raise UpstreamServiceException(
                "Manifestation listing is unavailable right now",
                service="ouvidoria-api",
                upstream_status=e.status_code
            )
        except ValidationError as e:
            span.set_status(Status(StatusCode.ERROR, "invalid_upstream_payload"))
            logger.error(
                "Unexpected admin listing payload from ouvidoria API",
                extra={"error_count": e.error_count()}
            )
            raise UpstreamServiceException("Manifestation listing returned an unexpected answer")

        stats = admin_domain.build_listing_stats(listing.items)
        items = [admin_domain.present_item(item) for item in listing.items]

        span.set_attribute("admin.items_count", len(items))
        logger.info(
            "Admin listing served",
            extra={
                "user_id": user_context.user_id,
                "page": listing.page,
                "items": len(items),
                "total": listing.total
            }
        )

        return jsonify(current_app.hal_formatter.format_admin_listing(
            items,
            listing.total,
            listing.page,
            listing.per_page,
            stats
        ))
