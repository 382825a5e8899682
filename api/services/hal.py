# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses where the links of a manifestation
being composed follow the wizard step it is in.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode, quote
import math

from models.responses import HalLink

PROBLEM_TYPE_BASE = "https://participa.df.gov.br/problems"

# Wizard action -> (path suffix, method, content type, title)
COMPOSITION_ACTIONS = {
    'update': ("", "PATCH", "application/json", "Edit manifestation"),
    'attach': ("/attachments", "POST", "multipart/form-data", "Add attachment"),
    'locate': ("/location", "POST", "application/json", "Pick location"),
    'review': ("/review", "POST", "application/json", "Review and send"),
    'continue': ("/continue", "POST", "application/json", "Continue despite personal data"),
    'identity': ("/identity", "POST", "application/json", "Choose identification"),
    'confirm_anonymous': ("/confirm-anonymous", "POST", "application/json", "Confirm anonymous submission"),
    'edit': ("/edit", "POST", "application/json", "Back to editing"),
    'submit': ("/submit", "POST", "application/json", "Submit manifestation"),
}


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url + '/', path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, params: Dict[str, Any], page: int, per_page: int, title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'per_page': per_page})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        per_page: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build pagination links for a collection."""
        links = {}
        params = query_params or {}

        links['self'] = self._page_link(base_path, params, current_page, per_page, "Current page")

        if current_page > 1:
            links['first'] = self._page_link(base_path, params, 1, per_page, "First page")
            links['prev'] = self._page_link(base_path, params, current_page - 1, per_page, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, params, current_page + 1, per_page, "Next page")
            links['last'] = self._page_link(base_path, params, total_pages, per_page, "Last page")

        return links


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on wizard state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_composition_affordances(
        self,
        composition_id: str,
        allowed_actions: List[str],
        attachment_ids: Optional[List[str]] = None,
        protocol: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build the links of a manifestation being composed.

        Only actions accepted in the current step are advertised. Attachment
        removal links are listed while attachments can still be edited.
        """
        links: Dict[str, Any] = {}
        base_path = f"/api/manifestations/{composition_id}"

        links['self'] = self.link_builder.build_self_link(base_path)

        for action in allowed_actions:
            suffix, method, content_type, title = COMPOSITION_ACTIONS[action]
            links[action.replace('_', '-')] = self.link_builder.build_link(
                f"{base_path}{suffix}",
                method=method,
                content_type=content_type,
                title=title
            )

        if 'attach' in allowed_actions and attachment_ids:
            links['remove-attachment'] = [
                self.link_builder.build_link(
                    f"{base_path}/attachments/{attachment_id}",
                    method="DELETE",
                    title="Remove attachment"
                )
                for attachment_id in attachment_ids
            ]

        if protocol:
            links['protocol'] = self.build_protocol_links(protocol)['self']

        return links

    def build_protocol_links(self, protocol: str) -> Dict[str, HalLink]:
        """Build links of a protocol lookup."""
        path = f"/api/protocols/{quote(protocol, safe='')}"
        return {
            'self': self.link_builder.build_self_link(path),
            'new-manifestation': self.link_builder.build_link(
                "/api/manifestations",
                method="POST",
                content_type="application/json",
                title="New manifestation"
            )
        }

    def build_admin_item_links(self, protocol: Optional[str]) -> Dict[str, HalLink]:
        """Build links of an admin listing row."""
        if not protocol:
            return {}
        return {'protocol': self.build_protocol_links(protocol)['self']}


def _dump_links(links: Dict[str, Any]) -> Dict[str, Any]:
    dumped = {}
    for rel, link in links.items():
        if isinstance(link, list):
            dumped[rel] = [item.model_dump(exclude_none=True) for item in link]
        else:
            dumped[rel] = link.model_dump(exclude_none=True)
    return dumped


class HalResponseBuilder:
    """Main HAL response builder with comprehensive formatting capabilities."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(
        self,
        data: Dict[str, Any],
        links: Dict[str, Any],
        embedded: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL resource response."""
        response = dict(data)
        response['_links'] = _dump_links(links)
        if embedded is not None:
            response['_embedded'] = embedded
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        per_page: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = max(math.ceil(total / per_page), 1) if per_page > 0 else 1

        pagination_links = self.pagination_builder.build_pagination_links(
            collection_path,
            page,
            total_pages,
            per_page,
            query_params
        )

        response = {
            'total': total,
            'page': page,
            'per_page': per_page,
            'total_pages': total_pages,
        }
        if extra:
            response.update(extra)

        response['_links'] = _dump_links(pagination_links)
        response['_embedded'] = {'items': items}
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_TYPE_BASE}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )
        elif error_type == "resource-conflict" and instance.startswith("/api/manifestations/"):
            # Point back to the manifestation so the client can re-read its step
            parts = instance.split('/')
            if len(parts) > 3:
                links['manifestation'] = self.link_builder.build_link(
                    f"/api/manifestations/{parts[3]}",
                    title="Current manifestation state"
                )

        error_response['_links'] = _dump_links(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_composition(self, composition: Dict[str, Any]) -> Dict[str, Any]:
        """Format a manifestation being composed with its wizard links."""
        attachments = composition.get('attachments') or []
        data = {k: v for k, v in composition.items() if k != 'attachments'}

        links = self.builder.affordance_builder.build_composition_affordances(
            composition['id'],
            composition.get('allowed_actions') or [],
            [a['id'] for a in attachments],
            composition.get('protocol')
        )
        return self.builder.build_resource_response(data, links, {'attachments': attachments})

    def format_submission(self, composition_id: str, submission: Dict[str, Any]) -> Dict[str, Any]:
        """Format the protocol issued on submission."""
        links = self.builder.affordance_builder.build_protocol_links(submission['protocol'])
        links = {
            'self': self.builder.link_builder.build_self_link(f"/api/manifestations/{composition_id}"),
            'protocol': links['self'],
            'new-manifestation': links['new-manifestation']
        }
        return self.builder.build_resource_response(submission, links)

    def format_protocol(
        self,
        detail: Dict[str, Any],
        attachments: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Format a protocol lookup with its embedded attachments."""
        links = self.builder.affordance_builder.build_protocol_links(detail['protocol'])
        return self.builder.build_resource_response(detail, links, {'attachments': attachments})

    def format_admin_listing(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        per_page: int,
        stats: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Format a page of the admin listing with statistics."""
        formatted_items = []
        for item in items:
            links = self.builder.affordance_builder.build_admin_item_links(item.get('protocol'))
            formatted_items.append(self.builder.build_resource_response(item, links))

        return self.builder.build_collection_response(
            formatted_items,
            total,
            page,
            per_page,
            "/api/admin/manifestations",
            extra={'stats': stats}
        )

    def format_locations(self, query: str, results: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Format location search results."""
        links = {
            'self': self.builder.link_builder.build_link(
                f"/api/locations/search?{urlencode({'q': query})}",
                title="Self"
            )
        }
        return self.builder.build_resource_response(
            {'query': query, 'count': len(results)},
            links,
            {'locations': results}
        )

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            400,
            detail,
            instance,
            validation_errors
        )

    def format_authentication_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.builder.build_error_response(
            "authentication-required",
            "Authentication Required",
            401,
            detail,
            instance
        )

    def format_authorization_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format an authorization error response."""
        return self.builder.build_error_response(
            "insufficient-permissions",
            "Insufficient Permissions",
            403,
            detail,
            instance
        )

    def format_not_found_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a not found error response."""
        return self.builder.build_error_response(
            "resource-not-found",
            "Resource Not Found",
            404,
            detail,
            instance
        )

    def format_conflict_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a conflict error response."""
        return self.builder.build_error_response(
            "resource-conflict",
            "Resource Conflict",
            409,
            detail,
            instance
        )

    def format_server_error(
        self,
        detail: str,
        instance: str
    ) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
