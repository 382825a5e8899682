# SPDX-License-Identifier: Apache-2.0

"""
Admin listing logic: permission checks, status labels and page statistics.
"""

import math
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from models.entities import UserContext
from models.enums import ManifestationStatus
from models.responses import ManifestationListItem

STATUS_LABELS = {
    ManifestationStatus.RECEIVED.value: "Recebida",
    ManifestationStatus.DRAFT.value: "Rascunho",
}

UNKNOWN_INPUT_TYPE = "unknown"


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_permissions: List[str] = None


def check_permission(user_context: UserContext, required_permission: str) -> AuthorizationResult:
    """
    Check if user has a specific permission.

    Args:
        user_context: User context with permissions
        required_permission: Permission string to check

    Returns:
        AuthorizationResult indicating if permission is granted
    """
    if user_context.has_permission(required_permission):
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Missing required permission: {required_permission}",
        missing_permissions=[required_permission]
    )


def status_label(status: Optional[str]) -> str:
    """Portuguese label of a manifestation status; unknown statuses are shown raw."""
    if not status:
        return ""
    return STATUS_LABELS.get(status, status)


def build_listing_stats(items: List[ManifestationListItem]) -> Dict[str, Any]:
    """
    Statistics over one page of the admin listing.

    Args:
        items: Manifestations of the page

    Returns:
        Dictionary with total, anonymous_count, anonymous_percentage and
        by_input_type
    """
    total = len(items)
    anonymous_count = sum(1 for item in items if item.anonymous)
    by_input_type = Counter(item.input_type or UNKNOWN_INPUT_TYPE for item in items)

    return {
        "total": total,
        "anonymous_count": anonymous_count,
        # half up, not banker's rounding
        "anonymous_percentage": math.floor(anonymous_count / max(total, 1) * 100 + 0.5),
        "by_input_type": dict(by_input_type),
    }


def present_item(item: ManifestationListItem) -> Dict[str, Any]:
    """Listing row with its status label."""
    data = item.model_dump()
    data["status_label"] = status_label(item.status)
    return data
