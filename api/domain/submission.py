# SPDX-License-Identifier: Apache-2.0

"""
Submission of a reviewed composition to the ouvidoria API.

Builds the draft metadata, decides which attachment travels with the draft
and drives the create draft -> upload -> submit sequence.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from models.entities import Composition, StagedAttachment
from domain.composition import build_auto_summary, mark_submitted, is_action_allowed

logger = logging.getLogger(__name__)

# (filename, content, mime type) as accepted by requests multipart encoding
UploadFile = Tuple[str, bytes, str]


@dataclass
class UploadPlan:
    """Which staged attachment goes with the draft and which are uploaded after."""
    draft_file: Optional[StagedAttachment] = None
    extra_files: List[StagedAttachment] = field(default_factory=list)


@dataclass
class SubmissionResult:
    """Outcome of a successful submission."""
    composition: Composition
    protocol: str
    status: str
    manifestation_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": self.protocol,
            "status": self.status,
            "manifestation_id": self.manifestation_id
        }


class SubmissionStateError(Exception):
    """Raised when the composition is not ready to be submitted."""


def build_draft_meta(composition: Composition) -> Dict[str, Any]:
    """
    Build the metadata fields of the draft request.

    Contact data is included only for identified complaints. Empty values
    are kept here; the client drops them when encoding the form.

    Args:
        composition: Reviewed composition

    Returns:
        Draft metadata dictionary
    """
    meta: Dict[str, Any] = {
        "text": composition.content.strip(),
        "anonymous": composition.is_anonymous,
        "subject_label": composition.subject_label,
        "complementary_tags": ", ".join(composition.tags),
        "administrative_region": composition.administrative_region,
        "location_description": composition.location_description,
        "summary": build_auto_summary(composition),
    }

    if not composition.is_anonymous:
        meta["contact_name"] = composition.contact_name
        meta["contact_email"] = composition.contact_email
        meta["contact_phone"] = composition.contact_phone

    if composition.geo:
        meta["location_lat"] = composition.geo.lat
        meta["location_lng"] = composition.geo.lng

    return meta


def plan_uploads(composition: Composition) -> UploadPlan:
    """
    Split attachments between the draft request and the attachments call.

    A draft needs text or a file, so without text the first attachment is
    sent with the draft.

    Args:
        composition: Reviewed composition

    Returns:
        UploadPlan
    """
    attachments = list(composition.attachments)
    if composition.content.strip() or not attachments:
        return UploadPlan(draft_file=None, extra_files=attachments)

    return UploadPlan(draft_file=attachments[0], extra_files=attachments[1:])


def _load(staging, composition: Composition, attachment: StagedAttachment) -> UploadFile:
    data = staging.read(composition.id, attachment.id)
    return attachment.filename, data, attachment.mime_type


def submit_composition(composition: Composition, client, staging) -> SubmissionResult:
    """
    Send a reviewed composition and obtain its protocol.

    Errors raised by the client propagate unchanged and the stored
    composition is left untouched, so the citizen stays on review and can
    retry.

    Args:
        composition: Composition in the review step
        client: Ouvidoria API client
        staging: Attachment staging area holding the media bytes

    Returns:
        SubmissionResult with the submitted composition

    Raises:
        SubmissionStateError: If the composition is not in review
    """
    if not is_action_allowed(composition, 'submit'):
        raise SubmissionStateError(
            f"Manifestation cannot be submitted from step '{composition.step}'"
        )

    plan = plan_uploads(composition)
    meta = build_draft_meta(composition)

    # Staged media are read up front so a missing file fails before any API call
    draft_file = _load(staging, composition, plan.draft_file) if plan.draft_file else None
    files = [_load(staging, composition, a) for a in plan.extra_files]

    draft = client.create_draft(meta, file=draft_file)

    logger.info(
        "Draft created",
        extra={
            "composition_id": composition.id,
            "manifestation_id": draft.id,
            "attachments": len(composition.attachments)
        }
    )

    if files:
        client.add_attachments(draft.id, files)

    submitted = client.submit(draft.id)

    result = mark_submitted(composition, submitted.protocol, draft.id)
    if not result.success:
        raise SubmissionStateError(result.error_message)

    logger.info(
        "Manifestation submitted",
        extra={
            "composition_id": composition.id,
            "manifestation_id": draft.id,
            "protocol": submitted.protocol
        }
    )

    return SubmissionResult(
        composition=result.composition,
        protocol=submitted.protocol,
        status=submitted.status,
        manifestation_id=draft.id
    )
