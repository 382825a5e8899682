# SPDX-License-Identifier: Apache-2.0

"""
Complaint composition domain logic.

This module contains pure functions for the submission wizard: content
checks, the auto summary sent with the draft, field editing and the step
transitions (composing -> warnings -> identity -> review -> submitted).
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union, Iterable

from models.entities import Composition, GeoPoint, StagedAttachment
from models.enums import AttachmentType, CompositionStep, IdentityMode
from domain.sensitive_data import get_sensitive_data_summary

SUMMARY_TEXT_LIMIT = 220

EDITABLE_FIELDS = (
    'content',
    'subject_label',
    'administrative_region',
    'location_description',
)

# Steps from which each action is accepted
ALLOWED_ACTIONS: Dict[str, List[str]] = {
    CompositionStep.COMPOSING.value: ['update', 'attach', 'locate', 'review'],
    CompositionStep.SENSITIVE_WARNING.value: ['continue', 'edit'],
    CompositionStep.IDENTITY_CHOICE.value: ['identity', 'edit'],
    CompositionStep.ANONYMOUS_WARNING.value: ['confirm_anonymous', 'edit'],
    CompositionStep.REVIEW.value: ['identity', 'submit', 'edit'],
    CompositionStep.SUBMITTED.value: [],
}


@dataclass
class WorkflowResult:
    """Result of a composition workflow operation."""
    success: bool
    composition: Optional[Composition] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    validation_errors: List[str] = None

    def __post_init__(self):
        if self.validation_errors is None:
            self.validation_errors = []


def _conflict(composition: Composition, action: str) -> WorkflowResult:
    return WorkflowResult(
        success=False,
        error_message=f"Action '{action}' is not allowed while the manifestation is in step '{composition.step}'",
        error_type="conflict"
    )


def _invalid(message: str, errors: Optional[List[str]] = None) -> WorkflowResult:
    return WorkflowResult(
        success=False,
        error_message=message,
        error_type="validation",
        validation_errors=errors or [message]
    )


def is_action_allowed(composition: Composition, action: str) -> bool:
    """Check whether an action is accepted in the composition's current step."""
    return action in ALLOWED_ACTIONS.get(composition.step, [])


def allowed_actions(composition: Composition) -> List[str]:
    """Actions accepted in the composition's current step."""
    return list(ALLOWED_ACTIONS.get(composition.step, []))


def has_content(composition: Composition) -> bool:
    """A composition can be sent when it has text or at least one attachment."""
    return len(composition.content.strip()) > 0 or len(composition.attachments) > 0


def count_attachments(composition: Composition) -> Dict[str, int]:
    """Number of attachments per media kind."""
    counts = {t.value: 0 for t in AttachmentType}
    for attachment in composition.attachments:
        counts[attachment.type] += 1
    return counts


def normalize_tags(raw: Union[str, Iterable[str], None]) -> List[str]:
    """
    Normalize complementary tags.

    Args:
        raw: Comma-separated text or a list of tags

    Returns:
        Trimmed, non-empty, de-duplicated tags in input order
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = raw.split(',')
    else:
        parts = []
        for item in raw:
            parts.extend(str(item).split(','))

    tags = [p.strip() for p in parts if p and p.strip()]
    return list(dict.fromkeys(tags))


def short_location_label(label: str) -> str:
    """Main part of a place label (text before the first comma)."""
    first = label.split(',')[0].strip()
    return first or label.strip()


def build_auto_summary(composition: Composition) -> str:
    """
    Build the plain-text summary sent with the draft and shown on review.

    Args:
        composition: Composition to summarize

    Returns:
        Newline-separated summary lines (empty lines omitted)
    """
    parts = []

    subject = composition.subject_label.strip()
    if subject:
        parts.append(f"Assunto: {subject}")

    text = composition.content.strip()
    if text:
        one_line = re.sub(r'\s+', ' ', text)[:SUMMARY_TEXT_LIMIT]
        ellipsis = "..." if len(text) > SUMMARY_TEXT_LIMIT else ""
        parts.append(f"Relato: {one_line}{ellipsis}")

    if composition.attachments:
        counts = count_attachments(composition)
        media_bits = [
            f"{counts['image']} imagem(ns)" if counts['image'] else None,
            f"{counts['audio']} áudio(s)" if counts['audio'] else None,
            f"{counts['video']} vídeo(s)" if counts['video'] else None,
        ]
        parts.append(f"Anexos: {', '.join(b for b in media_bits if b)}")

    if composition.geo:
        parts.append(f"Local: ({composition.geo.lat:.6f}, {composition.geo.lng:.6f})")

    region = composition.administrative_region.strip()
    if region:
        parts.append(f"Região: {region}")

    reference = composition.location_description.strip()
    if reference:
        parts.append(f"Referência: {reference}")

    if composition.tags:
        parts.append(f"Tags: {', '.join(composition.tags)}")

    return "\n".join(parts)


def start_composition(fields: Optional[Dict[str, object]] = None) -> Composition:
    """
    Create a new composition in the composing step.

    Args:
        fields: Optional initial field values

    Returns:
        New composition
    """
    composition = Composition()
    if fields:
        result = apply_update(composition, fields)
        if result.success:
            return result.composition
    return composition


def apply_update(composition: Composition, fields: Dict[str, object]) -> WorkflowResult:
    """
    Edit the text and metadata of a composition.

    Args:
        composition: Composition to edit
        fields: Fields to change (None values are ignored)

    Returns:
        WorkflowResult with the updated composition or errors
    """
    if not is_action_allowed(composition, 'update'):
        return _conflict(composition, 'update')

    updated = composition.model_copy(deep=True)
    for field in EDITABLE_FIELDS:
        value = fields.get(field)
        if value is not None:
            setattr(updated, field, str(value))

    if fields.get('tags') is not None:
        updated.tags = normalize_tags(fields['tags'])

    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def pick_location(
    composition: Composition,
    lat: float,
    lng: float,
    label: Optional[str] = None,
    admin_region: Optional[str] = None
) -> WorkflowResult:
    """
    Set the complaint location from a map click or search result.

    The administrative region is filled from the reverse geocoded region when
    known, otherwise from the main part of the place label. It stays editable.

    Args:
        composition: Composition to edit
        lat: Latitude
        lng: Longitude
        label: Place label
        admin_region: Administrative region of the place

    Returns:
        WorkflowResult with the updated composition or errors
    """
    if not is_action_allowed(composition, 'locate'):
        return _conflict(composition, 'locate')

    updated = composition.model_copy(deep=True)
    updated.geo = GeoPoint(lat=lat, lng=lng)

    if admin_region and admin_region.strip():
        updated.administrative_region = admin_region.strip()
    elif label and label.strip():
        updated.administrative_region = short_location_label(label)

    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def add_attachment(composition: Composition, attachment: StagedAttachment) -> WorkflowResult:
    """Append a staged attachment."""
    if not is_action_allowed(composition, 'attach'):
        return _conflict(composition, 'attach')

    updated = composition.model_copy(deep=True)
    updated.attachments.append(attachment)
    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def remove_attachment(composition: Composition, attachment_id: str) -> WorkflowResult:
    """Remove a staged attachment by identifier."""
    if not is_action_allowed(composition, 'attach'):
        return _conflict(composition, 'attach')

    if composition.find_attachment(attachment_id) is None:
        return WorkflowResult(
            success=False,
            error_message=f"Attachment {attachment_id} not found",
            error_type="not_found"
        )

    updated = composition.model_copy(deep=True)
    updated.attachments = [a for a in updated.attachments if a.id != attachment_id]
    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def review_and_send(composition: Composition) -> WorkflowResult:
    """
    Leave the editor and start the send flow.

    Text with personal data goes to the sensitive data warning first;
    otherwise the citizen is asked how to identify themselves.

    Args:
        composition: Composition in the composing step

    Returns:
        WorkflowResult with the updated composition or errors
    """
    if not is_action_allowed(composition, 'review'):
        return _conflict(composition, 'review')

    if not has_content(composition):
        return _invalid("Write a text or attach a file before sending")

    updated = composition.model_copy(deep=True)
    types = get_sensitive_data_summary(updated.content)
    if types:
        updated.sensitive_data_types = types
        updated.step = CompositionStep.SENSITIVE_WARNING
    else:
        updated.sensitive_data_types = []
        updated.step = CompositionStep.IDENTITY_CHOICE

    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def continue_with_warning(composition: Composition) -> WorkflowResult:
    """Proceed despite the sensitive data warning."""
    if not is_action_allowed(composition, 'continue'):
        return _conflict(composition, 'continue')

    updated = composition.model_copy(deep=True)
    if updated.is_anonymous:
        updated.step = CompositionStep.ANONYMOUS_WARNING
    else:
        updated.step = CompositionStep.REVIEW

    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def choose_identity(
    composition: Composition,
    mode: IdentityMode,
    contact_name: Optional[str] = None,
    contact_email: Optional[str] = None,
    contact_phone: Optional[str] = None
) -> WorkflowResult:
    """
    Record how the citizen wants to be identified.

    Contact data is only kept for identified complaints. On the review step
    the choice can still be changed without leaving it.

    Args:
        composition: Composition in identity_choice or review
        mode: Identity disclosure mode
        contact_name: Contact name (identified only)
        contact_email: Contact email (identified only)
        contact_phone: Contact phone (identified only)

    Returns:
        WorkflowResult with the updated composition or errors
    """
    if not is_action_allowed(composition, 'identity'):
        return _conflict(composition, 'identity')

    mode = IdentityMode(mode)
    updated = composition.model_copy(deep=True)
    updated.identity_mode = mode

    if mode == IdentityMode.IDENTIFY:
        updated.contact_name = contact_name
        updated.contact_email = contact_email
        updated.contact_phone = contact_phone
    else:
        updated.contact_name = None
        updated.contact_email = None
        updated.contact_phone = None

    if composition.step == CompositionStep.IDENTITY_CHOICE.value:
        if mode == IdentityMode.ANONYMOUS:
            updated.step = CompositionStep.ANONYMOUS_WARNING
        else:
            updated.step = CompositionStep.REVIEW

    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def confirm_anonymous(composition: Composition) -> WorkflowResult:
    """Accept the anonymous submission warning and go to review."""
    if not is_action_allowed(composition, 'confirm_anonymous'):
        return _conflict(composition, 'confirm_anonymous')

    updated = composition.model_copy(deep=True)
    updated.step = CompositionStep.REVIEW
    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def back_to_edit(composition: Composition) -> WorkflowResult:
    """Return to the editor from any step before submission."""
    if not is_action_allowed(composition, 'edit'):
        return _conflict(composition, 'edit')

    updated = composition.model_copy(deep=True)
    updated.step = CompositionStep.COMPOSING
    updated.sensitive_data_types = []
    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def mark_submitted(composition: Composition, protocol: str, manifestation_id: str) -> WorkflowResult:
    """Record the protocol issued for a reviewed composition."""
    if not is_action_allowed(composition, 'submit'):
        return _conflict(composition, 'submit')

    updated = composition.model_copy(deep=True)
    updated.step = CompositionStep.SUBMITTED
    updated.protocol = protocol
    updated.manifestation_id = manifestation_id
    updated.update_timestamp()
    return WorkflowResult(success=True, composition=updated)


def describe_composition(composition: Composition) -> Dict[str, object]:
    """
    Serializable view of a composition for API responses.

    Args:
        composition: Composition to describe

    Returns:
        Dictionary with fields, summary, counts and allowed actions
    """
    data = composition.model_dump(mode="json")
    data['has_content'] = has_content(composition)
    data['attachment_counts'] = count_attachments(composition)
    data['summary'] = build_auto_summary(composition)
    data['allowed_actions'] = allowed_actions(composition)
    data['character_count'] = len(composition.content)
    return data
