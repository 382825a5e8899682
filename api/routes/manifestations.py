# SPDX-License-Identifier: Apache-2.0

"""
Manifestation composition endpoints.

This module implements the complaint wizard: starting a composition, editing
its text and metadata, picking a location, staging media, the send flow
(sensitive data warning, identity choice, anonymous warning, review) and the
final submission that returns a protocol.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain import composition as composition_domain
from domain.media import (
    MediaValidationError, capture_filename, infer_attachment_type,
    normalize_photo, replace_extension, timestamped_name, validate_upload
)
from domain.submission import SubmissionStateError, submit_composition
from models.entities import Composition, StagedAttachment
from models.enums import AttachmentSource, AttachmentType
from models.requests import (
    CreateCompositionRequest, UpdateCompositionRequest, PickLocationRequest,
    ChooseIdentityRequest, CompositionPath, AttachmentPath
)
from services.geocoding import GeocodingError
from services.ouvidoria import OuvidoriaAPIError, DraftValidationError
from services.sessions import SessionNotFoundError, SessionStoreError
from services.staging import StagedFileNotFoundError
from middleware.error_handler import (
    ValidationException, NotFoundException, ConflictException,
    PayloadTooLargeException, UpstreamServiceException, ServiceUnavailableException
)
from middleware.rate_limit import rate_limit_submission
from middleware.validation import validate_json
from utils.request import RequestParser

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
manifestations_tag = Tag(name="Manifestations", description="Complaint composition and submission")
manifestations_bp = APIBlueprint(
    'manifestations',
    __name__,
    url_prefix='/api/manifestations',
    abp_tags=[manifestations_tag]
)


def _store():
    store = current_app.composition_store
    if not store.is_available():
        raise ServiceUnavailableException("Manifestation sessions are temporarily unavailable")
    return store


def _load(composition_id: str) -> Composition:
    try:
        return _store().load(composition_id)
    except SessionNotFoundError as e:
        raise NotFoundException(str(e))


def _save(composition: Composition) -> Composition:
    try:
        saved = _store().save(composition)
    except SessionStoreError as e:
        raise ServiceUnavailableException(str(e))
    # Staged media live as long as the session does
    current_app.staging.touch(composition.id)
    return saved


def _unwrap(result: composition_domain.WorkflowResult) -> Composition:
    """Return the composition of a successful workflow result or raise the matching error."""
    if result.success:
        return result.composition

    if result.error_type == "conflict":
        raise ConflictException(result.error_message)
    if result.error_type == "not_found":
        raise NotFoundException(result.error_message)

    raise ValidationException(
        result.error_message,
        [
            {"field": "manifestation", "message": message, "type": "workflow_error", "input": None}
            for message in result.validation_errors
        ]
    )


def _media_error(error: MediaValidationError):
    if error.reason == "too_large":
        return PayloadTooLargeException(error.message)
    if error.reason == "too_many":
        return ConflictException(error.message)
    return ValidationException(
        error.message,
        [{"field": "file", "message": error.message, "type": "media_error", "input": None}]
    )


def _composition_response(composition: Composition, status_code: int = 200):
    document = composition_domain.describe_composition(composition)
    response = jsonify(current_app.hal_formatter.format_composition(document))
    response.status_code = status_code
    return response


def _transition(composition_id: str, action: str, operation):
    """Load a composition, apply a wizard transition and store the outcome."""
    with tracer.start_as_current_span(
        f"manifestation.{action}",
        attributes={"composition.id": composition_id, "operation": action}
    ) as span:
        composition = _load(composition_id)
        span.set_attribute("composition.step.before", composition.step)

        result = operation(composition)
        if not result.success:
            span.set_status(Status(StatusCode.ERROR, result.error_type or "failed"))
            logger.info(
                "Wizard transition rejected",
                extra={
                    "composition_id": composition_id,
                    "action": action,
                    "step": composition.step,
                    "error_type": result.error_type
                }
            )
        updated = _save(_unwrap(result))

        span.set_attribute("composition.step.after", updated.step)
        logger.info(
            "Wizard transition applied",
            extra={
                "composition_id": composition_id,
                "action": action,
                "from_step": composition.step,
                "to_step": updated.step
            }
        )
        return _composition_response(updated)


@manifestations_bp.post('')
@validate_json(CreateCompositionRequest, optional=True)
def create_manifestation(data: CreateCompositionRequest):
    """
    Start a new manifestation.

    Optional initial fields are applied right away. Staged media of sessions
    that outlived their lifetime are purged before the new session starts.
    """
    with tracer.start_as_current_span("manifestation.create") as span:
        store = _store()

        purged = current_app.staging.purge_older_than(store.ttl_seconds)
        if purged:
            logger.info("Expired staging directories purged", extra={"purged": purged})

        composition = composition_domain.start_composition(data.model_dump(exclude_none=True))
        _save(composition)

        span.set_attribute("composition.id", composition.id)
        logger.info("Manifestation started", extra={"composition_id": composition.id})

        response = _composition_response(composition, 201)
        response.headers['Location'] = f"/api/manifestations/{composition.id}"
        return response


@manifestations_bp.get('/<composition_id>')
def get_manifestation(path: CompositionPath):
    """Current state of a manifestation with its summary and available actions."""
    with tracer.start_as_current_span(
        "manifestation.get",
        attributes={"composition.id": path.composition_id}
    ):
        return _composition_response(_load(path.composition_id))


@manifestations_bp.patch('/<composition_id>')
@validate_json(UpdateCompositionRequest)
def update_manifestation(data: UpdateCompositionRequest, path: CompositionPath):
    """Edit the text, subject, region, location reference or tags."""
    fields = data.model_dump(exclude_none=True)
    return _transition(
        path.composition_id,
        "update",
        lambda c: composition_domain.apply_update(c, fields)
    )


@manifestations_bp.post('/<composition_id>/location')
@validate_json(PickLocationRequest)
def pick_location(data: PickLocationRequest, path: CompositionPath):
    """
    Set the location of the complaint.

    A search result carries its own label; a bare map click is reverse
    geocoded to fill the administrative region. A geocoder failure still
    keeps the coordinates.
    """
    label = data.label
    region = data.admin_region

    if not label and not region:
        try:
            place = current_app.geocoding_service.reverse(data.lat, data.lng)
            label = place.display_name
            region = place.admin_region
        except GeocodingError as e:
            logger.warning(
                "Reverse geocoding failed, keeping coordinates only",
                extra={"composition_id": path.composition_id, "error": str(e)}
            )

    return _transition(
        path.composition_id,
        "locate",
        lambda c: composition_domain.pick_location(c, data.lat, data.lng, label, region)
    )


@manifestations_bp.post('/<composition_id>/attachments')
def upload_attachment(path: CompositionPath):
    """
    Stage a photo, audio or video.

    Multipart fields: ``file`` and optional ``source`` (upload, camera or
    recorder). Photos are re-encoded as JPEG without metadata; browser
    captures get generated file names.
    """
    with tracer.start_as_current_span(
        "manifestation.attachment.upload",
        attributes={"composition.id": path.composition_id}
    ) as span:
        composition = _load(path.composition_id)
        if not composition_domain.is_action_allowed(composition, 'attach'):
            raise ConflictException(
                f"Attachments cannot be changed while the manifestation is in step '{composition.step}'"
            )

        limits = current_app.media_limits
        upload = RequestParser.get_uploaded_file('file', limits.max_bytes)
        if upload is None:
            raise ValidationException(
                "Missing multipart field 'file'",
                [{"field": "file", "message": "Field required", "type": "missing", "input": None}]
            )

        source_value = RequestParser.get_form_value('source', AttachmentSource.UPLOAD.value)
        try:
            source = AttachmentSource(source_value)
        except ValueError:
            raise ValidationException(
                f"Unknown attachment source: {source_value}",
                [{
                    "field": "source",
                    "message": "Expected upload, camera or recorder",
                    "type": "enum",
                    "input": source_value
                }]
            )

        try:
            validate_upload(
                upload.filename,
                upload.mime_type,
                upload.size_bytes,
                len(composition.attachments),
                limits
            )
            data = upload.data
            mime_type = upload.mime_type
            filename = upload.filename
            attachment_type = infer_attachment_type(mime_type)

            if attachment_type == AttachmentType.IMAGE:
                data, mime_type = normalize_photo(data)
                if filename:
                    filename = replace_extension(filename, "jpg")
        except MediaValidationError as e:
            span.set_status(Status(StatusCode.ERROR, e.reason))
            logger.info(
                "Upload rejected",
                extra={
                    "composition_id": path.composition_id,
                    "reason": e.reason,
                    "mime_type": upload.mime_type,
                    "size_bytes": upload.size_bytes
                }
            )
            raise _media_error(e)

        filename = capture_filename(source, mime_type) or filename
        if not filename:
            filename = timestamped_name(attachment_type.value, mime_type.split('/')[-1] or "bin")

        attachment = StagedAttachment(
            filename=filename,
            mime_type=mime_type,
            size_bytes=len(data),
            type=attachment_type,
            source=source
        )

        result = composition_domain.add_attachment(composition, attachment)
        updated = _unwrap(result)

        current_app.staging.save(composition.id, attachment.id, data)
        try:
            _save(updated)
        except ServiceUnavailableException:
            current_app.staging.delete(composition.id, attachment.id)
            raise

        span.set_attributes({
            "attachment.id": attachment.id,
            "attachment.type": attachment.type,
            "attachment.size_bytes": attachment.size_bytes
        })
        logger.info(
            "Attachment staged",
            extra={
                "composition_id": composition.id,
                "attachment_id": attachment.id,
                "attachment_type": attachment.type,
                "source": attachment.source,
                "size_bytes": attachment.size_bytes
            }
        )

        return _composition_response(updated, 201)


@manifestations_bp.delete('/<composition_id>/attachments/<attachment_id>')
def remove_attachment(path: AttachmentPath):
    """Remove a staged attachment."""
    with tracer.start_as_current_span(
        "manifestation.attachment.remove",
        attributes={"composition.id": path.composition_id, "attachment.id": path.attachment_id}
    ):
        composition = _load(path.composition_id)
        updated = _save(_unwrap(composition_domain.remove_attachment(composition, path.attachment_id)))
        current_app.staging.delete(path.composition_id, path.attachment_id)

        logger.info(
            "Attachment removed",
            extra={"composition_id": path.composition_id, "attachment_id": path.attachment_id}
        )
        return _composition_response(updated)


@manifestations_bp.post('/<composition_id>/review')
def review_manifestation(path: CompositionPath):
    """Leave the editor; text with personal data gets a warning first."""
    return _transition(path.composition_id, "review", composition_domain.review_and_send)


@manifestations_bp.post('/<composition_id>/continue')
def continue_manifestation(path: CompositionPath):
    """Proceed despite the sensitive data warning."""
    return _transition(path.composition_id, "continue", composition_domain.continue_with_warning)


@manifestations_bp.post('/<composition_id>/identity')
@validate_json(ChooseIdentityRequest)
def choose_identity(data: ChooseIdentityRequest, path: CompositionPath):
    """Choose between an anonymous and an identified manifestation."""
    return _transition(
        path.composition_id,
        "identity",
        lambda c: composition_domain.choose_identity(
            c,
            data.mode,
            contact_name=data.contact_name,
            contact_email=data.contact_email,
            contact_phone=data.contact_phone
        )
    )


@manifestations_bp.post('/<composition_id>/confirm-anonymous')
def confirm_anonymous(path: CompositionPath):
    """Accept that an anonymous manifestation cannot be followed up."""
    return _transition(path.composition_id, "confirm_anonymous", composition_domain.confirm_anonymous)


@manifestations_bp.post('/<composition_id>/edit')
def edit_manifestation(path: CompositionPath):
    """Go back to the editor."""
    return _transition(path.composition_id, "edit", composition_domain.back_to_edit)


def _submit(composition_id: str, span):
    composition = _load(composition_id)
    span.set_attribute("composition.attachments", len(composition.attachments))

    try:
        submission = submit_composition(
            composition,
            current_app.ouvidoria_client,
            current_app.staging
        )
    except SubmissionStateError as e:
        span.set_status(Status(StatusCode.ERROR, "invalid_step"))
        raise ConflictException(str(e))
    except DraftValidationError as e:
        span.set_status(Status(StatusCode.ERROR, "draft_validation"))
        raise ValidationException(
            str(e),
            [{"field": "content", "message": str(e), "type": "draft_error", "input": None}]
        )
    except StagedFileNotFoundError as e:
        span.set_status(Status(StatusCode.ERROR, "staged_file_missing"))
        logger.error(
            "Staged attachment missing on submission",
            extra={"composition_id": composition.id, "error": str(e)}
        )
        raise ConflictException(
            "An attachment is no longer available. Go back to edit and attach it again"
        )
    except OuvidoriaAPIError as e:
        span.set_status(Status(StatusCode.ERROR, "upstream_error"))
        span.set_attribute("upstream.status_code", e.status_code or 0)
        logger.error(
            "Ouvidoria API rejected the submission",
            extra={
                "composition_id": composition.id,
                "operation": e.operation,
                "upstream_status": e.status_code
            }
        )
        raise UpstreamServiceException(
            "The ouvidoria service could not register the manifestation. Try again",
            service="ouvidoria-api",
            upstream_status=e.status_code
        )

    try:
        current_app.composition_store.save(submission.composition)
    except SessionStoreError as e:
        # The protocol exists upstream; the citizen must still receive it
        logger.error(
            "Submitted manifestation could not be stored",
            extra={"composition_id": composition.id, "protocol": submission.protocol, "error": str(e)}
        )

    current_app.staging.delete_composition(composition.id)

    span.set_attributes({
        "manifestation.id": submission.manifestation_id,
        "manifestation.status": submission.status
    })

    return jsonify(current_app.hal_formatter.format_submission(composition.id, submission.to_dict())), 201


@manifestations_bp.post('/<composition_id>/submit')
@rate_limit_submission
def submit_manifestation(path: CompositionPath):
    """
    Send a reviewed manifestation to the ouvidoria and return its protocol.

    On any upstream failure the manifestation stays on review so the citizen
    can retry. Staged media are deleted once the protocol is issued. A second
    submit of the same manifestation while the first is running gets 409.
    """
    with tracer.start_as_current_span(
        "manifestation.submit",
        attributes={"composition.id": path.composition_id}
    ) as span:
        store = _store()
        try:
            claimed = store.claim_submission(path.composition_id)
        except SessionStoreError as e:
            raise ServiceUnavailableException(str(e))
        if not claimed:
            span.set_status(Status(StatusCode.ERROR, "submission_in_progress"))
            raise ConflictException("This manifestation is already being submitted")

        try:
            return _submit(path.composition_id, span)
        finally:
            store.release_submission(path.composition_id)
