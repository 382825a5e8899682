# SPDX-License-Identifier: Apache-2.0

"""
Client for the Participa DF ouvidoria REST API.

All calls to the draft, attachment, submit, lookup and admin endpoints go
through ``OuvidoriaClient``. Non-2xx responses are logged with their body
and raised as ``OuvidoriaAPIError``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests
from pydantic import ValidationError
from requests.exceptions import ConnectTimeout, ReadTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential
from opentelemetry import trace

from models.responses import (
    CreateDraftResponse,
    UpdateDraftResponse,
    SubmitResponse,
    AttachmentsListResponse,
    ManifestationDetailResponse,
    AdminManifestationsResponse
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.simplificagov.com"
CONNECT_TIMEOUT = 5

# (filename, content, mime type)
FileTuple = Tuple[str, bytes, str]

# Order of the multipart fields of a draft
DRAFT_FIELDS = (
    "text",
    "original_text",
    "subject_id",
    "subject_label",
    "summary",
    "administrative_region",
    "complementary_tags",
    "location_lat",
    "location_lng",
    "location_description",
)
CONTACT_FIELDS = ("contact_name", "contact_email", "contact_phone")


class OuvidoriaAPIError(Exception):
    """Raised when the ouvidoria API answers with an error status."""

    def __init__(self, operation: str, status_code: Optional[int], body: Any = None, message: Optional[str] = None):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Ouvidoria API {operation} failed with status {status_code}")


class ProtocolNotFoundError(OuvidoriaAPIError):
    """Raised when a protocol lookup returns 404."""

    def __init__(self, protocol: str, body: Any = None):
        super().__init__("get_by_protocol", 404, body, f"Protocol {protocol} not found")
        self.protocol = protocol


class DraftValidationError(ValueError):
    """Raised when a draft has neither text nor file."""


def normalize_decimal(value: Any) -> Any:
    """Coordinates typed with a decimal comma are sent with a dot."""
    if isinstance(value, str):
        return value.strip().replace(",", ".")
    return value


def _form_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = value.strip() if isinstance(value, str) else str(value)
    return text or None


def build_draft_form(meta: Dict[str, Any]) -> List[Tuple[str, str]]:
    """
    Encode draft metadata as multipart form fields.

    Blank values are left out, the anonymous flag is sent as "true"/"false"
    and contact fields are only sent for identified complaints.

    Args:
        meta: Draft metadata

    Returns:
        List of (field, value) pairs
    """
    form: List[Tuple[str, str]] = []

    def append_if(key: str, value: Any) -> None:
        text = _form_value(value)
        if text is not None:
            form.append((key, text))

    for key in DRAFT_FIELDS[:2]:
        append_if(key, meta.get(key))

    if isinstance(meta.get("anonymous"), bool):
        form.append(("anonymous", "true" if meta["anonymous"] else "false"))

    for key in DRAFT_FIELDS[2:]:
        value = meta.get(key)
        if key in ("location_lat", "location_lng"):
            value = normalize_decimal(value)
        append_if(key, value)

    if not meta.get("anonymous"):
        for key in CONTACT_FIELDS:
            append_if(key, meta.get(key))

    return form


def _read_body(response: requests.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class OuvidoriaClient:
    """HTTP client for the ouvidoria API backed by a ``requests.Session``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None
    ):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = (CONNECT_TIMEOUT, timeout)
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_random_exponential(multiplier=1, max=10),
        retry=(retry_if_exception_type(ConnectTimeout) | retry_if_exception_type(ReadTimeout)),
        reraise=True,
    )
    def _get(self, path: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        logger.debug(f"GET {path} params={kwargs.get('params')}")
        return self.session.get(self._url(path), **kwargs)

    # Writes are only retried when the connection was never established
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_random_exponential(multiplier=1, max=10),
        retry=retry_if_exception_type(ConnectTimeout),
        reraise=True,
    )
    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        logger.debug(f"{method} {path}")
        return self.session.request(method, self._url(path), **kwargs)

    def _check(self, operation: str, response: requests.Response) -> None:
        if 200 <= response.status_code < 300:
            return

        body = _read_body(response)
        logger.error(
            f"Ouvidoria API {operation} error",
            extra={
                "operation": operation,
                "status_code": response.status_code,
                "response_body": body
            }
        )
        raise OuvidoriaAPIError(operation, response.status_code, body)

    def _parse(self, operation: str, response: requests.Response, model):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            body = _read_body(response)
            logger.error(
                f"Ouvidoria API {operation} returned an unexpected payload",
                extra={
                    "operation": operation,
                    "status_code": response.status_code,
                    "response_body": body
                }
            )
            raise OuvidoriaAPIError(
                operation, response.status_code, body,
                message=f"Ouvidoria API {operation} returned an unexpected payload"
            ) from e

    def _call(self, operation: str, fn, *args, **kwargs) -> requests.Response:
        with tracer.start_as_current_span(f"ouvidoria.{operation}") as span:
            span.set_attribute("ouvidoria.operation", operation)
            try:
                response = fn(*args, **kwargs)
            except requests.RequestException as e:
                span.set_attribute("ouvidoria.result", "network_error")
                logger.error(f"Ouvidoria API {operation} unreachable: {str(e)}")
                raise OuvidoriaAPIError(operation, None, message=f"Ouvidoria API unreachable: {str(e)}") from e

            span.set_attribute("http.status_code", response.status_code)
            span.set_attribute("ouvidoria.result", "success" if response.status_code < 300 else "error")
            return response

    def create_draft(self, meta: Dict[str, Any], file: Optional[FileTuple] = None) -> CreateDraftResponse:
        """
        Create a draft manifestation (POST /v1/manifestations, multipart).

        Args:
            meta: Draft metadata (text or original_text, flags, location, contact)
            file: Optional file sent with the draft under ``file``

        Returns:
            CreateDraftResponse

        Raises:
            DraftValidationError: If there is neither text nor file
            OuvidoriaAPIError: If the API rejects the draft
        """
        has_text = bool(_form_value(meta.get("text")) or _form_value(meta.get("original_text")))
        if not has_text and file is None:
            raise DraftValidationError("Provide text (text/original_text) or attach a file")

        form = build_draft_form(meta)
        files = {"file": file} if file is not None else None

        response = self._call(
            "create_draft", self._send, "POST", "/v1/manifestations", data=form, files=files
        )
        self._check("create_draft", response)
        return self._parse("create_draft", response, CreateDraftResponse)

    def update_draft(self, manifestation_id: str, body: Dict[str, Any]) -> UpdateDraftResponse:
        """
        Update a draft (PATCH /v1/manifestations/{id}, JSON).

        ``complementary_tags`` is a list on this endpoint.
        """
        payload = dict(body)
        tags = payload.get("complementary_tags")
        if isinstance(tags, str):
            payload["complementary_tags"] = [t.strip() for t in tags.split(",") if t.strip()]

        response = self._call(
            "update_draft", self._send, "PATCH",
            f"/v1/manifestations/{quote(manifestation_id, safe='')}", json=payload
        )
        self._check("update_draft", response)
        return self._parse("update_draft", response, UpdateDraftResponse)

    def add_attachments(self, manifestation_id: str, files: Sequence[FileTuple]) -> None:
        """
        Upload attachments to a draft (POST /v1/manifestations/{id}/attachments).

        Each file is a repeated ``files`` part. Nothing is sent for an empty list.
        """
        if not files:
            return

        parts = [("files", f) for f in files]
        response = self._call(
            "add_attachments", self._send, "POST",
            f"/v1/manifestations/{quote(manifestation_id, safe='')}/attachments", files=parts
        )
        self._check("add_attachments", response)

    def submit(self, manifestation_id: str) -> SubmitResponse:
        """Submit a draft and obtain its protocol."""
        response = self._call(
            "submit", self._send, "POST",
            f"/v1/manifestations/{quote(manifestation_id, safe='')}/submit"
        )
        self._check("submit", response)
        return self._parse("submit", response, SubmitResponse)

    def get_by_protocol(self, protocol: str) -> ManifestationDetailResponse:
        """
        Look up a manifestation by protocol.

        Raises:
            ProtocolNotFoundError: If the protocol is unknown
            OuvidoriaAPIError: On any other error status
        """
        response = self._call("get_by_protocol", self._get, f"/v1/manifestations/{quote(protocol, safe='')}")
        if response.status_code == 404:
            raise ProtocolNotFoundError(protocol, _read_body(response))
        self._check("get_by_protocol", response)
        return self._parse("get_by_protocol", response, ManifestationDetailResponse)

    def list_attachments(self, protocol: str) -> AttachmentsListResponse:
        """List the attachments of a submitted manifestation."""
        response = self._call(
            "list_attachments", self._get, f"/v1/manifestations/{quote(protocol, safe='')}/attachments"
        )
        if response.status_code == 404:
            raise ProtocolNotFoundError(protocol, _read_body(response))
        self._check("list_attachments", response)
        return self._parse("list_attachments", response, AttachmentsListResponse)

    def admin_list(self, page: int = 1, per_page: int = 20) -> AdminManifestationsResponse:
        """List manifestations for the admin dashboard."""
        response = self._call(
            "admin_list", self._get, "/v1/admin/manifestations",
            params={"page": str(page), "per_page": str(per_page)}
        )
        self._check("admin_list", response)
        return self._parse("admin_list", response, AdminManifestationsResponse)

    def ping(self) -> bool:
        """
        Check that the API answers.

        Any HTTP answer below 500 counts as reachable.
        """
        try:
            response = self.session.get(self._url("/"), timeout=(CONNECT_TIMEOUT, 5))
            return response.status_code < 500
        except requests.RequestException as e:
            logger.warning(f"Ouvidoria API ping failed: {str(e)}")
            return False

    def close(self) -> None:
        self.session.close()
