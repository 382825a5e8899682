# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for HAL links and ouvidoria API payloads.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class UpstreamModel(BaseModel):
    """Base for payloads returned by the ouvidoria API (tolerant to new fields)."""

    model_config = ConfigDict(extra="allow")


class CreateDraftResponse(UpstreamModel):
    """Draft created by POST /v1/manifestations."""

    id: str = Field(..., description="Manifestation ID")
    status: str = Field(..., description="Manifestation status")
    protocol: Optional[str] = Field(None, description="Protocol (usually absent on drafts)")


class UpdateDraftResponse(UpstreamModel):
    """Draft updated by PATCH /v1/manifestations/{id}."""

    id: str = Field(..., description="Manifestation ID")
    protocol: Optional[str] = Field(None, description="Protocol")
    status: str = Field(..., description="Manifestation status")


class SubmitResponse(UpstreamModel):
    """Protocol issued by POST /v1/manifestations/{id}/submit."""

    protocol: str = Field(..., description="Protocol number")
    status: str = Field(..., description="Manifestation status")


class AttachmentListItem(UpstreamModel):
    """Attachment of a submitted manifestation."""

    id: str = Field(..., description="Attachment ID")
    type: str = Field(..., description="Attachment kind")
    mime_type: str = Field(..., description="MIME type")
    size_bytes: int = Field(..., description="Size in bytes")
    created_at: str = Field(..., description="Upload timestamp")


class AttachmentsListResponse(UpstreamModel):
    """Attachments listed by protocol."""

    protocol: str = Field(..., description="Protocol number")
    attachments: List[AttachmentListItem] = Field(default_factory=list, description="Attachments")


class ManifestationDetailResponse(UpstreamModel):
    """Manifestation looked up by protocol."""

    protocol: str = Field(..., description="Protocol number")
    status: str = Field(..., description="Manifestation status")
    input_type: str = Field(..., description="Kind of the main input")
    created_at: str = Field(..., description="Creation timestamp")
    attachments_count: int = Field(default=0, description="Number of attachments")
    subject_label: Optional[str] = Field(None, description="Subject")
    summary: Optional[str] = Field(None, description="Summary")
    extracted_text: Optional[str] = Field(None, description="Text extracted from media")


class ManifestationListItem(UpstreamModel):
    """Manifestation row of the admin listing."""

    id: str = Field(..., description="Manifestation ID")
    protocol: Optional[str] = Field(None, description="Protocol number")
    input_type: Optional[str] = Field(None, description="Kind of the main input")
    anonymous: bool = Field(default=False, description="Whether sent anonymously")
    status: str = Field(..., description="Manifestation status")
    created_at: str = Field(..., description="Creation timestamp")
    attachments_count: int = Field(default=0, description="Number of attachments")


class AdminManifestationsResponse(UpstreamModel):
    """Page of the admin listing."""

    total: int = Field(..., description="Total number of manifestations")
    page: int = Field(..., description="Current page")
    per_page: int = Field(..., description="Items per page")
    items: List[ManifestationListItem] = Field(default_factory=list, description="Manifestations")
