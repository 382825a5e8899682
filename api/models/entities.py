# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the Participa DF ouvidoria gateway.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from .base import BaseEntity, generate_id, utcnow
from .enums import (
    AttachmentSource,
    AttachmentType,
    CompositionStep,
    IdentityMode
)


class GeoPoint(BaseModel):
    """Geographic coordinate picked on the map or from a search result."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class StagedAttachment(BaseModel):
    """Metadata of an uploaded file staged until submission."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=generate_id, description="Attachment identifier")
    filename: str = Field(..., min_length=1, max_length=255, description="File name sent upstream")
    mime_type: str = Field(..., description="MIME type")
    size_bytes: int = Field(..., ge=0, description="Size in bytes")
    type: AttachmentType = Field(..., description="Media kind")
    source: AttachmentSource = Field(default=AttachmentSource.UPLOAD, description="Capture source")
    created_at: datetime = Field(default_factory=utcnow, description="Upload timestamp")


class Composition(BaseEntity):
    """A complaint being composed through the submission wizard."""

    step: CompositionStep = Field(default=CompositionStep.COMPOSING, description="Current wizard step")
    content: str = Field(default="", max_length=20000, description="Complaint text")
    subject_label: str = Field(default="", max_length=200, description="Subject")
    administrative_region: str = Field(default="", max_length=200, description="Administrative region")
    location_description: str = Field(default="", max_length=500, description="Location reference")
    tags: List[str] = Field(default_factory=list, description="Complementary tags")
    geo: Optional[GeoPoint] = Field(None, description="Picked coordinates")
    identity_mode: IdentityMode = Field(default=IdentityMode.ANONYMOUS, description="Identity disclosure")
    contact_name: Optional[str] = Field(None, max_length=200, description="Contact name")
    contact_email: Optional[str] = Field(None, max_length=254, description="Contact email")
    contact_phone: Optional[str] = Field(None, max_length=40, description="Contact phone")
    attachments: List[StagedAttachment] = Field(default_factory=list, description="Staged attachments")
    sensitive_data_types: List[str] = Field(default_factory=list, description="Labels of detected personal data")
    protocol: Optional[str] = Field(None, description="Protocol issued on submission")
    manifestation_id: Optional[str] = Field(None, description="Upstream manifestation identifier")

    @property
    def is_anonymous(self) -> bool:
        """Whether the complaint will be sent anonymously."""
        return self.identity_mode == IdentityMode.ANONYMOUS.value

    @property
    def is_submitted(self) -> bool:
        """Whether the complaint already has a protocol."""
        return self.step == CompositionStep.SUBMITTED.value

    def find_attachment(self, attachment_id: str) -> Optional[StagedAttachment]:
        """Find a staged attachment by identifier."""
        for attachment in self.attachments:
            if attachment.id == attachment_id:
                return attachment
        return None


class LocationAddress(BaseModel):
    """Hierarchical address of a geocoding result."""

    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    suburb: Optional[str] = None
    road: Optional[str] = None
    county: Optional[str] = None


class LocationResult(BaseModel):
    """Place returned by the location search."""

    place_id: str = Field(..., description="Provider place identifier")
    display_name: str = Field(..., description="Human readable label")
    lat: str = Field(..., description="Latitude as returned by the provider")
    lon: str = Field(..., description="Longitude as returned by the provider")
    address: LocationAddress = Field(default_factory=LocationAddress, description="Address details")


class ReverseGeocodeResult(BaseModel):
    """Label and administrative region for a map point."""

    lat: float
    lng: float
    display_name: Optional[str] = None
    admin_region: Optional[str] = None


class UserContext(BaseModel):
    """Admin context for request processing with authentication and authorization data."""

    user_id: str = Field(..., description="Authenticated user ID")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    permissions: List[str] = Field(default_factory=list, description="User's effective permissions")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    @field_validator('permissions')
    @classmethod
    def validate_permissions(cls, v):
        """Drop duplicated permissions keeping order."""
        return list(dict.fromkeys(v))

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions

    def has_any_permission(self, permissions: List[str]) -> bool:
        """Check if user has any of the specified permissions."""
        return any(perm in self.permissions for perm in permissions)
