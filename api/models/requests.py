# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

import re
from typing import List, Optional, Union
from pydantic import BaseModel, Field, field_validator
from .base import BaseRequest
from .enums import IdentityMode

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class UpdateCompositionRequest(BaseRequest):
    """Request model for editing the fields of a composition."""

    content: Optional[str] = Field(None, max_length=20000, description="Complaint text")
    subject_label: Optional[str] = Field(None, max_length=200, description="Subject")
    administrative_region: Optional[str] = Field(None, max_length=200, description="Administrative region")
    location_description: Optional[str] = Field(None, max_length=500, description="Location reference")
    tags: Optional[Union[List[str], str]] = Field(None, description="Tags as a list or comma-separated text")


class CreateCompositionRequest(UpdateCompositionRequest):
    """Request model for starting a composition."""


class PickLocationRequest(BaseRequest):
    """Request model for choosing a location on the map or from search."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")
    label: Optional[str] = Field(None, max_length=500, description="Display label of the place")
    admin_region: Optional[str] = Field(None, max_length=200, description="Administrative region")

    @field_validator('lat', 'lng', mode='before')
    @classmethod
    def accept_decimal_comma(cls, v):
        """Accept coordinates typed with a decimal comma."""
        if isinstance(v, str):
            return v.strip().replace(',', '.')
        return v


class ChooseIdentityRequest(BaseRequest):
    """Request model for the identity disclosure choice."""

    mode: IdentityMode = Field(..., description="Identity disclosure mode")
    contact_name: Optional[str] = Field(None, max_length=200, description="Contact name")
    contact_email: Optional[str] = Field(None, max_length=254, description="Contact email")
    contact_phone: Optional[str] = Field(None, max_length=40, description="Contact phone")

    @field_validator('contact_email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if not v:
            return None
        if not EMAIL_PATTERN.match(v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('contact_name', 'contact_phone')
    @classmethod
    def empty_as_none(cls, v):
        """Treat blank contact fields as missing."""
        return v or None


class ScreeningRequest(BaseRequest):
    """Request model for sensitive data screening."""

    text: str = Field(..., max_length=20000, description="Text to screen")


class LocationSearchParams(BaseModel):
    """Query parameters for the location search."""

    q: str = Field(default="", max_length=200, description="Search term")
    limit: int = Field(default=5, ge=1, le=20, description="Maximum number of results")


class ReverseGeocodeParams(BaseModel):
    """Query parameters for reverse geocoding."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class RecordingProfileParams(BaseModel):
    """Query parameters for choosing a recording MIME type."""

    kind: str = Field(..., pattern=r'^(audio|video)$', description="Recording kind")
    supported: List[str] = Field(default_factory=list, description="MIME types the recorder supports")

    @field_validator('supported', mode='before')
    @classmethod
    def single_value_as_list(cls, v):
        """A single query value arrives as a plain string."""
        if isinstance(v, str):
            return [v]
        return v


class PaginationParams(BaseModel):
    """Pagination parameters for the admin listing."""

    page: int = Field(default=1, ge=1, description="Page number")
    per_page: int = Field(default=20, ge=1, le=100, description="Items per page")


class CompositionPath(BaseModel):
    """Path parameters addressing a composition."""

    composition_id: str = Field(..., pattern=r'^[0-9a-f]{32}$', description="Composition identifier")


class AttachmentPath(CompositionPath):
    """Path parameters addressing a staged attachment."""

    attachment_id: str = Field(..., pattern=r'^[0-9a-f]{32}$', description="Attachment identifier")


class ProtocolPath(BaseModel):
    """Path parameters addressing a submitted manifestation."""

    protocol: str = Field(..., max_length=64, description="Protocol number")
