# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the Participa DF gateway.
"""

# Base models
from .base import BaseEntity, BaseRequest, generate_id, utcnow

# Enumerations
from .enums import (
    CompositionStep,
    IdentityMode,
    AttachmentType,
    AttachmentSource,
    ManifestationStatus,
    SensitiveDataType,
    AdminPermission
)

# Core entities
from .entities import (
    GeoPoint,
    StagedAttachment,
    Composition,
    LocationAddress,
    LocationResult,
    ReverseGeocodeResult,
    UserContext
)

# Request models
from .requests import (
    CreateCompositionRequest,
    UpdateCompositionRequest,
    PickLocationRequest,
    ChooseIdentityRequest,
    ScreeningRequest,
    LocationSearchParams,
    ReverseGeocodeParams,
    RecordingProfileParams,
    PaginationParams,
    CompositionPath,
    AttachmentPath,
    ProtocolPath
)

# Response models
from .responses import (
    HalLink,
    CreateDraftResponse,
    UpdateDraftResponse,
    SubmitResponse,
    AttachmentListItem,
    AttachmentsListResponse,
    ManifestationDetailResponse,
    ManifestationListItem,
    AdminManifestationsResponse
)

__all__ = [
    # Base
    "BaseEntity",
    "BaseRequest",
    "generate_id",
    "utcnow",

    # Enums
    "CompositionStep",
    "IdentityMode",
    "AttachmentType",
    "AttachmentSource",
    "ManifestationStatus",
    "SensitiveDataType",
    "AdminPermission",

    # Entities
    "GeoPoint",
    "StagedAttachment",
    "Composition",
    "LocationAddress",
    "LocationResult",
    "ReverseGeocodeResult",
    "UserContext",

    # Requests
    "CreateCompositionRequest",
    "UpdateCompositionRequest",
    "PickLocationRequest",
    "ChooseIdentityRequest",
    "ScreeningRequest",
    "LocationSearchParams",
    "ReverseGeocodeParams",
    "RecordingProfileParams",
    "PaginationParams",
    "CompositionPath",
    "AttachmentPath",
    "ProtocolPath",

    # Responses
    "HalLink",
    "CreateDraftResponse",
    "UpdateDraftResponse",
    "SubmitResponse",
    "AttachmentListItem",
    "AttachmentsListResponse",
    "ManifestationDetailResponse",
    "ManifestationListItem",
    "AdminManifestationsResponse"
]
