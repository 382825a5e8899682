# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the Participa DF ouvidoria gateway.
"""

from enum import Enum


class CompositionStep(str, Enum):
    """Wizard step of a complaint being composed."""
    COMPOSING = "composing"
    SENSITIVE_WARNING = "sensitive_warning"
    IDENTITY_CHOICE = "identity_choice"
    ANONYMOUS_WARNING = "anonymous_warning"
    REVIEW = "review"
    SUBMITTED = "submitted"


class IdentityMode(str, Enum):
    """How the citizen discloses their identity."""
    ANONYMOUS = "anonymous"
    IDENTIFY = "identify"


class AttachmentType(str, Enum):
    """Media kind of an attachment."""
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class AttachmentSource(str, Enum):
    """Where an attachment came from on the client."""
    UPLOAD = "upload"
    CAMERA = "camera"
    RECORDER = "recorder"


class ManifestationStatus(str, Enum):
    """Status reported by the ouvidoria API."""
    DRAFT = "draft"
    RECEIVED = "received"


class SensitiveDataType(str, Enum):
    """Kinds of personal data detected in complaint text."""
    CPF = "cpf"
    CNPJ = "cnpj"
    EMAIL = "email"
    PHONE = "phone"
    RG = "rg"
    ADDRESS = "address"


class AdminPermission(str, Enum):
    """Permissions carried by admin access tokens."""
    MANIFESTATION_LIST = "manifestation:list"
