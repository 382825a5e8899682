# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - External integrations and side effects.
"""

from .ouvidoria import OuvidoriaClient, OuvidoriaAPIError, ProtocolNotFoundError, DraftValidationError
from .geocoding import GeocodingService, GeocodingError
from .redis import RedisService
from .sessions import CompositionStore, SessionNotFoundError, SessionStoreError
from .staging import AttachmentStaging, StagedFileNotFoundError

__all__ = [
    "OuvidoriaClient",
    "OuvidoriaAPIError",
    "ProtocolNotFoundError",
    "DraftValidationError",
    "GeocodingService",
    "GeocodingError",
    "RedisService",
    "CompositionStore",
    "SessionNotFoundError",
    "SessionStoreError",
    "AttachmentStaging",
    "StagedFileNotFoundError"
]
