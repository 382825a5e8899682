# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from dataclasses import dataclass
from flask import request
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """A multipart file read into memory."""
    filename: str
    mime_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_client_ip() -> str:
        """
        Client address, honouring the first X-Forwarded-For hop set by the
        hosting proxy.
        """
        forwarded_for = request.headers.get('X-Forwarded-For', '')
        first_hop = forwarded_for.split(',')[0].strip()
        return first_hop or request.remote_addr or 'unknown'

    @staticmethod
    def get_form_value(name: str, default: Optional[str] = None) -> Optional[str]:
        """Trimmed multipart form value, or default when blank."""
        value = request.form.get(name)
        if value is None or not value.strip():
            return default
        return value.strip()

    @staticmethod
    def get_uploaded_file(field_name: str = 'file', max_bytes: Optional[int] = None) -> Optional[UploadedFile]:
        """
        Read an uploaded file from the multipart body.

        Reads at most ``max_bytes + 1`` bytes so an oversized file is detected
        without buffering all of it.

        Args:
            field_name: Multipart field holding the file
            max_bytes: Size limit used to bound the read

        Returns:
            UploadedFile, or None when the field is missing
        """
        storage = request.files.get(field_name)
        if storage is None:
            return None

        if max_bytes is not None:
            data = storage.stream.read(max_bytes + 1)
        else:
            data = storage.read()

        mime_type = (storage.mimetype or '').lower()
        filename = (storage.filename or '').strip()

        logger.debug(
            "Multipart file read",
            extra={'field': field_name, 'mime_type': mime_type, 'size_bytes': len(data)}
        )
        return UploadedFile(filename=filename, mime_type=mime_type, data=data)

