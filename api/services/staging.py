# SPDX-License-Identifier: Apache-2.0

"""
Local staging area for uploaded media.

Files are kept under ``<root>/<composition_id>/<attachment_id>`` until the
composition is submitted or its session expires.
"""

import logging
import os
import re
import shutil
import time
from pathlib import Path
from typing import Optional, Union

from opentelemetry import trace

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r'^[0-9a-f]{32}$')


class StagedFileNotFoundError(Exception):
    """Raised when a staged file is missing."""


class AttachmentStaging:
    """Filesystem storage of attachment bytes per composition."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _directory(self, composition_id: str) -> Path:
        if not _ID_PATTERN.match(composition_id):
            raise ValueError(f"Invalid composition identifier: {composition_id}")
        return self.root / composition_id

    def _path(self, composition_id: str, attachment_id: str) -> Path:
        if not _ID_PATTERN.match(attachment_id):
            raise ValueError(f"Invalid attachment identifier: {attachment_id}")
        return self._directory(composition_id) / attachment_id

    def save(self, composition_id: str, attachment_id: str, data: bytes) -> Path:
        """
        Write the bytes of an attachment.

        Args:
            composition_id: Owning composition
            attachment_id: Attachment identifier
            data: File content

        Returns:
            Path of the staged file
        """
        with tracer.start_as_current_span("staging.save") as span:
            span.set_attributes({
                "composition.id": composition_id,
                "attachment.id": attachment_id,
                "attachment.size_bytes": len(data)
            })

            path = self._path(composition_id, attachment_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

            logger.debug(f"Attachment staged: {path} ({len(data)} bytes)")
            return path

    def read(self, composition_id: str, attachment_id: str) -> bytes:
        """
        Read the bytes of a staged attachment.

        Raises:
            StagedFileNotFoundError: If the file is missing
        """
        path = self._path(composition_id, attachment_id)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise StagedFileNotFoundError(f"Staged file missing for attachment {attachment_id}")

    def delete(self, composition_id: str, attachment_id: str) -> bool:
        """Remove one staged attachment."""
        path = self._path(composition_id, attachment_id)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    def delete_composition(self, composition_id: str) -> bool:
        """Remove every staged file of a composition."""
        directory = self._directory(composition_id)
        if not directory.exists():
            return False
        shutil.rmtree(directory, ignore_errors=True)
        logger.info(f"Staged media removed for composition {composition_id}")
        return True

    def touch(self, composition_id: str) -> bool:
        """Mark the staged media of a composition as in use, postponing its purge."""
        directory = self._directory(composition_id)
        if not directory.is_dir():
            return False
        os.utime(directory)
        return True

    def purge_older_than(self, max_age_seconds: int, now: Optional[float] = None) -> int:
        """
        Remove staging directories not modified within ``max_age_seconds``.

        Args:
            max_age_seconds: Maximum age
            now: Reference time (defaults to current time)

        Returns:
            Number of directories removed
        """
        reference = now if now is not None else time.time()
        removed = 0

        for directory in self.root.iterdir():
            if not directory.is_dir() or not _ID_PATTERN.match(directory.name):
                continue
            try:
                age = reference - directory.stat().st_mtime
            except FileNotFoundError:
                continue
            if age > max_age_seconds:
                shutil.rmtree(directory, ignore_errors=True)
                removed += 1

        if removed:
            logger.info(f"Purged {removed} stale staging directories")
        return removed
