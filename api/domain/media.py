# SPDX-License-Identifier: Apache-2.0

"""
Media intake rules for complaint attachments.

Validation of picked or captured files, capture file naming, recording
format negotiation and photo normalization.
"""

import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from models.enums import AttachmentSource, AttachmentType

JPEG_QUALITY = 92

AUDIO_RECORDING_CANDIDATES = [
    "audio/webm;codecs=opus",
    "audio/webm",
    "audio/ogg;codecs=opus",
]
VIDEO_RECORDING_CANDIDATES = [
    "video/webm;codecs=vp9,opus",
    "video/webm;codecs=vp8,opus",
    "video/webm",
]
RECORDING_FALLBACKS = {
    "audio": "audio/webm",
    "video": "video/webm",
}

CAPTURE_NAMING = {
    (AttachmentSource.CAMERA, AttachmentType.IMAGE): ("foto", "jpg"),
    (AttachmentSource.CAMERA, AttachmentType.VIDEO): ("video", "webm"),
    (AttachmentSource.RECORDER, AttachmentType.AUDIO): ("recording", "webm"),
    (AttachmentSource.RECORDER, AttachmentType.VIDEO): ("video", "webm"),
}


class MediaValidationError(Exception):
    """Raised when an uploaded file is not acceptable."""

    def __init__(self, message: str, reason: str = "invalid"):
        super().__init__(message)
        self.message = message
        self.reason = reason


@dataclass
class MediaLimits:
    """Upload limits for a composition."""
    max_bytes: int = 25 * 1024 * 1024
    max_attachments: int = 10


def infer_attachment_type(mime_type: Optional[str]) -> AttachmentType:
    """Media kind of a MIME type; anything not image or audio is treated as video."""
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return AttachmentType.IMAGE
    if mime.startswith("audio/"):
        return AttachmentType.AUDIO
    return AttachmentType.VIDEO


def is_allowed_mime(mime_type: Optional[str]) -> bool:
    """Only image, audio and video files are accepted."""
    mime = (mime_type or "").lower()
    return mime.startswith(("image/", "audio/", "video/"))


def timestamped_name(prefix: str, ext: str, now: Optional[datetime] = None) -> str:
    """
    Build a capture file name like ``foto-2025-01-31T14-05-09.jpg``.

    Args:
        prefix: Name prefix
        ext: Extension without dot
        now: Timestamp to use (defaults to current UTC time)

    Returns:
        File name
    """
    moment = now or datetime.now(timezone.utc)
    timestamp = moment.strftime("%Y-%m-%dT%H-%M-%S")
    return f"{prefix}-{timestamp}.{ext}"


def capture_filename(
    source: AttachmentSource,
    mime_type: str,
    now: Optional[datetime] = None
) -> Optional[str]:
    """
    File name for media captured in the browser.

    Args:
        source: Capture source
        mime_type: MIME type of the capture
        now: Timestamp to use

    Returns:
        Generated name, or None for plain uploads
    """
    naming = CAPTURE_NAMING.get((AttachmentSource(source), infer_attachment_type(mime_type)))
    if naming is None:
        return None
    prefix, ext = naming
    return timestamped_name(prefix, ext, now)


def pick_recording_mime(kind: str, supported: Sequence[str]) -> str:
    """
    Choose the recording format for the browser MediaRecorder.

    Args:
        kind: "audio" or "video"
        supported: MIME types the browser reports as supported

    Returns:
        First supported candidate, or the kind's fallback
    """
    candidates = recording_candidates(kind)
    supported_set = {s.strip().lower() for s in supported}
    for candidate in candidates:
        if candidate in supported_set:
            return candidate
    return RECORDING_FALLBACKS[kind]


def recording_candidates(kind: str) -> List[str]:
    """Preferred recording formats for a kind, best first."""
    if kind == "audio":
        return list(AUDIO_RECORDING_CANDIDATES)
    if kind == "video":
        return list(VIDEO_RECORDING_CANDIDATES)
    raise ValueError(f"Unknown recording kind: {kind}")


def normalize_photo(data: bytes, quality: int = JPEG_QUALITY) -> Tuple[bytes, str]:
    """
    Re-encode a still image as JPEG.

    Applies the EXIF orientation and drops all metadata, which removes GPS
    tags and camera details before the photo leaves the gateway.

    Args:
        data: Raw image bytes
        quality: JPEG quality (1-95)

    Returns:
        Tuple of (JPEG bytes, "image/jpeg")

    Raises:
        MediaValidationError: If the bytes are not a readable image or the
            image has too many pixels
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image = ImageOps.exif_transpose(image)
            if image.mode != "RGB":
                image = image.convert("RGB")
            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality)
    except Image.DecompressionBombError as e:
        raise MediaValidationError(f"Image dimensions are too large: {str(e)}", reason="too_large")
    except (UnidentifiedImageError, OSError) as e:
        raise MediaValidationError(f"File is not a readable image: {str(e)}")

    return output.getvalue(), "image/jpeg"


def replace_extension(filename: str, ext: str) -> str:
    """Swap the extension of a file name."""
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return f"{stem}.{ext}"


def validate_upload(
    filename: Optional[str],
    mime_type: Optional[str],
    size_bytes: int,
    current_count: int,
    limits: MediaLimits
) -> None:
    """
    Check an upload against the intake rules.

    Args:
        filename: Client file name
        mime_type: Declared MIME type
        size_bytes: File size
        current_count: Attachments already staged for the composition
        limits: Upload limits

    Raises:
        MediaValidationError: With reason "invalid", "too_large" or "too_many"
    """
    if current_count >= limits.max_attachments:
        raise MediaValidationError(
            f"A manifestation accepts at most {limits.max_attachments} attachments",
            reason="too_many"
        )

    if not is_allowed_mime(mime_type):
        raise MediaValidationError(
            f"Unsupported file type: {mime_type or 'unknown'}. Send a photo, audio or video"
        )

    if size_bytes <= 0:
        raise MediaValidationError(f"Uploaded file is empty: {filename or 'unnamed'}")

    if size_bytes > limits.max_bytes:
        raise MediaValidationError(
            f"File exceeds the maximum size of {limits.max_bytes} bytes",
            reason="too_large"
        )
