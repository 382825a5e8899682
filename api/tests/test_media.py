# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for media validation and preparation.
"""

import io
import pytest
from datetime import datetime, timezone
from unittest.mock import patch
from PIL import Image

from domain.media import (
    MediaLimits, MediaValidationError, infer_attachment_type, is_allowed_mime,
    timestamped_name, capture_filename, pick_recording_mime, recording_candidates,
    normalize_photo, replace_extension, validate_upload
)
from models.enums import AttachmentSource, AttachmentType

NOW = datetime(2026, 3, 14, 9, 5, 7, tzinfo=timezone.utc)


class TestMediaTypes:
    """Test MIME helpers."""

    @pytest.mark.parametrize("mime,expected", [
        ("image/png", AttachmentType.IMAGE),
        ("IMAGE/JPEG", AttachmentType.IMAGE),
        ("audio/ogg", AttachmentType.AUDIO),
        ("video/mp4", AttachmentType.VIDEO),
        ("application/pdf", AttachmentType.VIDEO),
        (None, AttachmentType.VIDEO),
    ])
    def test_infer_attachment_type(self, mime, expected):
        assert infer_attachment_type(mime) == expected

    def test_is_allowed_mime(self):
        assert is_allowed_mime("video/webm")
        assert not is_allowed_mime("application/pdf")
        assert not is_allowed_mime("")


class TestCaptureNames:
    """Test generated file names."""

    def test_timestamped_name(self):
        assert timestamped_name("foto", "jpg", NOW) == "foto-2026-03-14T09-05-07.jpg"

    @pytest.mark.parametrize("source,mime,expected", [
        (AttachmentSource.CAMERA, "image/jpeg", "foto-2026-03-14T09-05-07.jpg"),
        (AttachmentSource.CAMERA, "video/webm", "video-2026-03-14T09-05-07.webm"),
        (AttachmentSource.RECORDER, "audio/webm", "recording-2026-03-14T09-05-07.webm"),
        ("recorder", "audio/ogg", "recording-2026-03-14T09-05-07.webm"),
    ])
    def test_capture_filename(self, source, mime, expected):
        assert capture_filename(source, mime, NOW) == expected

    def test_plain_upload_keeps_name(self):
        assert capture_filename(AttachmentSource.UPLOAD, "image/png", NOW) is None

    def test_replace_extension(self):
        assert replace_extension("IMG_0001.HEIC", "jpg") == "IMG_0001.jpg"
        assert replace_extension("foto", "jpg") == "foto.jpg"


class TestRecordingProfile:
    """Test MediaRecorder format choice."""

    def test_first_supported_audio_candidate(self):
        assert pick_recording_mime("audio", ["audio/ogg;codecs=opus", "audio/webm"]) == "audio/webm"

    def test_best_video_candidate(self):
        supported = ["video/webm", "video/webm;codecs=vp9,opus"]

        assert pick_recording_mime("video", supported) == "video/webm;codecs=vp9,opus"

    def test_fallback_when_nothing_supported(self):
        assert pick_recording_mime("audio", []) == "audio/webm"
        assert pick_recording_mime("video", ["video/mp4"]) == "video/webm"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            recording_candidates("image")


class TestNormalizePhoto:
    """Test photo re-encoding."""

    def test_png_becomes_jpeg(self, png_bytes):
        data, mime = normalize_photo(png_bytes)

        assert mime == "image/jpeg"
        with Image.open(io.BytesIO(data)) as image:
            assert image.format == "JPEG"
            assert image.size == (8, 6)

    def test_exif_is_dropped_and_orientation_applied(self):
        image = Image.new("RGB", (10, 4), (0, 128, 255))
        exif = Image.Exif()
        exif[0x0112] = 6  # rotated 90 degrees
        exif[0x010F] = "Camera Maker"
        output = io.BytesIO()
        image.save(output, format="JPEG", exif=exif.tobytes())

        data, _ = normalize_photo(output.getvalue())

        with Image.open(io.BytesIO(data)) as normalized:
            assert normalized.size == (4, 10)
            assert len(normalized.getexif()) == 0

    def test_rgba_is_converted(self):
        output = io.BytesIO()
        Image.new("RGBA", (3, 3), (0, 0, 0, 0)).save(output, format="PNG")

        data, _ = normalize_photo(output.getvalue())

        with Image.open(io.BytesIO(data)) as image:
            assert image.mode == "RGB"

    def test_unreadable_image(self):
        with pytest.raises(MediaValidationError) as exc_info:
            normalize_photo(b"not an image")

        assert exc_info.value.reason == "invalid"

    def test_oversized_dimensions(self):
        output = io.BytesIO()
        Image.new("1", (100, 100)).save(output, format="PNG")

        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            with pytest.raises(MediaValidationError) as exc_info:
                normalize_photo(output.getvalue())

        assert exc_info.value.reason == "too_large"


class TestValidateUpload:
    """Test intake rules."""

    def setup_method(self):
        self.limits = MediaLimits(max_bytes=100, max_attachments=2)

    def test_valid_upload(self):
        validate_upload("foto.jpg", "image/jpeg", 50, 0, self.limits)

    def test_disallowed_type(self):
        with pytest.raises(MediaValidationError) as exc_info:
            validate_upload("doc.pdf", "application/pdf", 50, 0, self.limits)

        assert exc_info.value.reason == "invalid"

    def test_empty_file(self):
        with pytest.raises(MediaValidationError) as exc_info:
            validate_upload("vazio.jpg", "image/jpeg", 0, 0, self.limits)

        assert exc_info.value.reason == "invalid"

    def test_too_large(self):
        with pytest.raises(MediaValidationError) as exc_info:
            validate_upload("grande.mp4", "video/mp4", 101, 0, self.limits)

        assert exc_info.value.reason == "too_large"

    def test_too_many(self):
        with pytest.raises(MediaValidationError) as exc_info:
            validate_upload("foto.jpg", "image/jpeg", 10, 2, self.limits)

        assert exc_info.value.reason == "too_many"

    def test_default_limits(self):
        limits = MediaLimits()

        assert limits.max_bytes == 25 * 1024 * 1024
        assert limits.max_attachments == 10
