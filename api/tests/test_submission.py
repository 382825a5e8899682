# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for turning a reviewed composition into ouvidoria API calls.
"""

import pytest
from unittest.mock import MagicMock, call

from domain.submission import (
    build_draft_meta, plan_uploads, submit_composition, SubmissionStateError
)
from models.entities import StagedAttachment
from models.enums import CompositionStep, IdentityMode
from services.ouvidoria import OuvidoriaAPIError
from services.staging import StagedFileNotFoundError


def _staged(staging, composition, filename, mime, kind, data):
    attachment = StagedAttachment(filename=filename, mime_type=mime, size_bytes=len(data), type=kind)
    staging.save(composition.id, attachment.id, data)
    composition.attachments.append(attachment)
    return attachment


class TestBuildDraftMeta:
    """Test draft metadata."""

    def test_anonymous_meta(self, reviewed):
        reviewed.contact_name = None
        meta = build_draft_meta(reviewed)

        assert meta["text"] == reviewed.content
        assert meta["anonymous"] is True
        assert meta["subject_label"] == "Iluminação pública"
        assert meta["complementary_tags"] == "buraco, via"
        assert meta["administrative_region"] == "Ceilândia"
        assert meta["location_lat"] == -15.8183
        assert meta["location_lng"] == -48.1076
        assert meta["summary"].startswith("Assunto: Iluminação pública")
        assert "contact_name" not in meta

    def test_identified_meta_has_contact(self, reviewed):
        reviewed.identity_mode = IdentityMode.IDENTIFY
        reviewed.contact_name = "Maria"
        reviewed.contact_email = "maria@exemplo.com"

        meta = build_draft_meta(reviewed)

        assert meta["anonymous"] is False
        assert meta["contact_name"] == "Maria"
        assert meta["contact_email"] == "maria@exemplo.com"
        assert meta["contact_phone"] is None

    def test_meta_without_location(self, reviewed):
        reviewed.geo = None

        meta = build_draft_meta(reviewed)

        assert "location_lat" not in meta
        assert "location_lng" not in meta

    def test_text_is_trimmed(self, reviewed):
        reviewed.content = "  texto com espaços  \n"

        assert build_draft_meta(reviewed)["text"] == "texto com espaços"


class TestPlanUploads:
    """Test how attachments are split between the draft and later uploads."""

    def test_with_text_all_attachments_go_after_draft(self, reviewed, sample_attachment):
        reviewed.attachments = [sample_attachment]

        plan = plan_uploads(reviewed)

        assert plan.draft_file is None
        assert [a.id for a in plan.extra_files] == [sample_attachment.id]

    def test_without_text_first_attachment_goes_with_draft(self, reviewed):
        first = StagedAttachment(filename="a.webm", mime_type="audio/webm", size_bytes=3, type="audio")
        second = StagedAttachment(filename="b.jpg", mime_type="image/jpeg", size_bytes=3, type="image")
        reviewed.content = "   "
        reviewed.attachments = [first, second]

        plan = plan_uploads(reviewed)

        assert plan.draft_file.id == first.id
        assert [a.id for a in plan.extra_files] == [second.id]

    def test_text_only(self, reviewed):
        plan = plan_uploads(reviewed)

        assert plan.draft_file is None
        assert plan.extra_files == []


class TestSubmitComposition:
    """Test the submission sequence."""

    def test_text_only_submission(self, reviewed, ouvidoria_client, staging):
        result = submit_composition(reviewed, ouvidoria_client, staging)

        ouvidoria_client.create_draft.assert_called_once()
        meta = ouvidoria_client.create_draft.call_args.args[0]
        assert meta["text"] == reviewed.content
        assert ouvidoria_client.create_draft.call_args.kwargs["file"] is None
        ouvidoria_client.add_attachments.assert_not_called()
        ouvidoria_client.submit.assert_called_once_with("m-123")

        assert result.protocol == "OUV-2026-000123"
        assert result.status == "received"
        assert result.manifestation_id == "m-123"
        assert result.composition.step == CompositionStep.SUBMITTED.value
        assert result.composition.protocol == "OUV-2026-000123"
        assert result.to_dict() == {
            "protocol": "OUV-2026-000123",
            "status": "received",
            "manifestation_id": "m-123"
        }

    def test_attachments_uploaded_after_draft(self, reviewed, ouvidoria_client, staging):
        photo = _staged(staging, reviewed, "foto.jpg", "image/jpeg", "image", b"jpeg-bytes")
        audio = _staged(staging, reviewed, "audio.webm", "audio/webm", "audio", b"webm-bytes")

        submit_composition(reviewed, ouvidoria_client, staging)

        assert ouvidoria_client.create_draft.call_args.kwargs["file"] is None
        ouvidoria_client.add_attachments.assert_called_once_with("m-123", [
            (photo.filename, b"jpeg-bytes", "image/jpeg"),
            (audio.filename, b"webm-bytes", "audio/webm"),
        ])

    def test_media_only_submission_sends_first_file_with_draft(self, reviewed, ouvidoria_client, staging):
        reviewed.content = ""
        _staged(staging, reviewed, "recording.webm", "audio/webm", "audio", b"voice")

        submit_composition(reviewed, ouvidoria_client, staging)

        assert ouvidoria_client.create_draft.call_args.kwargs["file"] == ("recording.webm", b"voice", "audio/webm")
        ouvidoria_client.add_attachments.assert_not_called()

    def test_call_order(self, reviewed, ouvidoria_client, staging):
        _staged(staging, reviewed, "foto.jpg", "image/jpeg", "image", b"jpeg")
        manager = MagicMock()
        manager.attach_mock(ouvidoria_client.create_draft, "create_draft")
        manager.attach_mock(ouvidoria_client.add_attachments, "add_attachments")
        manager.attach_mock(ouvidoria_client.submit, "submit")

        submit_composition(reviewed, ouvidoria_client, staging)

        assert [c[0] for c in manager.mock_calls] == ["create_draft", "add_attachments", "submit"]

    def test_not_in_review(self, composing, ouvidoria_client, staging):
        with pytest.raises(SubmissionStateError):
            submit_composition(composing, ouvidoria_client, staging)

        ouvidoria_client.create_draft.assert_not_called()

    def test_upstream_failure_leaves_composition_in_review(self, reviewed, ouvidoria_client, staging):
        ouvidoria_client.submit.side_effect = OuvidoriaAPIError("submit", 500, {"detail": "boom"})

        with pytest.raises(OuvidoriaAPIError):
            submit_composition(reviewed, ouvidoria_client, staging)

        assert reviewed.step == CompositionStep.REVIEW.value
        assert reviewed.protocol is None

    def test_missing_extra_file_fails_before_draft(self, reviewed, ouvidoria_client, staging):
        _staged(staging, reviewed, "foto.jpg", "image/jpeg", "image", b"jpeg")
        lost = _staged(staging, reviewed, "audio.webm", "audio/webm", "audio", b"webm")
        staging.delete(reviewed.id, lost.id)

        with pytest.raises(StagedFileNotFoundError):
            submit_composition(reviewed, ouvidoria_client, staging)

        ouvidoria_client.create_draft.assert_not_called()
        ouvidoria_client.submit.assert_not_called()
        assert reviewed.step == CompositionStep.REVIEW.value
