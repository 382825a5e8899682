# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import io
import os
import pytest
from unittest.mock import MagicMock

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ.pop('REDIS_URL', None)
os.environ.pop('REDIS_TOKEN', None)

from PIL import Image

from models.entities import Composition, StagedAttachment, GeoPoint
from models.enums import AttachmentType, AttachmentSource, IdentityMode
from models.responses import CreateDraftResponse, SubmitResponse
from services.auth import AuthService
from services.redis import RedisService
from services.sessions import CompositionStore
from services.staging import AttachmentStaging


class FakeUpstashClient:
    """In-memory stand-in for the Upstash HTTP client (TTL is recorded, not enforced)."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def setex(self, key, ttl_seconds, value):
        self.data[key] = value
        self.ttls[key] = ttl_seconds
        return "OK"

    def set(self, key, value, ex=None, nx=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.data)

    def ping(self):
        return "PONG"


@pytest.fixture
def upstash_client():
    return FakeUpstashClient()


@pytest.fixture
def redis_service(upstash_client):
    """Redis service backed by the in-memory client."""
    service = RedisService()
    service.client = upstash_client
    return service


@pytest.fixture
def composition_store(redis_service):
    return CompositionStore(redis_service, ttl_seconds=86400)


@pytest.fixture
def staging(tmp_path):
    return AttachmentStaging(tmp_path / "media")


@pytest.fixture
def ouvidoria_client():
    """Ouvidoria client mock answering a successful submission."""
    client = MagicMock()
    client.base_url = "https://ouvidoria.example.com"
    client.create_draft.return_value = CreateDraftResponse(id="m-123", status="draft")
    client.submit.return_value = SubmitResponse(protocol="OUV-2026-000123", status="received")
    client.ping.return_value = True
    return client


@pytest.fixture
def geocoding_service():
    return MagicMock()


@pytest.fixture(scope="session")
def auth_service():
    """Auth service with one generated key pair for the whole session."""
    return AuthService()


@pytest.fixture
def app(redis_service, composition_store, staging, ouvidoria_client, geocoding_service, auth_service):
    """Gateway application wired to in-memory and mocked services."""
    from app import create_app

    application = create_app(
        {
            'ENVIRONMENT': 'test',
            'BASE_URL': 'https://gateway.example.com',
            'MAX_ATTACHMENT_BYTES': 1024 * 1024,
            'MAX_ATTACHMENTS': 3,
            'SUBMISSION_RATE_LIMIT': 10,
            'TESTING': True
        },
        redis_service=redis_service,
        composition_store=composition_store,
        staging=staging,
        ouvidoria_client=ouvidoria_client,
        geocoding_service=geocoding_service,
        auth_service=auth_service
    )
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_token(auth_service):
    """Bearer token allowed to list manifestations."""
    return auth_service.issue_token("admin-1", ["manifestation:list"], email="admin@df.gov.br")["access_token"]


def make_image_bytes(fmt: str = "PNG", size=(8, 6), color=(200, 30, 30)) -> bytes:
    """Small generated image."""
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def sample_attachment():
    return StagedAttachment(
        id="a" * 32,
        filename="buraco.jpg",
        mime_type="image/jpeg",
        size_bytes=1024,
        type=AttachmentType.IMAGE,
        source=AttachmentSource.UPLOAD
    )


@pytest.fixture
def composing():
    """Composition being written, with text and metadata."""
    return Composition(
        id="c" * 32,
        content="Poste de iluminação apagado há duas semanas perto da escola.",
        subject_label="Iluminação pública",
        administrative_region="Ceilândia",
        location_description="Em frente à escola classe 10",
        tags=["buraco", "via"],
        geo=GeoPoint(lat=-15.8183, lng=-48.1076)
    )


@pytest.fixture
def reviewed(composing):
    """Anonymous composition ready to be submitted."""
    composition = composing.model_copy(deep=True)
    composition.step = "review"
    composition.identity_mode = IdentityMode.ANONYMOUS
    return composition
