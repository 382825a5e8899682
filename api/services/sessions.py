# SPDX-License-Identifier: Apache-2.0

"""
Storage of compositions in progress on top of the Redis service.
"""

import logging

from pydantic import ValidationError
from opentelemetry import trace

from models.entities import Composition

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a composition is unknown or its session expired."""

    def __init__(self, composition_id: str):
        super().__init__(f"Manifestation {composition_id} not found or expired")
        self.composition_id = composition_id


class SessionStoreError(Exception):
    """Raised when a composition cannot be stored."""


# Upper bound for one submission: draft, uploads and submit with retries
SUBMISSION_LOCK_SECONDS = 120


class CompositionStore:
    """Loads and saves compositions as JSON documents with a TTL."""

    def __init__(self, redis_service, ttl_seconds: int = 86400):
        self.redis_service = redis_service
        self.ttl_seconds = ttl_seconds

    def is_available(self) -> bool:
        return self.redis_service.is_available()

    def save(self, composition: Composition) -> Composition:
        """
        Store a composition and refresh its session lifetime.

        Raises:
            SessionStoreError: If the document was not stored
        """
        document = composition.model_dump(mode="json")
        if not self.redis_service.save_composition(composition.id, document, self.ttl_seconds):
            raise SessionStoreError("Manifestation session could not be stored")
        return composition

    def load(self, composition_id: str) -> Composition:
        """
        Load a composition by identifier.

        Raises:
            SessionNotFoundError: If unknown, expired or unreadable
        """
        with tracer.start_as_current_span("sessions.load") as span:
            span.set_attribute("composition.id", composition_id)

            document = self.redis_service.load_composition(composition_id)
            if not document:
                raise SessionNotFoundError(composition_id)

            try:
                composition = Composition.model_validate(document)
            except ValidationError as e:
                logger.error(
                    "Stored composition is unreadable",
                    extra={"composition_id": composition_id, "error_count": e.error_count()}
                )
                raise SessionNotFoundError(composition_id)

            span.set_attribute("composition.step", composition.step)
            return composition

    def claim_submission(self, composition_id: str) -> bool:
        """
        Mark a composition as being submitted.

        Returns:
            True if claimed, False if another request already holds the claim

        Raises:
            SessionStoreError: If the claim could not be recorded
        """
        key = self.redis_service.submission_lock_key(composition_id)
        claimed = self.redis_service.set_if_absent(key, "1", SUBMISSION_LOCK_SECONDS)
        if claimed is None:
            raise SessionStoreError("Manifestation session could not be locked for submission")
        if not claimed:
            logger.warning("Concurrent submission rejected", extra={"composition_id": composition_id})
        return claimed

    def release_submission(self, composition_id: str) -> None:
        self.redis_service.delete(self.redis_service.submission_lock_key(composition_id))

    def delete(self, composition_id: str) -> bool:
        return self.redis_service.delete_composition(composition_id)
