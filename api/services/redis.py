# SPDX-License-Identifier: Apache-2.0

"""
Redis service for wizard sessions and rate limit counters.

This module provides Redis operations using Upstash HTTP client for serverless
compatibility. Compositions in progress are stored as JSON documents with a
TTL, so an abandoned complaint simply expires.
"""

import os
import json
from typing import Optional, List, Dict, Any, Union
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

COMPOSITION_KEY_PREFIX = "composition"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """
    Redis service with Upstash HTTP client for serverless compatibility.

    Provides composition session storage and general key/value operations.
    Failures are logged and reported as falsy results rather than raised.
    """

    def __init__(self, redis_url: Optional[str] = None, redis_token: Optional[str] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Upstash Redis HTTP URL
            redis_token: Upstash Redis authentication token
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.redis_token = redis_token or os.getenv("REDIS_TOKEN")

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, wizard sessions will not be stored")
            self.client = None
            return

        try:
            if self.redis_token:
                self.client = Redis(url=self.redis_url, token=self.redis_token)
            else:
                self.client = Redis.from_env()

            self._test_connection()

            logger.info("Redis service initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        if not self.client:
            return

        try:
            result = self.client.ping()
            if result != "PONG":
                raise RedisConnectionError("Redis ping failed")
        except Exception as e:
            logger.error(f"Redis connection test failed: {str(e)}")
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def _handle_redis_error(self, operation: str, error: Exception) -> None:
        """Handle Redis operation errors with logging."""
        logger.error(f"Redis {operation} failed: {str(error)}")

    def set_with_ttl(self, key: str, value: Union[str, Dict, List], ttl_seconds: int) -> bool:
        """
        Set a key-value pair with TTL.

        Args:
            key: Redis key
            value: Value to store (will be JSON serialized if not string)
            ttl_seconds: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.set_with_ttl") as span:
            span.set_attributes({
                "redis.operation": "set_with_ttl",
                "redis.key": key,
                "redis.ttl": ttl_seconds
            })

            try:
                if isinstance(value, (dict, list)):
                    value = json.dumps(value)

                result = self.client.setex(key, ttl_seconds, value)

                span.set_attribute("redis.result", "success")
                logger.debug(f"Redis SET successful: {key} (TTL: {ttl_seconds}s)")

                # upstash_redis returns True, older servers answer "OK"
                return result is True or result == "OK"

            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("SET", e)
                return False

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> Optional[bool]:
        """
        Set a key only when it does not exist yet (SET NX EX).

        Args:
            key: Redis key
            value: Value to store
            ttl_seconds: Time to live in seconds

        Returns:
            True if the key was set, False if it already existed, None on error
        """
        if not self.is_available():
            return None

        with tracer.start_as_current_span("redis.set_if_absent") as span:
            span.set_attributes({
                "redis.operation": "set_if_absent",
                "redis.key": key,
                "redis.ttl": ttl_seconds
            })

            try:
                result = self.client.set(key, value, ex=ttl_seconds, nx=True)
            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("SET NX", e)
                return None

            acquired = result is True or result == "OK"
            span.set_attribute("redis.result", "set" if acquired else "exists")
            return acquired

    def get(self, key: str) -> Optional[str]:
        """
        Get value by key.

        Args:
            key: Redis key

        Returns:
            Value as string or None if not found
        """
        if not self.is_available():
            return None

        with tracer.start_as_current_span("redis.get") as span:
            span.set_attributes({
                "redis.operation": "get",
                "redis.key": key
            })

            try:
                result = self.client.get(key)

                span.set_attribute("redis.result", "hit" if result else "miss")
                logger.debug(f"Redis GET: {key} -> {'hit' if result else 'miss'}")

                return result

            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("GET", e)
                return None

    def get_json(self, key: str) -> Optional[Union[Dict, List]]:
        """
        Get and deserialize JSON value by key.

        Args:
            key: Redis key

        Returns:
            Deserialized JSON value or None if not found
        """
        value = self.get(key)
        if value is None:
            return None

        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to deserialize JSON from Redis key {key}: {str(e)}")
            return None

    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Args:
            key: Redis key to delete

        Returns:
            True if key was deleted, False otherwise
        """
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.delete") as span:
            span.set_attributes({
                "redis.operation": "delete",
                "redis.key": key
            })

            try:
                result = self.client.delete(key)

                span.set_attribute("redis.result", "success")
                logger.debug(f"Redis DELETE: {key} -> {result}")

                return result > 0

            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("DELETE", e)
                return False

    # Composition Session Methods

    def composition_key(self, composition_id: str) -> str:
        return f"{COMPOSITION_KEY_PREFIX}:{composition_id}"

    def submission_lock_key(self, composition_id: str) -> str:
        return f"{COMPOSITION_KEY_PREFIX}:{composition_id}:submitting"

    def save_composition(self, composition_id: str, document: Dict[str, Any], ttl_seconds: int) -> bool:
        """
        Store a composition document, refreshing its TTL.

        Args:
            composition_id: Composition identifier
            document: JSON-serializable composition
            ttl_seconds: Session lifetime

        Returns:
            True if stored, False otherwise
        """
        with tracer.start_as_current_span("redis.save_composition") as span:
            span.set_attributes({
                "redis.operation": "save_composition",
                "composition.id": composition_id,
                "redis.ttl": ttl_seconds
            })

            result = self.set_with_ttl(self.composition_key(composition_id), document, ttl_seconds)
            span.set_attribute("redis.save_result", "success" if result else "failed")

            if not result:
                logger.error(f"Failed to store composition: {composition_id}")

            return result

    def load_composition(self, composition_id: str) -> Optional[Dict[str, Any]]:
        """
        Load a composition document.

        Args:
            composition_id: Composition identifier

        Returns:
            Composition document or None if unknown or expired
        """
        with tracer.start_as_current_span("redis.load_composition") as span:
            span.set_attributes({
                "redis.operation": "load_composition",
                "composition.id": composition_id
            })

            document = self.get_json(self.composition_key(composition_id))
            span.set_attribute("redis.result", "hit" if document else "miss")
            return document

    def delete_composition(self, composition_id: str) -> bool:
        """Remove a composition session."""
        result = self.delete(self.composition_key(composition_id))
        logger.debug(f"Composition session removed: {composition_id} -> {result}")
        return result

    # Health Check Methods

    def ping(self) -> bool:
        """
        Ping Redis server.

        Returns:
            True if ping successful, False otherwise
        """
        if not self.is_available():
            return False

        try:
            result = self.client.ping()
            return result == "PONG"
        except Exception as e:
            logger.error(f"Redis ping failed: {str(e)}")
            return False

