# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Rate limiting middleware for API endpoints.
Provides fixed window rate limiting with a Redis backend, used to cap how
many manifestations a client submits per hour.
"""

from functools import wraps
from flask import request, current_app
from typing import Dict, Any, Optional, Callable
import time
import hashlib
import logging

from middleware.error_handler import RateLimitException
from utils.request import RequestParser

logger = logging.getLogger(__name__)


class RateLimiter:
    """Redis-based fixed window rate limiter."""

    def __init__(self, redis_service):
        self.redis_service = redis_service

    def get_client_identifier(self) -> str:
        """
        Get unique identifier for rate limiting.

        Citizens are anonymous, so clients are told apart by IP address and
        user agent.

        Returns:
            Unique client identifier
        """
        ip_address = RequestParser.get_client_ip()
        user_agent = request.headers.get('User-Agent', '')

        identifier_string = f"{ip_address}:{user_agent}"
        identifier_hash = hashlib.sha256(identifier_string.encode()).hexdigest()[:32]
        return f"ip:{identifier_hash}"

    def get_rate_limit_key(
        self,
        identifier: str,
        endpoint: str,
        window_seconds: int,
        now: Optional[float] = None
    ) -> str:
        """
        Generate Redis key for rate limiting.

        Args:
            identifier: Client identifier
            endpoint: Endpoint identifier
            window_seconds: Time window in seconds
            now: Reference time

        Returns:
            Redis key for rate limiting
        """
        window_start = int(now if now is not None else time.time()) // window_seconds
        return f"rate_limit:{identifier}:{endpoint}:{window_start}"

    def check_rate_limit(
        self,
        identifier: str,
        endpoint: str,
        limit: int,
        window_seconds: int = 3600
    ) -> Dict[str, Any]:
        """
        Check if request is within rate limit and count it.

        Args:
            identifier: Client identifier
            endpoint: Endpoint identifier
            limit: Maximum requests allowed
            window_seconds: Time window in seconds

        Returns:
            Dictionary with rate limit status
        """
        now = int(time.time())
        key = self.get_rate_limit_key(identifier, endpoint, window_seconds, now)
        reset_time = (now // window_seconds + 1) * window_seconds

        if not self.redis_service.is_available():
            # Fail open without a counter store
            return {
                'allowed': True,
                'limit': limit,
                'remaining': limit,
                'reset_time': reset_time,
                'retry_after': 0
            }

        current_count = self.redis_service.get(key)
        try:
            current_count = int(current_count) if current_count else 0
        except (TypeError, ValueError):
            current_count = 0

        if current_count >= limit:
            return {
                'allowed': False,
                'limit': limit,
                'remaining': 0,
                'reset_time': reset_time,
                'retry_after': max(reset_time - now, 1)
            }

        new_count = current_count + 1
        self.redis_service.set_with_ttl(key, str(new_count), window_seconds)

        return {
            'allowed': True,
            'limit': limit,
            'remaining': limit - new_count,
            'reset_time': reset_time,
            'retry_after': 0
        }

    def add_rate_limit_headers(self, response, rate_limit_info: Dict[str, Any]):
        """
        Add rate limit headers to response.

        Args:
            response: Flask response object
            rate_limit_info: Rate limit information
        """
        response.headers['X-RateLimit-Limit'] = str(rate_limit_info['limit'])
        response.headers['X-RateLimit-Remaining'] = str(rate_limit_info['remaining'])
        response.headers['X-RateLimit-Reset'] = str(rate_limit_info['reset_time'])

        if rate_limit_info['retry_after'] > 0:
            response.headers['Retry-After'] = str(rate_limit_info['retry_after'])

        return response


def rate_limit(
    limit: Optional[int] = None,
    window_seconds: int = 3600,
    endpoint: Optional[str] = None,
    limit_config_key: Optional[str] = None
):
    """
    Decorator for rate limiting endpoints.

    Args:
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
        endpoint: Custom endpoint identifier
        limit_config_key: App config key holding the limit (overrides ``limit``)

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            redis_service = getattr(current_app, 'redis_service', None)
            if redis_service is None:
                return f(*args, **kwargs)

            effective_limit = limit
            if limit_config_key:
                effective_limit = int(current_app.config.get(limit_config_key, limit or 0))
            if not effective_limit or effective_limit <= 0:
                return f(*args, **kwargs)

            rate_limiter = RateLimiter(redis_service)
            identifier = rate_limiter.get_client_identifier()
            endpoint_name = endpoint or request.endpoint or f.__name__

            rate_limit_info = rate_limiter.check_rate_limit(
                identifier,
                endpoint_name,
                effective_limit,
                window_seconds
            )

            logger.debug(
                "Rate limit check",
                extra={
                    'identifier': identifier,
                    'endpoint': endpoint_name,
                    'limit': effective_limit,
                    'remaining': rate_limit_info['remaining'],
                    'allowed': rate_limit_info['allowed']
                }
            )

            if not rate_limit_info['allowed']:
                logger.warning(
                    "Rate limit exceeded",
                    extra={
                        'identifier': identifier,
                        'endpoint': endpoint_name,
                        'limit': effective_limit,
                        'retry_after': rate_limit_info['retry_after']
                    }
                )

                raise RateLimitException(
                    f"Rate limit of {effective_limit} requests per {window_seconds} seconds exceeded",
                    retry_after=rate_limit_info['retry_after']
                )

            response = current_app.make_response(f(*args, **kwargs))
            rate_limiter.add_rate_limit_headers(response, rate_limit_info)
            return response

        return decorated_function
    return decorator


def rate_limit_submission(f: Callable) -> Callable:
    """Submission limit per client per hour, from SUBMISSION_RATE_LIMIT."""
    return rate_limit(10, 3600, endpoint="submission", limit_config_key="SUBMISSION_RATE_LIMIT")(f)
