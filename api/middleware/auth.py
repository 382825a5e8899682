# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

Only the admin endpoints are protected. This module validates bearer tokens,
builds the admin user context and checks permissions.
"""

from functools import wraps
from flask import request, jsonify, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from domain.admin import check_permission
from services.auth import TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation and user context building for
    protected endpoints.
    """

    def __init__(self, auth_service, hal_formatter):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            hal_formatter: Formatter for problem documents
        """
        self.auth_service = auth_service
        self.hal_formatter = hal_formatter

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '').strip()

        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def get_request_info(self) -> Dict[str, Any]:
        """
        Extract request metadata for user context.

        Returns:
            Dictionary with request information
        """
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', '')
        }

    def unauthorized(self, detail: str):
        return jsonify(self.hal_formatter.format_authentication_error(detail, request.path)), 401

    def forbidden(self, detail: str):
        return jsonify(self.hal_formatter.format_authorization_error(detail, request.path)), 403


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.validate_request") as span:
                span.set_attribute("auth.operation", "validate_request")

                token = auth_middleware.extract_token_from_request()
                if not token:
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token")
                    return auth_middleware.unauthorized("Missing authorization token")

                try:
                    token_payload = auth_middleware.auth_service.validate_token(token, "access")
                except TokenValidationError as e:
                    span.set_attribute("auth.result", "invalid_token")
                    logger.warning(f"Authentication failed: {str(e)}")
                    return auth_middleware.unauthorized(str(e))

                if not token_payload.get("sub"):
                    span.set_attribute("auth.result", "invalid_token")
                    return auth_middleware.unauthorized("Token has no subject")

                request_info = auth_middleware.get_request_info()
                user_context = auth_middleware.auth_service.build_user_context(
                    token_payload,
                    ip_address=request_info["ip_address"],
                    user_agent=request_info["user_agent"]
                )

                g.user_context = user_context

                span.set_attributes({
                    "auth.result": "success",
                    "user.id": user_context.user_id
                })

                logger.debug(
                    "Authentication successful",
                    extra={
                        "user_id": user_context.user_id,
                        "ip_address": user_context.ip_address
                    }
                )

                return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def require_permission(permission: str) -> Callable:
    """
    Decorator to require an admin permission, using the app's auth middleware.

    The route receives the user context as first positional argument.

    Args:
        permission: Required permission string

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        def check(user_context, *args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.check_permission") as span:
                span.set_attributes({
                    "auth.operation": "check_permission",
                    "auth.required_permission": permission,
                    "user.id": user_context.user_id
                })

                authorization = check_permission(user_context, permission)
                if not authorization.allowed:
                    span.set_attribute("auth.permission_result", "denied")
                    logger.warning(
                        f"Authorization failed: missing permission '{permission}'",
                        extra={
                            "user_id": user_context.user_id,
                            "required_permission": permission
                        }
                    )
                    return current_app.auth_middleware.forbidden(authorization.reason)

                span.set_attribute("auth.permission_result", "granted")
                return f(user_context, *args, **kwargs)

        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_middleware = current_app.auth_middleware
            return require_auth(auth_middleware)(check)(*args, **kwargs)

        return decorated_function
    return decorator
