# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for admin access tokens.

Citizens never authenticate; only the admin listing is protected. Tokens are
RS256 JWTs carrying the admin's permissions.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from models.entities import UserContext

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when a token cannot be issued."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


def generate_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair as (private PEM, public PEM)."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')

    return private_pem, public_pem


class AuthService:
    """
    JWT service with RS256 signing.

    Validates admin bearer tokens and issues them for operators through the
    token script.
    """

    def __init__(self, private_key: Optional[str] = None, public_key: Optional[str] = None):
        """
        Initialize the authentication service.

        Args:
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
        """
        self.algorithm = "RS256"
        self.access_token_expire_minutes = 60

        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")

        if not public_key:
            # One pair, so tokens issued in development also validate
            logger.warning("No JWT_PUBLIC_KEY found, generating development key pair")
            private_key, public_key = generate_key_pair()

        self.private_key = private_key
        self.public_key = public_key

    def can_issue_tokens(self) -> bool:
        return bool(self.private_key)

    def issue_token(
        self,
        subject: str,
        permissions: List[str],
        email: Optional[str] = None,
        name: Optional[str] = None,
        expires_minutes: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Issue an access token.

        Args:
            subject: Admin identifier
            permissions: Granted permissions
            email: Admin email
            name: Admin display name
            expires_minutes: Lifetime (defaults to one hour)

        Returns:
            Dictionary with access_token, token_type and expiry

        Raises:
            AuthenticationError: If no private key is configured
        """
        if not self.can_issue_tokens():
            raise AuthenticationError("No JWT private key configured")

        with tracer.start_as_current_span("auth.issue_token") as span:
            span.set_attributes({
                "auth.operation": "issue_token",
                "user.id": subject
            })

            lifetime = expires_minutes or self.access_token_expire_minutes
            now = datetime.now(timezone.utc)
            expires_at = now + timedelta(minutes=lifetime)

            payload = {
                "sub": subject,
                "email": email,
                "name": name,
                "permissions": list(permissions),
                "iat": now,
                "exp": expires_at,
                "type": "access"
            }

            try:
                token = jwt.encode(payload, self.private_key, algorithm=self.algorithm)
            except Exception as e:
                span.set_attribute("auth.token_issued", "error")
                logger.error(f"Token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate token: {str(e)}")

            logger.info(
                "Admin token issued",
                extra={"user_id": subject, "expires_at": expires_at.isoformat()}
            )

            return {
                "access_token": token,
                "token_type": "Bearer",
                "expires_in": lifetime * 60,
                "expires_at": expires_at.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload.get("sub") or ""
            })
            logger.debug("Token validated successfully", extra={"user_id": payload.get("sub")})

            return payload

    def build_user_context(
        self,
        payload: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> UserContext:
        """Build the request user context from a validated payload."""
        return UserContext(
            user_id=payload["sub"],
            email=payload.get("email"),
            name=payload.get("name"),
            permissions=payload.get("permissions") or [],
            token_payload=payload,
            ip_address=ip_address,
            user_agent=user_agent
        )
