# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base models with common fields and configuration.
"""

import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict


def generate_id() -> str:
    """Generate a new random identifier as string."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class BaseEntity(BaseModel):
    """Base entity with identifier and timestamps."""
    
    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True
    )
    
    id: str = Field(default_factory=generate_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")
    schema_version: int = Field(default=1, description="Schema version for stored sessions")
    
    def update_timestamp(self) -> None:
        """Update the updated_at field."""
        self.updated_at = utcnow()


class BaseRequest(BaseModel):
    """Base model for request bodies."""
    
    model_config = ConfigDict(
        use_enum_values=True,
        str_strip_whitespace=True,
        extra="forbid"
    )
