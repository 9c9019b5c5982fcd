"""
Shared helpers for pydantic schemas.
"""

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate an opaque unique identifier."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Version written into every persisted document
CURRENT_VERSION = "0.4.0"
