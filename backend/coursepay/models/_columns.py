"""Column helpers shared by the settlement models."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

# Two decimal places, enough headroom for course prices and lifetime balances.
Money = Numeric(12, 2)

JSONPayload = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
