import sqlalchemy
from sqlalchemy import Column, String
from sqlalchemy.orm import declarative_base
from uuid_extension import uuid7

from app.platform.utils.clock import utcnow

Base = declarative_base()


def generate_id() -> str:
    return str(uuid7())


class AppendOnlyModel(Base):
    """Rows that are inserted once and never updated (progress events, factor results)."""
    __abstract__ = True
    id = Column(String, primary_key=True, default=generate_id, index=True)
    # All timestamps are naive UTC, like started_at/completed_at/tier_expires_at
    created_at = Column(sqlalchemy.DateTime, default=utcnow, nullable=False)


class BaseModel(AppendOnlyModel):
    __abstract__ = True
    updated_at = Column(sqlalchemy.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

# Note: Models import this Base. Do not import models here to avoid circular imports.
# app/platform/db/models.py collects them for metadata and alembic.
