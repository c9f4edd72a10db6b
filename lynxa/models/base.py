"""Base model with common fields"""

from sqlalchemy import Column, String, TIMESTAMP
from sqlalchemy.orm import declarative_base
import uuid

from lynxa.utils.datetime import utcnow

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields for all tables.

    Provides:
    - id: UUID primary key
    - created_at: Timestamp of creation
    - updated_at: Timestamp of last update
    """
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(
        TIMESTAMP,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )
