"""API Key model"""

from datetime import datetime
from typing import Optional
from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, Index
from sqlalchemy.orm import relationship

from lynxa.models.base import BaseModel
from lynxa.utils.datetime import utcnow


UNLIMITED = -1


class ApiKeyModel(BaseModel):
    """
    API Key model.

    Stores the SHA-256 hash of each issued token, never the token itself.
    Rows are never deleted; revocation is a one-way flag.
    """
    __tablename__ = "api_keys"

    token_hash = Column(String(64), unique=True, nullable=False)
    token_suffix = Column(String(8), nullable=False)
    strategy = Column(String(16), nullable=False)
    owner = Column(String(255), nullable=False)
    plan = Column(String(50), nullable=False, default="free")
    organization_id = Column(String(36), nullable=True)
    rate_limit = Column(Integer, nullable=False, default=1000)  # requests per window
    expires_at = Column(TIMESTAMP, nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(TIMESTAMP, nullable=True)

    usage_events = relationship("UsageEventModel", back_populates="api_key", lazy="noload")

    __table_args__ = (
        Index('idx_api_keys_owner_created', 'owner', 'created_at'),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the key is at or past its expiry"""
        return (now or utcnow()) >= self.expires_at

    @property
    def is_unlimited(self) -> bool:
        return self.rate_limit is not None and self.rate_limit < 0

    def __repr__(self) -> str:
        return f"<ApiKeyModel(id={self.id}, owner={self.owner}, revoked={self.revoked})>"
