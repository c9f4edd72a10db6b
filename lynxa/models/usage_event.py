"""API usage event model"""

from sqlalchemy import Column, String, Integer, BigInteger, Text, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import relationship

from lynxa.models.base import Base
from lynxa.utils.datetime import utcnow


class UsageEventModel(Base):
    """
    One row per request that reached a protected handler.

    Append-only: rows are never updated after insertion.
    Uses an auto-incrementing BIGINT key for high-volume data.
    """
    __tablename__ = "api_usage"

    # SQLite only auto-increments INTEGER primary keys
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    token_hash = Column(
        String(64),
        ForeignKey("api_keys.token_hash", ondelete="CASCADE"),
        nullable=False
    )
    endpoint = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False)
    status_code = Column(Integer, nullable=False)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    response_time_ms = Column(Integer, nullable=False)
    request_id = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    timestamp = Column(TIMESTAMP, default=utcnow, nullable=False)

    api_key = relationship("ApiKeyModel", back_populates="usage_events")

    __table_args__ = (
        Index('idx_api_usage_key_timestamp', 'token_hash', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f"<UsageEventModel(id={self.id}, endpoint={self.endpoint}, status={self.status_code})>"
