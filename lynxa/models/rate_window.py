"""Fixed-window rate limit counter model"""

from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, UniqueConstraint

from lynxa.models.base import BaseModel


class RateWindowModel(BaseModel):
    """
    Request counter for one key, endpoint and wall-clock aligned window.

    A new row starts at each window boundary. Rows for past windows are
    never written again.
    """
    __tablename__ = "rate_limits"

    token_hash = Column(String(64), nullable=False)
    endpoint = Column(String(255), nullable=False)
    window_start = Column(TIMESTAMP, nullable=False)
    window_size = Column(Integer, nullable=False, default=3600)  # seconds
    requests_count = Column(Integer, nullable=False, default=0)
    limit_exceeded = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint('token_hash', 'endpoint', 'window_start', name='uq_rate_limits_window'),
    )

    def __repr__(self) -> str:
        return (
            f"<RateWindowModel(endpoint={self.endpoint}, window_start={self.window_start}, "
            f"requests_count={self.requests_count})>"
        )
