"""SQLAlchemy models for the Lynxa backend"""

from lynxa.models.base import Base
from lynxa.models.api_key import ApiKeyModel, UNLIMITED
from lynxa.models.usage_event import UsageEventModel
from lynxa.models.rate_window import RateWindowModel

__all__ = [
    "Base",
    "ApiKeyModel",
    "UNLIMITED",
    "UsageEventModel",
    "RateWindowModel",
]
