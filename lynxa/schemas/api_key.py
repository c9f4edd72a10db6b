"""Pydantic schemas for API Key management"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from lynxa.core.security import mask_token_suffix


class KeyIssueRequest(BaseModel):
    """
    Schema for issuing a new API key.

    Public issuance always uses the default plan. Plan and organization are
    assigned by operators, so unknown fields such as ``plan`` are rejected.
    """
    model_config = ConfigDict(extra="forbid")

    owner: str = Field(
        ...,
        min_length=3,
        max_length=255,
        description="Owner email address",
        examples=["developer@gmail.com"]
    )


class KeyIssueResponse(BaseModel):
    """Schema for key issuance response (includes the actual token once)"""
    token: str = Field(..., description="The API key (only shown once at issuance)")
    expires_at: datetime
    owner: str
    plan: str
    rate_limit: int = Field(..., description="Requests per window; -1 means unlimited")
    message: str = "Store this key securely. It cannot be retrieved again."


class ApiKeySummary(BaseModel):
    """Schema for a listed key (token masked)"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    masked_token: str
    owner: str
    plan: str
    rate_limit: int
    expires_at: datetime
    revoked: bool
    revoked_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_model(cls, api_key) -> "ApiKeySummary":
        return cls(
            id=api_key.id,
            masked_token=mask_token_suffix(api_key.token_suffix),
            owner=api_key.owner,
            plan=api_key.plan,
            rate_limit=api_key.rate_limit,
            expires_at=api_key.expires_at,
            revoked=api_key.revoked,
            revoked_at=api_key.revoked_at,
            created_at=api_key.created_at,
        )


class KeyListResponse(BaseModel):
    """Schema for listing an owner's keys"""
    owner: str
    keys: List[ApiKeySummary]
    total: int


class KeyRevokeResponse(BaseModel):
    """Schema for key revocation response"""
    revoked: bool = True
    revoked_at: Optional[datetime] = None
