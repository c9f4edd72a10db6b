"""API key management endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from lynxa.api.dependencies import get_key_service, require_api_key
from lynxa.core.exceptions import KeyAccessDenied
from lynxa.schemas.api_key import (
    KeyIssueRequest,
    KeyIssueResponse,
    ApiKeySummary,
    KeyListResponse,
    KeyRevokeResponse
)
from lynxa.services.key_service import KeyService
from lynxa.services.key_validator import Principal


router = APIRouter(prefix="/keys", tags=["API Keys"])


@router.post("", response_model=KeyIssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_key(
    payload: KeyIssueRequest,
    service: KeyService = Depends(get_key_service)
):
    """
    Issue a new API key.

    The owner must be an address in one of the allowed domains; other
    owners are rejected before anything is stored. Each call mints a new
    key, so an owner may hold several valid keys at once. Keys issued here
    always get the default plan.

    Args:
        payload: Owner address
        service: Key service

    Returns:
        The token (shown only once), its expiry and the plan's rate limit

    Raises:
        OwnerNotAllowed 400: Owner outside the allowed domains
        DuplicateToken 409: Token collision (practically unreachable)
        StoreUnavailable 503: Key store failure
    """
    issued, api_key = await service.issue(owner=payload.owner)

    return KeyIssueResponse(
        token=issued.token,
        expires_at=api_key.expires_at,
        owner=api_key.owner,
        plan=api_key.plan,
        rate_limit=api_key.rate_limit
    )


@router.delete("/{token}", response_model=KeyRevokeResponse)
async def revoke_key(
    token: str,
    service: KeyService = Depends(get_key_service)
):
    """
    Revoke an API key.

    Idempotent: revoking an already revoked key succeeds and leaves the
    original revocation time unchanged.

    Raises:
        KeyNotFound 404: No key matches the token
    """
    api_key = await service.revoke(token)
    return KeyRevokeResponse(revoked=True, revoked_at=api_key.revoked_at)


@router.get("", response_model=KeyListResponse)
async def list_keys(
    owner: Optional[str] = Query(None, min_length=3, description="Owner email address; defaults to the key's owner"),
    principal: Principal = Depends(require_api_key),
    service: KeyService = Depends(get_key_service)
):
    """
    List the caller's keys, newest first.

    Requires one of the owner's own keys. Tokens are masked to their last
    four characters.

    Raises:
        KeyAccessDenied 403: ``owner`` names someone other than the key's owner
    """
    if owner is not None and owner.strip().lower() != principal.owner:
        raise KeyAccessDenied(context="keys.list")

    api_keys = await service.list_keys(principal.owner)
    return KeyListResponse(
        owner=principal.owner,
        keys=[ApiKeySummary.from_model(k) for k in api_keys],
        total=len(api_keys)
    )
