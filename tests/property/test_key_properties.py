"""
Property-Based Tests for API keys and request accounting

Tests correctness properties for:
- Signed key round trips and tamper detection
- Fixed-window boundaries
- Admission counts under arbitrary limits
- Token redaction in logs
"""

import asyncio
from datetime import datetime, timedelta

import pytest
from hypothesis import given, strategies as st
from hypothesis import settings as hypothesis_settings

from lynxa.api.middleware import LoggingMiddleware
from lynxa.core.exceptions import InvalidCredential
from lynxa.core.logging_config import censor_sensitive_data
from lynxa.core.security import OpaqueKeyCodec, SignedKeyCodec
from lynxa.services.rate_limiter import RateLimiter, RateWindowBackend


SECRET = "property-test-secret-0123456789abcdef0123"


# Test data generators
@st.composite
def gmail_owners(draw):
    """Generate plausible Gmail addresses"""
    local = draw(st.text(
        alphabet="abcdefghijklmnopqrstuvwxyz0123456789._",
        min_size=1,
        max_size=30
    ))
    return f"{local}@gmail.com"


class CountingBackend(RateWindowBackend):
    """In-memory window counter"""

    def __init__(self):
        self.counts = {}

    async def increment(self, token_hash, endpoint, window_start, window_size, limit):
        key = (token_hash, endpoint, window_start)
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def current(self, token_hash, endpoint, window_start):
        return self.counts.get((token_hash, endpoint, window_start), 0)


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.mark.property
@given(owner=gmail_owners(), days=st.integers(min_value=0, max_value=29))
@hypothesis_settings(max_examples=50, deadline=None)
def test_signed_key_round_trip(owner, days):
    """
    For any owner, a signed key parses back to that owner and stays valid
    for the whole lifetime.
    """
    clock = FixedClock(datetime(2026, 1, 1))
    codec = SignedKeyCodec(secret_key=SECRET, clock=clock)

    issued = codec.issue(owner)
    clock.now += timedelta(days=days)
    claims = codec.parse(issued.token)

    assert claims.owner == owner
    assert claims.expires_at == issued.expires_at


@pytest.mark.property
@given(position=st.integers(min_value=0), replacement=st.sampled_from("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"))
@hypothesis_settings(max_examples=100, deadline=None)
def test_tampered_signed_key_rejected(position, replacement):
    """
    Changing any character of a signed key either leaves it identical or
    makes it fail with the public invalid-credential error.
    """
    codec = SignedKeyCodec(secret_key=SECRET)
    token = codec.issue("owner@gmail.com").token

    index = position % len(token)
    if token[index] in (".", replacement):
        return
    tampered = token[:index] + replacement + token[index + 1:]

    try:
        claims = codec.parse(tampered)
    except InvalidCredential:
        return

    # base64url padding bits in the last character can absorb the change
    assert claims.owner == "owner@gmail.com"


@pytest.mark.property
@given(owner=gmail_owners())
@hypothesis_settings(max_examples=50, deadline=None)
def test_opaque_keys_accepted_only_in_issued_shape(owner):
    codec = OpaqueKeyCodec(prefix="lynxa")
    token = codec.issue(owner).token

    codec.parse(token)
    with pytest.raises(InvalidCredential):
        codec.parse(token[:-1])
    with pytest.raises(InvalidCredential):
        codec.parse(token + "0")


@pytest.mark.property
@given(
    seconds=st.integers(min_value=0, max_value=4_000_000_000),
    fraction=st.sampled_from([0.0, 0.25, 0.5, 0.999]),
    window_size=st.sampled_from([1, 60, 3600, 86400])
)
def test_window_bounds_contain_now(seconds, fraction, window_size):
    """Every instant falls in exactly one aligned window"""
    now = seconds + fraction
    limiter = RateLimiter(CountingBackend(), window_size=window_size)

    start, end = limiter.window_bounds(now)

    assert start % window_size == 0
    assert start <= now < end
    assert end - start == window_size


@pytest.mark.property
@given(
    limit=st.integers(min_value=-1, max_value=50),
    requests=st.integers(min_value=0, max_value=80)
)
@hypothesis_settings(max_examples=60, deadline=None)
def test_admitted_count_never_exceeds_limit(limit, requests):
    """
    Within one window exactly min(requests, limit) requests are admitted;
    a negative limit admits everything.
    """
    limiter = RateLimiter(CountingBackend(), window_size=3600, clock=FixedClock(1_767_225_600.0))

    async def run():
        results = [
            await limiter.check_rate_limit("h" * 64, limit, "/api/v1/chat")
            for _ in range(requests)
        ]
        return sum(r.allowed for r in results)

    admitted = asyncio.run(run())

    if limit < 0:
        assert admitted == requests
    else:
        assert admitted == min(requests, limit)


@pytest.mark.property
@given(owner=gmail_owners())
@hypothesis_settings(max_examples=30, deadline=None)
def test_issued_tokens_redacted_from_logs(owner):
    """Neither key format survives log redaction"""
    signed = SignedKeyCodec(secret_key=SECRET).issue(owner).token
    opaque = OpaqueKeyCodec(prefix="lynxa").issue(owner).token

    text = f"DELETE /api/v1/keys/{signed} and /api/v1/keys/{opaque} Authorization: Bearer {signed}"
    redacted = LoggingMiddleware._redact_sensitive_data(text)

    assert signed not in redacted
    assert opaque not in redacted


@pytest.mark.property
@given(value=st.text(min_size=1, max_size=40))
def test_censor_sensitive_keys(value):
    event = {
        "event": "request_completed",
        "token": value,
        "headers": {"Authorization": value},
        "token_hash": "abc",
        "input_tokens": 3,
    }

    censored = censor_sensitive_data(None, "info", event)

    assert censored["token"] == "***REDACTED***"
    assert censored["headers"]["Authorization"] == "***REDACTED***"
    assert censored["token_hash"] == "abc"
    assert censored["input_tokens"] == 3
