"""API key token codec: issuing and parsing opaque or signed keys"""

import hashlib
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from jose import JWTError, jwt

from lynxa.core.config import settings
from lynxa.core.exceptions import MalformedToken, SignatureInvalid, TokenExpired
from lynxa.utils.datetime import from_timestamp, to_timestamp, utcnow


# Compact JWS: three base64url segments
_JWS_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")

OPAQUE_TOKEN_BYTES = 32


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted token. The plaintext is only available here."""
    token: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """
    Claims recovered from a token without consulting the store.

    Opaque tokens carry no claims, so every field is None for them.
    """
    owner: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key using SHA-256.

    Args:
        api_key: Plain API key to hash

    Returns:
        Hex digest used as the key's storage identifier
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


def mask_token_suffix(suffix: str) -> str:
    """Render a stored token suffix the way key listings show it"""
    return f"****{suffix}"


class KeyCodec:
    """
    Base class for API key token strategies.

    Args:
        lifetime: How long issued keys remain valid
        clock: Returns the current naive UTC time (injectable for tests)
    """

    name = "base"

    def __init__(
        self,
        lifetime: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.lifetime = lifetime or timedelta(days=settings.API_KEY_LIFETIME_DAYS)
        self.clock = clock

    def issue(self, owner: str) -> IssuedToken:
        raise NotImplementedError

    def parse(self, token: str, verify_expiry: bool = True) -> TokenClaims:
        raise NotImplementedError


class OpaqueKeyCodec(KeyCodec):
    """
    Random high-entropy keys: ``<prefix>_<64 hex chars>``.

    Parsing only checks shape. Ownership and expiry live in the key store,
    so a lost store entry makes the key unrecoverable.
    """

    name = "opaque"

    def __init__(self, prefix: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.prefix = prefix or settings.API_KEY_PREFIX
        self._pattern = re.compile(
            rf"^{re.escape(self.prefix)}_[0-9a-f]{{{OPAQUE_TOKEN_BYTES * 2}}}$"
        )

    def issue(self, owner: str) -> IssuedToken:
        issued_at = self.clock()
        token = f"{self.prefix}_{secrets.token_hex(OPAQUE_TOKEN_BYTES)}"
        return IssuedToken(
            token=token,
            issued_at=issued_at,
            expires_at=issued_at + self.lifetime
        )

    def parse(self, token: str, verify_expiry: bool = True) -> TokenClaims:
        if not token or not self._pattern.match(token):
            raise MalformedToken("token does not match opaque key format")
        return TokenClaims()


class SignedKeyCodec(KeyCodec):
    """
    JWT keys carrying ``sub`` (owner), ``iat`` and ``exp`` claims.

    Signature and expiry verify without a store round trip. Revocation still
    needs the store since a stateless token cannot express it.
    """

    name = "signed"

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM

    def issue(self, owner: str) -> IssuedToken:
        # JWT timestamps have second precision
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + self.lifetime

        to_encode = {
            "sub": owner,
            "iat": int(to_timestamp(issued_at)),
            "exp": int(to_timestamp(expires_at)),
            "jti": str(uuid.uuid4()),  # two keys for one owner never collide
            "typ": "api_key"
        }
        token = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

        return IssuedToken(token=token, issued_at=issued_at, expires_at=expires_at)

    def parse(self, token: str, verify_expiry: bool = True) -> TokenClaims:
        if not token or not _JWS_PATTERN.match(token):
            raise MalformedToken("token is not a compact JWS")

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                # Expiry is checked below against the injectable clock
                options={"verify_exp": False}
            )
        except JWTError as e:
            raise SignatureInvalid(str(e))

        owner = payload.get("sub")
        exp = payload.get("exp")
        iat = payload.get("iat")
        if payload.get("typ") != "api_key" or not isinstance(owner, str) \
                or not isinstance(exp, (int, float)):
            raise MalformedToken("token is missing api key claims")

        claims = TokenClaims(
            owner=owner,
            issued_at=from_timestamp(iat) if isinstance(iat, (int, float)) else None,
            expires_at=from_timestamp(exp)
        )

        if verify_expiry and self.clock() >= claims.expires_at:
            raise TokenExpired()

        return claims


_CODECS = {
    OpaqueKeyCodec.name: OpaqueKeyCodec,
    SignedKeyCodec.name: SignedKeyCodec,
}


def get_key_codec(strategy: Optional[str] = None, **kwargs) -> KeyCodec:
    """
    Build the codec for a strategy name ("signed" or "opaque").

    Defaults to ``settings.API_KEY_STRATEGY``.
    """
    strategy = (strategy or settings.API_KEY_STRATEGY).lower()
    try:
        codec_class = _CODECS[strategy]
    except KeyError:
        raise ValueError(f"Unknown API key strategy: {strategy}")
    return codec_class(**kwargs)
