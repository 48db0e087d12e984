"""Identity tokens issued by the external identity provider.

The provider signs a JWT per session; we only verify it and read the member's
external key from it. Password handling lives with the provider.
"""

from jose import JWTError, jwt

from padelbook.core.config import settings


def decode_identity_token(token: str) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure."""
    options = {"verify_aud": settings.identity_jwt_audience is not None}
    return jwt.decode(
        token,
        settings.identity_jwt_secret,
        algorithms=[settings.identity_jwt_algorithm],
        audience=settings.identity_jwt_audience,
        options=options,
    )


def external_key_from_claims(claims: dict) -> str:
    """The stable key a Member is looked up by: `sub`, falling back to `email`."""
    key = claims.get("sub") or claims.get("email")
    if not key:
        raise JWTError("Token carries no subject")
    return str(key)


def create_identity_token(subject: str, extra: dict | None = None) -> str:
    """Mint a token the way the identity provider does. Used by dev tooling and tests."""
    payload = {"sub": subject}
    if settings.identity_jwt_audience:
        payload["aud"] = settings.identity_jwt_audience
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)
