"""FastAPI dependencies for injection into route handlers."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.auth import decode_identity_token, external_key_from_claims
from padelbook.core.database import get_db
from padelbook.core.errors import Forbidden, NotFound, Unauthenticated
from padelbook.models.member import Member

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_member(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Member:
    """Resolve the Member behind the identity provider's bearer token."""
    if credentials is None:
        raise Unauthenticated()

    try:
        claims = decode_identity_token(credentials.credentials)
        external_key = external_key_from_claims(claims)
    except JWTError:
        raise Unauthenticated("Invalid identity token.") from None

    result = await db.execute(select(Member).where(Member.external_key == external_key))
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFound("No member account is linked to this identity.")

    return member


async def require_admin(member: Member = Depends(get_current_member)) -> Member:
    """Require the current member to be an administrator."""
    if not member.is_admin:
        raise Forbidden("Administrator access required.")
    return member
