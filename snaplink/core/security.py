"""Owner tokens.

Snaplink does not manage accounts. Callers present an HS256 JWT, signed with
``SECRET_KEY``, whose ``sub`` claim is the opaque owner identifier; every
mapping operation is scoped to that owner.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from snaplink.core.config import get_settings

settings = get_settings()

DEFAULT_TOKEN_LIFETIME = timedelta(days=7)

# Width of mappings.owner_id; longer subjects are rejected as invalid tokens
OWNER_ID_MAX_LENGTH = 255


class TokenData(BaseModel):
    """Verified claims of an owner token."""

    owner_id: str = Field(alias="sub", min_length=1, max_length=OWNER_ID_MAX_LENGTH)
    exp: datetime | None = None


def create_access_token(owner_id: str, expires_delta: timedelta | None = None) -> str:
    """Sign a token for ``owner_id`` (development tooling and tests)."""
    expires_at = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_LIFETIME)
    return jwt.encode(
        {"sub": owner_id, "exp": expires_at},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenData | None:
    """Verify signature and expiry; None for any token that does not name an owner."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return TokenData.model_validate(claims)
    except (JWTError, PydanticValidationError):
        return None
