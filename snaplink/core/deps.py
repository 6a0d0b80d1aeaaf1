"""Dependency injection utilities for FastAPI routes."""

from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException, status

from snaplink.core.security import TokenData, decode_access_token

# Cookie name for auth token
AUTH_COOKIE_NAME = "snaplink_token"


async def get_token(
    authorization: Annotated[str | None, Header()] = None,
    snaplink_token: Annotated[str | None, Cookie()] = None,
) -> str | None:
    """Extract the auth token from the Authorization header or the cookie.

    The bearer header wins when both are present.
    """
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
    return snaplink_token


async def get_token_data(
    token: Annotated[str | None, Depends(get_token)],
) -> TokenData:
    """Get verified token data.

    Raises HTTPException 401 if not authenticated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        raise credentials_exception

    token_data = decode_access_token(token)
    if token_data is None:
        raise credentials_exception

    return token_data


async def get_current_owner(
    token_data: Annotated[TokenData, Depends(get_token_data)],
) -> str:
    """Get the opaque owner identifier of the authenticated caller."""
    return token_data.owner_id


# Type aliases for dependency injection
CurrentOwner = Annotated[str, Depends(get_current_owner)]
CurrentTokenData = Annotated[TokenData, Depends(get_token_data)]
