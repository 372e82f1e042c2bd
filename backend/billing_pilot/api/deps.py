"""
Common dependencies for API endpoints.
"""

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from billing_pilot.services.supabase import get_user_from_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """
    Resolve the signed-in user from the Authorization header.

    The frontend signs in with Supabase Auth and sends its access token as
    a Bearer token; the token is checked with Supabase on every request.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = get_user_from_token(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="User not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user_id(user: dict = Depends(get_current_user)) -> str:
    return user["id"]
