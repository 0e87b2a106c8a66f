from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.deps.deps import SupabaseCreds, get_supabase_creds


def require_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format",
        )
    return token.strip()


def get_supabase_client(
    user_token: str = Depends(require_bearer_token),
    creds: SupabaseCreds = Depends(get_supabase_creds),
):
    """Supabase client acting as the end user, so row-level security applies to every query."""
    from supabase import Client, create_client

    try:
        client: Client = create_client(creds.url, creds.api_key)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Supabase init failed: {exc}",
        )
    client.postgrest.auth(user_token)
    return client


def get_current_user_id(
    client=Depends(get_supabase_client), user_token: str = Depends(require_bearer_token)
) -> str:
    """Resolve the user id (UUID) from the auth service using the caller's token."""
    try:
        resp = client.auth.get_user(user_token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to resolve user: {exc}",
        )
    user = getattr(resp, "user", None)
    user_id = getattr(user, "id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return str(user_id)
