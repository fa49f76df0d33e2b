"""Authentication dependencies for organization scoping."""

from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    organization_id: str
    livemode: bool = True


def ensure_organization_scope(auth: AuthContext, organization_id: str, livemode: bool) -> None:
    """Reject access to records owned by another organization or mode."""
    if organization_id != auth.organization_id or bool(livemode) != auth.livemode:
        # Foreign records are reported as missing.
        raise HTTPException(status_code=404, detail="Not found.")


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve authenticated organization from Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        payload = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    return AuthContext(
        organization_id=str(payload.get("sub", "")),
        livemode=bool(payload.get("livemode", True)),
    )
