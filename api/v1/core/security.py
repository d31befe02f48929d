from dataclasses import dataclass, field
from uuid import NAMESPACE_DNS, UUID, uuid5

from fastapi import Depends, Header, HTTPException, status

from api.config.settings import AuthMode, settings


def string_to_uuid(text: str) -> UUID:
    """Convert a string to a deterministic UUID using namespace DNS."""
    try:
        return UUID(text)
    except ValueError:
        return uuid5(NAMESPACE_DNS, text)


@dataclass
class Principal:
    """The plan owner making the current request."""

    user_id: str
    roles: list[str] = field(default_factory=list)
    email: str | None = None

    @property
    def owner_uuid(self) -> UUID:
        """Owner id as stored on plans."""
        return string_to_uuid(self.user_id)

    def is_admin(self) -> bool:
        return "admin" in self.roles


async def get_principal(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> Principal:
    """
    Dependency injection function to get the current principal.

    Behavior based on AUTH_MODE:
    - none: Returns the dev user with admin role
    - dev: Trusts the X-User-ID header
    - oidc: handled by the external auth gateway, not this service
    """
    if settings.auth_mode == AuthMode.NONE:
        return Principal(user_id=settings.dev_user_id, roles=["admin"])
    elif settings.auth_mode == AuthMode.DEV:
        if not x_user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-User-ID header is required in dev auth mode",
            )
        return Principal(user_id=x_user_id, roles=["admin"])
    elif settings.auth_mode == AuthMode.OIDC:
        raise NotImplementedError("OIDC tokens are verified by the auth gateway")
    else:
        raise ValueError(f"Unknown auth mode: {settings.auth_mode}")


# Convenience type alias for dependency injection
PrincipalDep = Depends(get_principal)
