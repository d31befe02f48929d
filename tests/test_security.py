import uuid
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from api.config.settings import AuthMode
from api.v1.core.security import Principal, get_principal, string_to_uuid


@pytest.mark.asyncio
async def test_get_principal_auth_mode_none():
    """Test get_principal with AUTH_MODE=none returns the dev user."""
    with patch("api.v1.core.security.settings.auth_mode", AuthMode.NONE):
        principal = await get_principal()

        assert isinstance(principal, Principal)
        assert principal.user_id == "DEV_USER"
        assert principal.roles == ["admin"]
        assert principal.email is None


@pytest.mark.asyncio
async def test_get_principal_auth_mode_dev_requires_header():
    """Test get_principal with AUTH_MODE=dev requires the user header."""
    with patch("api.v1.core.security.settings.auth_mode", AuthMode.DEV):
        # Pass None explicitly since we're bypassing FastAPI DI
        with pytest.raises(HTTPException) as exc_info:
            await get_principal(x_user_id=None)
        assert exc_info.value.status_code == 400
        assert "X-User-ID header is required" in str(exc_info.value.detail)

        principal = await get_principal(x_user_id="test-user")
        assert principal.user_id == "test-user"
        assert principal.roles == ["admin"]


@pytest.mark.asyncio
async def test_get_principal_auth_mode_oidc_not_implemented():
    with patch("api.v1.core.security.settings.auth_mode", AuthMode.OIDC):
        with pytest.raises(NotImplementedError, match="auth gateway"):
            await get_principal()


@pytest.mark.asyncio
async def test_get_principal_unknown_auth_mode():
    """Test get_principal with unknown auth mode raises ValueError."""
    with patch("api.v1.core.security.settings.auth_mode", "invalid_mode"):
        with pytest.raises(ValueError, match="Unknown auth mode: invalid_mode"):
            await get_principal()


def test_owner_uuid_is_stable():
    """Non-UUID user ids map to the same owner every time."""
    principal = Principal(user_id="user123")

    assert principal.owner_uuid == uuid.uuid5(uuid.NAMESPACE_DNS, "user123")
    assert principal.owner_uuid == Principal(user_id="user123").owner_uuid
    assert principal.is_admin() is False


def test_uuid_user_ids_pass_through():
    owner = uuid.uuid4()
    assert string_to_uuid(str(owner)) == owner
