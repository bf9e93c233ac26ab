"""OAuth refresh-token grant against Google's token endpoint."""

import logging
import time

import httpx
from pydantic import BaseModel, Field, ValidationError

from taskmirror.core.config import constants, settings
from taskmirror.core.errors import TokenRefreshError


logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    """Body of a successful grant as the token endpoint sends it."""

    access_token: str = Field(..., min_length=1)
    expires_in: int = 3600
    refresh_token: str | None = None


class TokenGrant(BaseModel):
    """Result of a successful refresh."""

    access_token: str = Field(..., description="New bearer token")
    expires_at: int = Field(..., description="Expiry (epoch seconds)")
    refresh_token: str | None = Field(default=None, description="Rotated refresh token, if the server issued one")


async def refresh_access_token(
    refresh_token: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TokenGrant:
    """Exchange a refresh token for a new access token.

    Raises:
        TokenRefreshError: If credentials are missing, the grant is rejected, the
            token endpoint cannot be reached or its reply carries no access token
    """
    if not refresh_token:
        msg = "refresh token is required"
        raise TokenRefreshError(msg)

    try:
        client_id = settings.require_credential("google_client_id", "Google OAuth client ID")
        client_secret = settings.require_credential("google_client_secret", "Google OAuth client secret")
    except ValueError as e:
        raise TokenRefreshError(str(e)) from e

    form = {
        "client_id": client_id,
        "client_secret": client_secret,
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    }

    try:
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS, transport=transport) as client:
            response = await client.post(settings.oauth_token_url, data=form)
    except httpx.HTTPError as e:
        logger.warning("token_refresh_network_error", extra={"error": str(e)})
        raise TokenRefreshError(f"Token endpoint unreachable: {e}") from e

    if not response.is_success:
        logger.error("token_refresh_failed", extra={"status": response.status_code, "body": response.text[:200]})
        msg = f"Failed to refresh token (status {response.status_code})"
        raise TokenRefreshError(msg)

    try:
        tokens = TokenResponse.model_validate_json(response.content)
    except ValidationError as e:
        logger.error("token_refresh_unreadable", extra={"errors": e.errors(include_url=False)})
        msg = "Token endpoint returned an unreadable response"
        raise TokenRefreshError(msg) from e

    return TokenGrant(
        access_token=tokens.access_token,
        expires_at=int(time.time()) + tokens.expires_in,
        refresh_token=tokens.refresh_token,
    )
