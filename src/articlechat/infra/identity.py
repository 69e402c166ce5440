"""Optional user identity from a session JWT.

The identity provider never fails a request: a missing, expired, or
otherwise invalid token resolves to ``None`` and the chat continues
anonymously (no transcript is recorded).

The token is read from the ``Authorization: Bearer`` header first and
then from the configured session cookie.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from articlechat.configs.config import AppConfig, get_app_config
from articlechat.configs.system import AuthConfig
from articlechat.core.chat.models import Identity
from articlechat.infra.lifespan import get_app

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


class JwtIdentityProvider:
    """Verifies session tokens and maps the ``sub`` claim to a user id."""

    def __init__(self, config: AuthConfig) -> None:
        self._key = config.jwt_key.get_secret_value()
        self._algorithms = list(config.algorithms)
        self._audience = config.audience
        self._issuer = config.issuer

    @property
    def enabled(self) -> bool:
        return bool(self._key)

    async def resolve(self, token: str | None) -> Identity | None:
        """Return the token's identity, or ``None`` when absent or invalid."""
        if not token or not self.enabled:
            return None

        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=self._algorithms,
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_aud": self._audience is not None},
            )
        except JWTError as exc:
            logger.warning("Ignoring invalid session token: %s", exc)
            return None

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            logger.warning("Session token has no subject claim")
            return None
        return Identity(user_id=subject)


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_identity_provider(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create the identity provider and attach it to ``app.state``."""
    provider = JwtIdentityProvider(config.auth)
    app.state.identity_provider = provider
    if not provider.enabled:
        logger.info("No auth.jwt_key configured; all chats are anonymous.")
    yield


# ---------------------------------------------------------------------------
# Per-request dependencies
# ---------------------------------------------------------------------------


def get_identity_provider(request: Request) -> JwtIdentityProvider:
    """Return the provider stored on ``app.state`` by the lifespan."""
    return request.app.state.identity_provider


def get_session_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> str | None:
    """Bearer token if present, else the session cookie, else ``None``."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(config.auth.session_cookie) or None
