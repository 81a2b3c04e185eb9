# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Caller identity: bearer token verification and trusted gateway headers."""

import asyncio
import hmac
import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from beartype import beartype

from ..schemas.auth import CallerContext, TokenData
from .config import Settings, get_settings
from .errors import ServiceError, unauthenticated
from .result_types import Err, Ok, Result

logger = logging.getLogger(__name__)

GATEWAY_TOKEN_HEADER = "x-gateway-token"
GATEWAY_USER_ID_HEADER = "x-user-id"
GATEWAY_ROLES_HEADER = "x-user-roles"
GATEWAY_EMAIL_HEADER = "x-user-email"


def extract_roles(claims: Mapping[str, Any]) -> set[str]:
    """Collect role names from Keycloak ``realm_access`` and a flat ``roles`` claim."""
    roles: set[str] = set()
    realm_access = claims.get("realm_access")
    if isinstance(realm_access, Mapping):
        roles.update(str(r) for r in realm_access.get("roles") or [])
    flat = claims.get("roles")
    if isinstance(flat, str):
        roles.add(flat)
    elif isinstance(flat, list):
        roles.update(str(r) for r in flat)
    return roles


class IdentityVerifier:
    """Validate bearer tokens and turn their claims into a ``CallerContext``.

    HMAC tokens are checked against ``jwt_secret``. When ``jwt_jwks_url`` is
    configured, the signing key is looked up from the identity provider's
    JWKS endpoint instead.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        jwks_client: jwt.PyJWKClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        if jwks_client is None and self._settings.jwt_jwks_url:
            jwks_client = jwt.PyJWKClient(self._settings.jwt_jwks_url)
        self._jwks_client = jwks_client

    async def _signing_key(self, token: str) -> Any:
        if self._jwks_client is None:
            return self._settings.jwt_secret
        # PyJWKClient fetches over blocking HTTP on a cache miss.
        signing_key = await asyncio.to_thread(
            self._jwks_client.get_signing_key_from_jwt, token
        )
        return signing_key.key

    @beartype
    async def verify(self, token: str | None) -> Result[CallerContext, ServiceError]:
        """Validate ``token`` and return the caller it identifies."""
        if not token:
            return Err(unauthenticated("Missing bearer token"))

        settings = self._settings
        try:
            key = await self._signing_key(token)
            claims = jwt.decode(
                token,
                key,
                algorithms=[settings.jwt_algorithm],
                audience=settings.jwt_audience,
                issuer=settings.jwt_issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": settings.jwt_audience is not None,
                },
            )
        except jwt.ExpiredSignatureError:
            return Err(unauthenticated("Token has expired"))
        except jwt.PyJWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            return Err(unauthenticated("Invalid authentication token"))

        return Ok(
            CallerContext(
                subject_id=str(claims["sub"]),
                roles=frozenset(extract_roles(claims)),
                email=claims.get("email"),
            )
        )

    @beartype
    def create_access_token(
        self,
        subject: str,
        roles: list[str] | None = None,
        email: str | None = None,
        expires_delta: timedelta | None = None,
    ) -> TokenData:
        """Issue an HMAC token in the identity provider's claim layout."""
        now = datetime.now(timezone.utc)
        if expires_delta is None:
            expires_delta = timedelta(minutes=self._settings.jwt_expiration_minutes)

        payload: dict[str, Any] = {
            "sub": subject,
            "exp": now + expires_delta,
            "iat": now,
            "jti": uuid.uuid4().hex,
            "realm_access": {"roles": roles or []},
        }
        if email:
            payload["email"] = email
        if self._settings.jwt_issuer:
            payload["iss"] = self._settings.jwt_issuer
        if self._settings.jwt_audience:
            payload["aud"] = self._settings.jwt_audience

        token = jwt.encode(
            payload, self._settings.jwt_secret, algorithm=self._settings.jwt_algorithm
        )
        return TokenData(
            access_token=token, expires_in=int(expires_delta.total_seconds())
        )


@beartype
def caller_from_gateway_headers(
    headers: Mapping[str, str], settings: Settings | None = None
) -> Result[CallerContext, ServiceError] | None:
    """Resolve the caller from headers injected by the API gateway.

    Returns ``None`` when gateway trust is disabled or the request did not
    come through the gateway, so the caller falls back to the bearer token.
    """
    settings = settings or get_settings()
    if not settings.trust_gateway_headers or not settings.gateway_shared_secret:
        return None

    presented = headers.get(GATEWAY_TOKEN_HEADER)
    if presented is None:
        return None
    if not hmac.compare_digest(
        presented.encode("utf-8"), settings.gateway_shared_secret.encode("utf-8")
    ):
        logger.warning("Gateway token mismatch; ignoring X-User-* headers")
        return Err(unauthenticated("Invalid gateway credentials"))

    user_id = (headers.get(GATEWAY_USER_ID_HEADER) or "").strip()
    if not user_id:
        return Err(unauthenticated("Gateway request without X-User-Id"))

    roles = [r for r in (headers.get(GATEWAY_ROLES_HEADER) or "").split(",") if r.strip()]
    return Ok(
        CallerContext(
            subject_id=user_id,
            roles=frozenset(roles),
            email=headers.get(GATEWAY_EMAIL_HEADER) or None,
        )
    )


_verifier: IdentityVerifier | None = None


@beartype
def get_identity_verifier() -> IdentityVerifier:
    """Get global identity verifier."""
    global _verifier
    if _verifier is None:
        _verifier = IdentityVerifier()
    return _verifier


@beartype
def reset_identity_verifier() -> None:
    """Drop the cached verifier (for testing)."""
    global _verifier
    _verifier = None
