"""Resolve the identity provider's session tokens into caller identities."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from ...config import AppConfig, load_config

logger = logging.getLogger("auth")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as asserted by the identity provider."""

    user_id: str
    email: Optional[str] = None


class IdentityResolver:
    """Verifies provider-issued JWTs and extracts the caller identity."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
        session_cookie_name: str = "session",
    ) -> None:
        if not secret:
            raise ValueError("secret must be provided")
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience
        self.session_cookie_name = session_cookie_name

    @classmethod
    def from_config(cls, config: AppConfig) -> "IdentityResolver":
        return cls(
            config.auth_jwt_secret,
            algorithm=config.auth_jwt_algorithm,
            audience=config.auth_jwt_audience,
            session_cookie_name=config.session_cookie_name,
        )

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        """Return the identity carried by ``token`` or ``None`` when it is not valid."""

        if not token:
            return None
        options = {"verify_aud": self._audience is not None}
        try:
            claims: Mapping[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options=options,
            )
        except JWTError as exc:
            logger.debug("Rejected session token: %s", exc)
            return None

        subject = claims.get("sub")
        if not subject:
            return None
        email = claims.get("email")
        return Identity(user_id=str(subject), email=str(email) if email else None)

    def token_from_request(self, request: Request) -> Optional[str]:
        header = request.headers.get("authorization", "")
        scheme, _, credentials = header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return request.cookies.get(self.session_cookie_name)

    def resolve_request(self, request: Request) -> Optional[Identity]:
        return self.resolve(self.token_from_request(request))


@lru_cache(maxsize=1)
def get_identity_resolver() -> IdentityResolver:
    return IdentityResolver.from_config(load_config())


def get_optional_identity(
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[Identity]:
    return resolver.resolve_request(request)


def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return identity


__all__ = [
    "Identity",
    "IdentityResolver",
    "get_current_identity",
    "get_identity_resolver",
    "get_optional_identity",
]
