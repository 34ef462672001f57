"""Identity resolution and request protection helpers."""

from .csrf import issue_csrf_cookies, validate_csrf
from .identity import (
    Identity,
    IdentityResolver,
    get_current_identity,
    get_identity_resolver,
    get_optional_identity,
)

__all__ = [
    "Identity",
    "IdentityResolver",
    "get_current_identity",
    "get_identity_resolver",
    "get_optional_identity",
    "issue_csrf_cookies",
    "validate_csrf",
]
