"""Feature gating helpers for subscription-gated API handlers."""
from .enforcement import require_access, require_organization
from .exceptions import FeatureGateError

__all__ = ["FeatureGateError", "require_access", "require_organization"]
