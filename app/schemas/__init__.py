"""Public schema exports."""

from .auth import TenantRequest

__all__ = ["TenantRequest"]
