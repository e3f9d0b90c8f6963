"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field


class TenantRequest(BaseModel):
    """Body of the refresh and revoke endpoints."""

    tenant_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("tenantId", "realmId"),
        description="QuickBooks company (realm) identifier.",
    )


__all__ = ["TenantRequest"]
