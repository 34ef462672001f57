"""API routes for reading and creating the caller's organization."""
from __future__ import annotations

from typing import Dict, Union

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ..auth import Identity, get_current_identity
from ..feature_gates import FeatureGateError, require_access
from ..organizations.models import Organization, OrganizationAlreadyExists, SubdomainTaken
from ..organizations.service import OrganizationService
from ..schemas.organizations import (
    OrganizationCreateRequest,
    OrganizationEnvelope,
    OrganizationResponse,
)
from ..services.billing import get_organization_service

router = APIRouter(prefix="/api", tags=["organizations"])


class SubdomainSuggestionRequest(BaseModel):
    organization_name: str = Field(alias="organizationName", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


async def get_active_organization(
    identity: Identity = Depends(get_current_identity),
    service: OrganizationService = Depends(get_organization_service),
) -> Organization:
    """Dependency for handlers that need an organization with billing access."""

    organization = await service.get_for_identity(identity)
    try:
        return require_access(organization)
    except FeatureGateError as exc:
        raise exc.to_http_exception() from exc


@router.get("/organization", response_model=OrganizationEnvelope)
async def read_organization(
    *,
    identity: Identity = Depends(get_current_identity),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationEnvelope:
    organization = await service.get_for_identity(identity)
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return OrganizationEnvelope(organization=OrganizationResponse.from_organization(organization))


@router.get("/organization/access")
async def read_access(organization: Organization = Depends(get_active_organization)) -> Dict[str, Union[bool, str]]:
    return {"organizationId": organization.id, "hasAccess": True}


@router.post("/organizations", response_model=OrganizationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreateRequest,
    *,
    identity: Identity = Depends(get_current_identity),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationEnvelope:
    try:
        organization = await service.create_for_identity(
            identity,
            name=payload.name,
            subdomain=payload.subdomain,
            owner_name=payload.owner_name,
        )
    except SubdomainTaken as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Subdomain is not available") from exc
    except OrganizationAlreadyExists as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already belongs to an organization") from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return OrganizationEnvelope(organization=OrganizationResponse.from_organization(organization))


@router.post("/organizations/generate-subdomain")
async def generate_subdomain(
    payload: SubdomainSuggestionRequest,
    *,
    identity: Identity = Depends(get_current_identity),
    service: OrganizationService = Depends(get_organization_service),
) -> Dict[str, Union[str, bool]]:
    try:
        subdomain, generated = await service.suggest_subdomain(payload.organization_name)
    except SubdomainTaken as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No available subdomain found") from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"subdomain": subdomain, "generated": generated}
