"""Owner settings API Router - company identity, branding and preferences.

Each PUT merges the sent fields into the stored part and returns the whole
profile. Preferences drive new documents: currency, VAT rate and the
document number prefix per kind.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from ..dependencies import get_owner_id, get_profile_service
from .schemas import BrandingUpdate, CompanyUpdate, OwnerProfileResponse, PreferencesUpdate
from .service import OwnerProfileService

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=OwnerProfileResponse, summary="Get owner settings")
def get_settings_profile(
    owner_id: UUID = Depends(get_owner_id),
    service: OwnerProfileService = Depends(get_profile_service)
) -> OwnerProfileResponse:
    """Stored settings, or the defaults when the owner has not saved any."""
    return OwnerProfileResponse.from_record(service.get_profile(owner_id))


@router.put("/company", response_model=OwnerProfileResponse, summary="Update company identity")
def update_company(
    payload: CompanyUpdate,
    owner_id: UUID = Depends(get_owner_id),
    service: OwnerProfileService = Depends(get_profile_service)
) -> OwnerProfileResponse:
    return OwnerProfileResponse.from_record(service.update_company(owner_id, payload.to_changes()))


@router.put("/branding", response_model=OwnerProfileResponse, summary="Update branding")
def update_branding(
    payload: BrandingUpdate,
    owner_id: UUID = Depends(get_owner_id),
    service: OwnerProfileService = Depends(get_profile_service)
) -> OwnerProfileResponse:
    return OwnerProfileResponse.from_record(service.update_branding(owner_id, payload.to_changes()))


@router.put(
    "/preferences",
    response_model=OwnerProfileResponse,
    summary="Update preferences",
    description="""
    Update currency, VAT rate or numbering prefixes. Prefix changes apply to
    documents created afterwards; existing numbers are never rewritten.
    """
)
def update_preferences(
    payload: PreferencesUpdate,
    owner_id: UUID = Depends(get_owner_id),
    service: OwnerProfileService = Depends(get_profile_service)
) -> OwnerProfileResponse:
    return OwnerProfileResponse.from_record(service.update_preferences(owner_id, payload.to_changes()))
