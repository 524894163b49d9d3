"""Pydantic schemas for the owner settings API

Update schemas have only optional fields; omitted fields keep their stored
value.
"""

import re
from decimal import Decimal
from typing import Any, ClassVar, Dict, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.documents.models import DocumentKind

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
NUMBER_PREFIX = r"^[A-Za-z0-9]{1,10}$"


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(extra='forbid')

    # Fields that may be omitted but not cleared with an explicit null
    non_nullable: ClassVar[Tuple[str, ...]] = ()

    def to_changes(self) -> Dict[str, Any]:
        changes = self.model_dump(exclude_unset=True, mode="json")
        nulls = sorted(name for name in self.non_nullable if name in changes and changes[name] is None)
        if nulls:
            raise ValueError(f"Settings cannot be null: {nulls}")
        return changes


class CompanyUpdate(SettingsUpdate):
    """Schema for PUT /settings/company"""
    name: Optional[str] = None
    logo: Optional[str] = None
    cr_number: Optional[str] = None
    vat_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class BrandingUpdate(SettingsUpdate):
    """Schema for PUT /settings/branding"""
    non_nullable: ClassVar[Tuple[str, ...]] = ("primary_color", "secondary_color", "font_family", "logo_position")

    primary_color: Optional[str] = Field(None, pattern=HEX_COLOR)
    secondary_color: Optional[str] = Field(None, pattern=HEX_COLOR)
    font_family: Optional[str] = Field(None, min_length=1)
    logo_position: Optional[str] = Field(None, pattern="^(left|center|right)$")


class PreferencesUpdate(SettingsUpdate):
    """Schema for PUT /settings/preferences"""
    non_nullable: ClassVar[Tuple[str, ...]] = ("currency", "vat_rate", "numbering_prefixes")

    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO 4217 code")
    vat_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    numbering_prefixes: Optional[Dict[DocumentKind, str]] = Field(
        None, description="Document number prefix per kind, e.g. {\"invoice\": \"FAC\"}"
    )

    @field_validator("numbering_prefixes")
    @classmethod
    def validate_prefixes(cls, v: Optional[Dict[DocumentKind, str]]) -> Optional[Dict[DocumentKind, str]]:
        for kind, prefix in (v or {}).items():
            if not re.match(NUMBER_PREFIX, prefix):
                raise ValueError(f"Prefix for {kind.value} must be 1-10 letters or digits")
        return v


class CompanySchema(BaseModel):
    name: Optional[str] = None
    logo: Optional[str] = None
    cr_number: Optional[str] = None
    vat_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class BrandingSchema(BaseModel):
    primary_color: str
    secondary_color: str
    font_family: str
    logo_position: str


class PreferencesSchema(BaseModel):
    currency: str
    vat_rate: Decimal
    numbering_prefixes: Dict[str, str]


class OwnerProfileResponse(BaseModel):
    """Response schema for GET /settings and every settings update"""
    owner_id: UUID
    company: CompanySchema
    branding: BrandingSchema
    preferences: PreferencesSchema

    @classmethod
    def from_record(cls, profile) -> "OwnerProfileResponse":
        return cls.model_validate(profile.to_dict())
