"""Pydantic schemas for the Templates API

Section payloads are accepted as authored and validated by resolving the
template, so the schemas only check their outer shape.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..domain.documents.models import DocumentKind


class TemplateSectionSchema(BaseModel):
    type: str = Field(..., min_length=1, description="Section type, e.g. header, items_table, totals")
    position: Optional[int] = Field(None, ge=0)
    content: Any = None
    settings: Optional[Dict[str, Any]] = None


class TemplateCreate(BaseModel):
    """Schema for creating a template (POST /templates)"""
    name: str = Field(..., min_length=1, max_length=200)
    kind: DocumentKind
    description: Optional[str] = None
    is_public: bool = False
    sections: List[TemplateSectionSchema] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict, description="Page size, orientation, margins, colors, fonts")
    tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra='forbid')


class TemplateUpdate(BaseModel):
    """Schema for changing a template (PUT /templates/{id}); omitted fields are kept"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    kind: Optional[DocumentKind] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None
    sections: Optional[List[TemplateSectionSchema]] = None
    settings: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None

    model_config = ConfigDict(extra='forbid')

    def to_changes(self) -> Dict[str, Any]:
        # Explicit nulls only clear nullable fields
        changes = self.model_dump(exclude_unset=True, mode="json")
        for name in ("name", "kind", "is_public"):
            if name in changes and changes[name] is None:
                raise ValueError(f"{name} cannot be null")
        return changes


class TemplateResponse(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    kind: DocumentKind
    description: Optional[str] = None
    is_public: bool
    sections: List[TemplateSectionSchema]
    settings: Dict[str, Any]
    usage_count: int
    tags: List[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, template) -> "TemplateResponse":
        return cls.model_validate(template.to_dict())
