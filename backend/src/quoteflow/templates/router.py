"""Templates API Router - template CRUD.

Any caller can read its own and public templates; only the owner can change
or delete a template.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..dependencies import get_owner_id, get_template_service
from ..domain.documents.models import DocumentKind
from .schemas import TemplateCreate, TemplateResponse, TemplateUpdate
from .service import TemplateService

router = APIRouter(prefix="/templates", tags=["templates"])


@router.post(
    "",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create template",
    description="""
    Create a template owned by the caller. Sections are validated by
    resolving the template; an unknown section type or malformed section
    payload returns 422 invalid_template.
    """
)
def create_template(
    payload: TemplateCreate,
    owner_id: UUID = Depends(get_owner_id),
    service: TemplateService = Depends(get_template_service)
) -> TemplateResponse:
    template = service.create(owner_id, payload.model_dump(mode="json"))
    return TemplateResponse.from_record(template)


@router.get(
    "",
    response_model=List[TemplateResponse],
    summary="List own and public templates",
)
def list_templates(
    kind: Optional[DocumentKind] = Query(None, description="Only templates for this document kind"),
    owner_id: UUID = Depends(get_owner_id),
    service: TemplateService = Depends(get_template_service)
) -> List[TemplateResponse]:
    return [TemplateResponse.from_record(t) for t in service.list_templates(owner_id, kind)]


@router.get(
    "/{template_id}",
    response_model=TemplateResponse,
    summary="Get template",
)
def get_template(
    template_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: TemplateService = Depends(get_template_service)
) -> TemplateResponse:
    return TemplateResponse.from_record(service.get(template_id, owner_id))


@router.put(
    "/{template_id}",
    response_model=TemplateResponse,
    summary="Update template",
)
def update_template(
    template_id: UUID,
    payload: TemplateUpdate,
    owner_id: UUID = Depends(get_owner_id),
    service: TemplateService = Depends(get_template_service)
) -> TemplateResponse:
    template = service.update(template_id, owner_id, payload.to_changes())
    return TemplateResponse.from_record(template)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template",
)
def delete_template(
    template_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: TemplateService = Depends(get_template_service)
) -> Response:
    service.delete(template_id, owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
