"""Template service - create, read, list, update and delete document templates.

Reads go through TemplateResolver, so a template is visible to its owner and,
when public, to everyone. Writes are owner-only. Every write is validated by
resolving the template, so a stored template always renders.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..domain.documents.errors import AccessDenied, NotFound
from ..domain.documents.models import DocumentKind, EntityType
from ..domain.documents.ports import DocumentStorePort
from ..domain.templates.models import TemplateRecord, TemplateSectionRecord
from ..domain.templates.resolver import TemplateResolver, build_resolved

logger = logging.getLogger(__name__)

# Fields an owner may change; id, owner and usage_count are managed here
EDITABLE_FIELDS = frozenset({"name", "kind", "description", "is_public", "sections", "settings", "tags"})


def _apply_fields(template: TemplateRecord, data: Dict[str, Any]) -> None:
    unknown = set(data) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Template fields cannot be changed: {sorted(unknown)}")

    for name, value in data.items():
        if name == "kind":
            value = DocumentKind(value)
        elif name == "sections":
            value = [TemplateSectionRecord.from_dict(s) for s in value or []]
        elif name == "settings":
            value = dict(value or {})
        elif name == "tags":
            value = list(value or [])
        setattr(template, name, value)


class TemplateService:
    """Service for template management."""

    def __init__(self, store: DocumentStorePort):
        self.store = store
        self.resolver = TemplateResolver(store)

    def create(self, owner_id: UUID, data: Dict[str, Any]) -> TemplateRecord:
        """Create a template owned by owner_id.

        Raises:
            InvalidTemplate: A section has an unknown type or malformed payload
            ValueError: Unknown field or malformed page settings
        """
        template = TemplateRecord(owner_id=owner_id, name=data["name"], kind=DocumentKind(data["kind"]))
        _apply_fields(template, data)
        build_resolved(template)

        created = self.store.put(template)
        logger.info(
            f"Created template {created.name!r}",
            extra={"template_id": created.id, "owner_id": owner_id},
        )
        return created

    def get(self, template_id: UUID, requester_id: UUID) -> TemplateRecord:
        """Get a template the requester owns or that is public.

        Raises:
            NotFound: Template does not exist
            AccessDenied: Template is private and owned by someone else
        """
        return self.resolver.load(template_id, requester_id)

    def list_templates(self, requester_id: UUID, kind: Optional[DocumentKind] = None) -> List[TemplateRecord]:
        """Templates the requester owns plus all public templates, newest first."""
        return self.store.list_templates(requester_id, kind)

    def _load_owned(self, template_id: UUID, requester_id: UUID) -> TemplateRecord:
        template = self.store.get(EntityType.TEMPLATE, template_id)
        if template is None:
            raise NotFound("Template", template_id)
        if template.owner_id != requester_id:
            raise AccessDenied("Template", template_id, requester_id)
        return template

    def update(self, template_id: UUID, requester_id: UUID, data: Dict[str, Any]) -> TemplateRecord:
        """Change fields of a template the requester owns.

        Raises:
            NotFound: Template does not exist
            AccessDenied: Requester is not the owner (public templates included)
            InvalidTemplate: The changed template no longer resolves
        """
        with self.store.atomic():
            template = self._load_owned(template_id, requester_id)
            _apply_fields(template, data)
            build_resolved(template)
            updated = self.store.put(template)

        logger.info(
            f"Updated template {updated.name!r}",
            extra={"template_id": template_id, "fields": sorted(data)},
        )
        return updated

    def delete(self, template_id: UUID, requester_id: UUID) -> None:
        """Delete a template the requester owns.

        Documents created from it keep their template_id and render with the
        default layout from then on.

        Raises:
            NotFound: Template does not exist
            AccessDenied: Requester is not the owner
        """
        with self.store.atomic():
            template = self._load_owned(template_id, requester_id)
            if not self.store.delete_template(template_id):
                raise NotFound("Template", template_id)
        logger.info(f"Deleted template {template.name!r}", extra={"template_id": template_id})
