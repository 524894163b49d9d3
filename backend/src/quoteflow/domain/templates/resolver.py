"""Template resolution.

Turns a stored template into the section order and page settings the render
pipeline consumes. Resolution is read-only: the stored template is never
modified, not even to repair duplicate positions.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from ..documents.errors import AccessDenied, NotFound
from ..documents.models import DocumentKind, EntityType
from ..documents.ports import DocumentStorePort
from .models import PageSettings, ResolvedSection, ResolvedTemplate, TemplateRecord, TemplateSectionRecord
from .sections import parse_section

logger = logging.getLogger(__name__)

# Layout used for documents created without a template
DEFAULT_SECTION_ORDER = (
    "header",
    "client_info",
    "project_info",
    "items_table",
    "totals",
    "payment_terms",
    "notes",
    "signature",
)


def order_sections(
    sections: List[TemplateSectionRecord]
) -> Tuple[List[Tuple[int, TemplateSectionRecord]], Tuple[int, ...]]:
    """Sort sections by position, keeping authoring order for ties.

    Sections without a position go last, in authoring order.

    Returns:
        Tuple of ([(authoring index, section), ...] in render order,
        positions that were shared by more than one section)
    """
    indexed = list(enumerate(sections))
    ordered = sorted(
        indexed,
        key=lambda pair: (pair[1].position is None, pair[1].position or 0, pair[0]),
    )

    seen = set()
    duplicates = set()
    for _, section in indexed:
        if section.position is None:
            continue
        if section.position in seen:
            duplicates.add(section.position)
        seen.add(section.position)

    return ordered, tuple(sorted(duplicates))


def build_resolved(template: TemplateRecord) -> ResolvedTemplate:
    """Parse and order a template's sections.

    Raises:
        InvalidTemplate: A section has an unknown type or malformed payload
    """
    ordered, duplicates = order_sections(template.sections)
    if duplicates:
        logger.warning(
            f"Template {template.name!r} has duplicate section positions {list(duplicates)}; "
            f"using authoring order for ties",
            extra={"template_id": template.id},
        )

    resolved_sections = tuple(
        ResolvedSection(
            order=order,
            position=section.position,
            section=parse_section(section.type, section.content, section.settings),
        )
        for order, (_, section) in enumerate(ordered)
    )

    return ResolvedTemplate(
        template_id=template.id,
        name=template.name,
        kind=template.kind,
        sections=resolved_sections,
        page=PageSettings.from_dict(template.settings),
        normalized_duplicates=duplicates,
    )


def default_template(kind: Optional[DocumentKind] = None) -> ResolvedTemplate:
    """Built-in layout with every standard section and default page settings."""
    sections = tuple(
        ResolvedSection(order=i, position=i, section=parse_section(section_type))
        for i, section_type in enumerate(DEFAULT_SECTION_ORDER)
    )
    return ResolvedTemplate(
        template_id=None,
        name="Default",
        kind=kind,
        sections=sections,
        page=PageSettings(),
    )


class TemplateResolver:
    """Loads templates through the persistence port and resolves them."""

    def __init__(self, store: DocumentStorePort):
        self.store = store

    def load(self, template_id: UUID, requester_id: UUID) -> TemplateRecord:
        """Stored template, if the requester owns it or it is public.

        Raises:
            NotFound: Template does not exist
            AccessDenied: Template is private and owned by someone else
        """
        template = self.store.get(EntityType.TEMPLATE, template_id)
        if template is None:
            raise NotFound("Template", template_id)
        if template.owner_id != requester_id and not template.is_public:
            raise AccessDenied("Template", template_id, requester_id)
        return template

    def resolve(self, template_id: UUID, requester_id: UUID) -> ResolvedTemplate:
        """Resolve a template for a requester.

        The owner can always resolve a template; anyone can resolve a public one.

        Raises:
            NotFound: Template does not exist
            AccessDenied: Template is private and owned by someone else
            InvalidTemplate: A section cannot be parsed
        """
        return build_resolved(self.load(template_id, requester_id))
