"""Unit tests for template resolution and section parsing"""

import logging
from uuid import uuid4

import pytest

from quoteflow.domain.documents.errors import AccessDenied, InvalidTemplate, NotFound
from quoteflow.domain.documents.models import DocumentKind, EntityType
from quoteflow.domain.templates.models import TemplateRecord, TemplateSectionRecord
from quoteflow.domain.templates.resolver import (
    DEFAULT_SECTION_ORDER,
    TemplateResolver,
    default_template,
    order_sections,
)
from quoteflow.domain.templates.sections import ItemsTableSection, TextSection, parse_section
from quoteflow.infrastructure.repositories import InMemoryDocumentStore


def section(section_type, position=None, content=None, settings=None) -> TemplateSectionRecord:
    return TemplateSectionRecord(type=section_type, position=position, content=content, settings=settings)


class TestParseSection:
    """Test typed section variants"""

    def test_items_table_columns_from_settings(self):
        section = parse_section("items_table", settings={"columns": ["description", "quantity", "total"]})

        assert isinstance(section, ItemsTableSection)
        assert section.columns == ["description", "quantity", "total"]

    def test_camel_case_payload(self):
        """Test authored camelCase keys are accepted"""
        section = parse_section("totals", content={"showTax": False})
        assert section.show_tax is False

    def test_content_overrides_settings(self):
        section = parse_section("notes", content={"title": "Remarks"}, settings={"title": "Notes"})
        assert section.title == "Remarks"

    def test_text_content_as_body(self):
        section = parse_section("text", content="Thank you for your business.")

        assert isinstance(section, TextSection)
        assert section.body == "Thank you for your business."

    def test_unknown_type(self):
        with pytest.raises(InvalidTemplate, match="banner"):
            parse_section("banner")

    def test_invalid_column(self):
        with pytest.raises(InvalidTemplate):
            parse_section("items_table", settings={"columns": ["description", "colour"]})

    def test_non_object_content(self):
        with pytest.raises(InvalidTemplate):
            parse_section("header", content=["not", "an", "object"])


class TestOrderSections:
    """Test render order of template sections"""

    def test_sorted_by_position(self):
        sections = [section("totals", 3), section("header", 1), section("items_table", 2)]

        ordered, duplicates = order_sections(sections)

        assert [s.type for _, s in ordered] == ["header", "items_table", "totals"]
        assert duplicates == ()

    def test_duplicate_positions_keep_authoring_order(self):
        """Test ties are broken by authoring order and reported"""
        sections = [section("notes", 2), section("header", 1), section("text", 2)]

        ordered, duplicates = order_sections(sections)

        assert [s.type for _, s in ordered] == ["header", "notes", "text"]
        assert duplicates == (2,)

    def test_unpositioned_sections_go_last(self):
        sections = [section("signature"), section("header", 1), section("notes")]

        ordered, _ = order_sections(sections)

        assert [s.type for _, s in ordered] == ["header", "signature", "notes"]


class TestDefaultTemplate:

    def test_all_standard_sections(self):
        resolved = default_template(DocumentKind.INVOICE)

        assert tuple(s.section.type for s in resolved.sections) == DEFAULT_SECTION_ORDER
        assert resolved.template_id is None
        assert resolved.page.page_size == "A4"


class TestTemplateResolver:
    """Test TemplateResolver access rules and output"""

    def setup_method(self):
        self.store = InMemoryDocumentStore()
        self.resolver = TemplateResolver(self.store)
        self.owner_id = uuid4()

    def _template(self, **kwargs) -> TemplateRecord:
        template = TemplateRecord(
            owner_id=kwargs.pop("owner_id", self.owner_id),
            name="Modern",
            kind=DocumentKind.QUOTATION,
            sections=kwargs.pop("sections", [section("header", 1), section("items_table", 2)]),
            settings=kwargs.pop("settings", {"pageSize": "Letter", "margins": {"top": 40}}),
            **kwargs,
        )
        return self.store.put(template)

    def test_owner_resolves_private_template(self):
        template = self._template()

        resolved = self.resolver.resolve(template.id, self.owner_id)

        assert resolved.template_id == template.id
        assert [s.section.type for s in resolved.sections] == ["header", "items_table"]
        assert resolved.page.page_size == "Letter"
        assert resolved.page.margins.top == 40
        assert resolved.page.margins.left == 60

    def test_public_template_for_anyone(self):
        template = self._template(is_public=True)

        resolved = self.resolver.resolve(template.id, uuid4())

        assert resolved.name == "Modern"

    def test_private_template_denied(self):
        template = self._template()

        with pytest.raises(AccessDenied):
            self.resolver.resolve(template.id, uuid4())

    def test_missing_template(self):
        with pytest.raises(NotFound):
            self.resolver.resolve(uuid4(), self.owner_id)

    def test_duplicates_are_not_written_back(self, caplog):
        """Test resolution warns about duplicate positions but leaves the template as stored"""
        template = self._template(sections=[section("notes", 1), section("text", 1, content="Hi")])

        with caplog.at_level(logging.WARNING):
            resolved = self.resolver.resolve(template.id, self.owner_id)

        assert resolved.normalized_duplicates == (1,)
        assert "duplicate section positions" in caplog.text
        stored = self.store.get(EntityType.TEMPLATE, template.id)
        assert [s.position for s in stored.sections] == [1, 1]

    def test_invalid_section_raises(self):
        template = self._template(sections=[section("header", 1), section("hologram", 2)])

        with pytest.raises(InvalidTemplate):
            self.resolver.resolve(template.id, self.owner_id)
