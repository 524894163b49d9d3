"""Template domain models.

A TemplateRecord keeps section payloads exactly as authored (free-form dicts);
they are only parsed into typed section variants when a template is resolved.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from ..documents.models import DocumentKind, encode, to_datetime, to_uuid, utcnow


@dataclass
class TemplateSectionRecord:
    type: str
    position: Optional[int] = None
    content: Any = None
    settings: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateSectionRecord":
        position = data.get("position")
        return cls(
            type=data["type"],
            position=int(position) if position is not None else None,
            content=data.get("content"),
            settings=data.get("settings"),
        )


@dataclass
class TemplateRecord:
    owner_id: UUID
    name: str
    kind: DocumentKind
    id: UUID = field(default_factory=uuid4)
    description: Optional[str] = None
    is_public: bool = False
    sections: List[TemplateSectionRecord] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    usage_count: int = 0
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return encode(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateRecord":
        return cls(
            id=to_uuid(data["id"]),
            owner_id=to_uuid(data["owner_id"]),
            name=data["name"],
            kind=DocumentKind(data["kind"]),
            description=data.get("description"),
            is_public=bool(data.get("is_public")),
            sections=[TemplateSectionRecord.from_dict(s) for s in data.get("sections") or []],
            settings=dict(data.get("settings") or {}),
            usage_count=int(data.get("usage_count") or 0),
            tags=list(data.get("tags") or []),
            created_at=to_datetime(data.get("created_at")) or utcnow(),
            updated_at=to_datetime(data.get("updated_at")) or utcnow(),
        )


@dataclass(frozen=True)
class Margins:
    top: int = 60
    right: int = 60
    bottom: int = 60
    left: int = 60


@dataclass(frozen=True)
class ColorScheme:
    primary: Optional[str] = None
    secondary: Optional[str] = None
    text: Optional[str] = None
    background: Optional[str] = None


@dataclass(frozen=True)
class FontScheme:
    heading: Optional[str] = None
    body: Optional[str] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class PageSettings:
    """Page-level layout settings with the defaults used for every template."""
    page_size: str = "A4"
    orientation: str = "portrait"
    margins: Margins = Margins()
    colors: ColorScheme = ColorScheme()
    fonts: FontScheme = FontScheme()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PageSettings":
        data = data or {}
        defaults = cls()
        margins = data.get("margins") or {}
        colors = data.get("colors") or {}
        fonts = data.get("fonts") or {}
        return cls(
            page_size=data.get("page_size") or data.get("pageSize") or defaults.page_size,
            orientation=data.get("orientation") or defaults.orientation,
            margins=replace(
                defaults.margins,
                **{k: int(v) for k, v in margins.items() if k in ("top", "right", "bottom", "left") and v is not None},
            ),
            colors=ColorScheme(
                primary=colors.get("primary"),
                secondary=colors.get("secondary"),
                text=colors.get("text"),
                background=colors.get("background"),
            ),
            fonts=FontScheme(
                heading=fonts.get("heading"),
                body=fonts.get("body"),
                size=int(fonts["size"]) if fonts.get("size") is not None else None,
            ),
        )


@dataclass(frozen=True)
class ResolvedSection:
    order: int
    position: Optional[int]
    section: Any  # one of the section variants in sections.py


@dataclass(frozen=True)
class ResolvedTemplate:
    """Template sections in final render order plus merged page settings."""
    template_id: Optional[UUID]
    name: str
    kind: Optional[DocumentKind]
    sections: Tuple[ResolvedSection, ...]
    page: PageSettings
    normalized_duplicates: Tuple[int, ...] = ()
