"""Data models for BookStack book synchronization."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ContentType(Enum):
    """Discriminator for items in a book's content list."""
    CHAPTER = "chapter"
    PAGE = "page"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> 'ContentType':
        """Map a raw type string to a known variant, or UNKNOWN."""
        if raw == cls.CHAPTER.value:
            return cls.CHAPTER
        if raw == cls.PAGE.value:
            return cls.PAGE
        return cls.UNKNOWN


@dataclass
class Tag:
    """Name/value tag attached to books, chapters, and pages."""

    name: str
    value: str = ''
    order: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Tag':
        return cls(
            name=data.get('name', ''),
            value=data.get('value') or '',
            order=data.get('order')
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {'name': self.name, 'value': self.value}
        if self.order is not None:
            result['order'] = self.order
        return result


@dataclass
class UserRef:
    """Identity reference (creator, updater, owner)."""

    id: Optional[int] = None
    name: Optional[str] = None
    slug: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional['UserRef']:
        """Parse either a bare user id or a user object."""
        if value is None:
            return None
        if isinstance(value, dict):
            return cls(id=value.get('id'), name=value.get('name'), slug=value.get('slug'))
        return cls(id=int(value))


@dataclass
class Cover:
    """Book cover image metadata."""

    id: Optional[int] = None
    name: Optional[str] = None
    url: Optional[str] = None
    path: Optional[str] = None
    type: Optional[str] = None
    uploaded_to: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Cover']:
        if not data:
            return None
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            url=data.get('url'),
            path=data.get('path'),
            type=data.get('type'),
            uploaded_to=data.get('uploaded_to'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at')
        )


def _parse_tags(data: Dict[str, Any]) -> List[Tag]:
    return [Tag.from_dict(tag) for tag in data.get('tags') or []]


@dataclass
class PageSummary:
    """Reduced page projection listed under a chapter."""

    id: int
    name: str = ''
    slug: str = ''
    book_id: Optional[int] = None
    chapter_id: Optional[int] = None
    draft: bool = False
    template: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PageSummary':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            slug=data.get('slug', ''),
            book_id=data.get('book_id'),
            chapter_id=data.get('chapter_id'),
            draft=bool(data.get('draft', False)),
            template=bool(data.get('template', False)),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            url=data.get('url')
        )


@dataclass
class ContentRef:
    """Book-level pointer to a chapter or a standalone page."""

    id: int
    type: ContentType
    raw_type: Optional[str] = None
    name: str = ''
    slug: str = ''
    book_id: Optional[int] = None
    chapter_id: Optional[int] = None
    url: Optional[str] = None
    draft: bool = False
    template: bool = False
    pages: List[PageSummary] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContentRef':
        raw_type = data.get('type')
        return cls(
            id=data['id'],
            type=ContentType.parse(raw_type),
            raw_type=raw_type,
            name=data.get('name', ''),
            slug=data.get('slug', ''),
            book_id=data.get('book_id'),
            chapter_id=data.get('chapter_id'),
            url=data.get('url'),
            draft=bool(data.get('draft', False)),
            template=bool(data.get('template', False)),
            pages=[PageSummary.from_dict(p) for p in data.get('pages') or []]
        )


@dataclass
class Book:
    """A BookStack book with its ordered content list."""

    id: Optional[int]
    name: str
    slug: str = ''
    description: str = ''
    description_html: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[UserRef] = None
    updated_by: Optional[UserRef] = None
    owned_by: Optional[UserRef] = None
    default_template_id: Optional[int] = None
    contents: List[ContentRef] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    cover: Optional[Cover] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Book':
        return cls(
            id=data.get('id'),
            name=data.get('name', ''),
            slug=data.get('slug', ''),
            description=data.get('description') or '',
            description_html=data.get('description_html'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            created_by=UserRef.from_value(data.get('created_by')),
            updated_by=UserRef.from_value(data.get('updated_by')),
            owned_by=UserRef.from_value(data.get('owned_by')),
            default_template_id=data.get('default_template_id'),
            contents=[ContentRef.from_dict(c) for c in data.get('contents') or []],
            tags=_parse_tags(data),
            cover=Cover.from_dict(data.get('cover'))
        )


@dataclass
class Chapter:
    """A BookStack chapter with its ordered page summaries."""

    id: Optional[int]
    book_id: Optional[int]
    name: str
    slug: str = ''
    description: str = ''
    priority: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[UserRef] = None
    updated_by: Optional[UserRef] = None
    owned_by: Optional[UserRef] = None
    pages: List[PageSummary] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Chapter':
        return cls(
            id=data.get('id'),
            book_id=data.get('book_id'),
            name=data.get('name', ''),
            slug=data.get('slug', ''),
            description=data.get('description') or '',
            priority=data.get('priority'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            created_by=UserRef.from_value(data.get('created_by')),
            updated_by=UserRef.from_value(data.get('updated_by')),
            owned_by=UserRef.from_value(data.get('owned_by')),
            pages=[PageSummary.from_dict(p) for p in data.get('pages') or []],
            tags=_parse_tags(data)
        )


@dataclass
class Page:
    """A BookStack page, attached to a book directly or via a chapter."""

    id: Optional[int]
    book_id: Optional[int]
    name: str
    chapter_id: Optional[int] = None
    slug: str = ''
    html: Optional[str] = None
    markdown: Optional[str] = None
    priority: Optional[int] = None
    draft: bool = False
    template: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[UserRef] = None
    updated_by: Optional[UserRef] = None
    owned_by: Optional[UserRef] = None
    tags: List[Tag] = field(default_factory=list)
    url: Optional[str] = None
    revision_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Page':
        # BookStack reports chapter_id 0 for pages placed directly in a book
        chapter_id = data.get('chapter_id') or None
        return cls(
            id=data.get('id'),
            book_id=data.get('book_id'),
            chapter_id=chapter_id,
            name=data.get('name', ''),
            slug=data.get('slug', ''),
            html=data.get('html'),
            markdown=data.get('markdown'),
            priority=data.get('priority'),
            draft=bool(data.get('draft', False)),
            template=bool(data.get('template', False)),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            created_by=UserRef.from_value(data.get('created_by')),
            updated_by=UserRef.from_value(data.get('updated_by')),
            owned_by=UserRef.from_value(data.get('owned_by')),
            tags=_parse_tags(data),
            url=data.get('url'),
            revision_count=data.get('revision_count')
        )


@dataclass
class BookDraft:
    """Creation payload for a destination book."""

    name: str
    slug: str = ''
    description: str = ''
    description_html: Optional[str] = None
    tags: List[Tag] = field(default_factory=list)
    default_template_id: Optional[int] = None
    cover: Optional[Cover] = None
    image_data: Optional[bytes] = None

    def has_image(self) -> bool:
        """Whether this draft carries cover bytes and needs multipart encoding."""
        return self.cover is not None and bool(self.image_data)

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for a coverless book."""
        payload = {
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'tags': [tag.to_dict() for tag in self.tags]
        }
        if self.description_html is not None:
            payload['description_html'] = self.description_html
        if self.default_template_id is not None:
            payload['default_template_id'] = self.default_template_id
        return payload

    def to_form_fields(self) -> Dict[str, str]:
        """Scalar form fields for a multipart book request."""
        fields = {
            'name': self.name,
            'slug': self.slug,
            'description': self.description
        }
        if self.description_html is not None:
            fields['description_html'] = self.description_html
        if self.default_template_id is not None:
            fields['default_template_id'] = str(self.default_template_id)
        for index, tag in enumerate(self.tags):
            fields[f'tags[{index}][name]'] = tag.name
            fields[f'tags[{index}][value]'] = tag.value
            if tag.order is not None:
                fields[f'tags[{index}][order]'] = str(tag.order)
        return fields


@dataclass
class ChapterDraft:
    """Creation payload for a destination chapter."""

    book_id: int
    name: str
    slug: str = ''
    description: str = ''
    priority: Optional[int] = None
    tags: List[Tag] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            'book_id': self.book_id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'tags': [tag.to_dict() for tag in self.tags]
        }
        if self.priority is not None:
            payload['priority'] = self.priority
        return payload


@dataclass
class PageDraft:
    """
    Creation payload for a destination page.

    A page is placed either directly in a book (chapter_id is None) or in a
    chapter of that book. book_id is always required.
    """

    book_id: int
    name: str
    chapter_id: Optional[int] = None
    slug: str = ''
    html: Optional[str] = None
    markdown: Optional[str] = None
    priority: Optional[int] = None
    draft: bool = False
    template: bool = False
    tags: List[Tag] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.book_id is None:
            raise ValueError("PageDraft requires a destination book_id")

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            'book_id': self.book_id,
            'name': self.name,
            'slug': self.slug,
            'html': self.html or '',
            'draft': self.draft,
            'template': self.template,
            'tags': [tag.to_dict() for tag in self.tags]
        }
        if self.chapter_id is not None:
            payload['chapter_id'] = self.chapter_id
        if self.markdown:
            payload['markdown'] = self.markdown
        if self.priority is not None:
            payload['priority'] = self.priority
        return payload


__all__ = [
    'ContentType',
    'Tag',
    'UserRef',
    'Cover',
    'PageSummary',
    'ContentRef',
    'Book',
    'Chapter',
    'Page',
    'BookDraft',
    'ChapterDraft',
    'PageDraft'
]
