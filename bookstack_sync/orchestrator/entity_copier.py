"""
Builders that turn source entities into destination creation drafts.

Drafts keep only user-authored fields. Ids, timestamps, identity references,
revision counters and computed URLs belong to the instance that owns the
entity and are never copied across.
"""

from typing import List, Optional

from ..models import (
    Book,
    BookDraft,
    Chapter,
    ChapterDraft,
    Cover,
    Page,
    PageDraft,
    Tag,
)


def copy_tags(tags: List[Tag]) -> List[Tag]:
    """Copy tags in their original order, keeping each tag's order value."""
    return [Tag(name=tag.name, value=tag.value, order=tag.order) for tag in tags]


def book_draft_from(source_book: Book, image_data: Optional[bytes] = None) -> BookDraft:
    """
    Build a book draft from a source book.

    Args:
        source_book: Book read from the source instance
        image_data: Cover bytes downloaded by the caller, if the book has a cover

    Returns:
        BookDraft with no content list; children are created separately
    """
    cover = None
    if source_book.cover is not None:
        cover = Cover(
            name=source_book.cover.name,
            url=source_book.cover.url,
            path=source_book.cover.path,
            type=source_book.cover.type
        )

    return BookDraft(
        name=source_book.name,
        slug=source_book.slug,
        description=source_book.description,
        description_html=source_book.description_html,
        tags=copy_tags(source_book.tags),
        default_template_id=source_book.default_template_id,
        cover=cover,
        image_data=image_data if cover is not None else None
    )


def chapter_draft_from(source_chapter: Chapter, dest_book_id: int) -> ChapterDraft:
    """Build a chapter draft bound to the destination book."""
    return ChapterDraft(
        book_id=dest_book_id,
        name=source_chapter.name,
        slug=source_chapter.slug,
        description=source_chapter.description,
        priority=source_chapter.priority,
        tags=copy_tags(source_chapter.tags)
    )


def page_draft_from(
    source_page: Page,
    dest_book_id: int,
    dest_chapter_id: Optional[int] = None
) -> PageDraft:
    """
    Build a page draft bound to the destination book and, optionally, chapter.

    Args:
        source_page: Page read from the source instance
        dest_book_id: Destination book id (the remap root)
        dest_chapter_id: Destination chapter id, or None for a book-level page
    """
    return PageDraft(
        book_id=dest_book_id,
        chapter_id=dest_chapter_id,
        name=source_page.name,
        slug=source_page.slug,
        html=source_page.html,
        markdown=source_page.markdown,
        priority=source_page.priority,
        draft=source_page.draft,
        template=source_page.template,
        tags=copy_tags(source_page.tags)
    )


__all__ = ['book_draft_from', 'chapter_draft_from', 'page_draft_from', 'copy_tags']
