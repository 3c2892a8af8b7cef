"""
Orchestration package for copying a book between BookStack instances.

This package sequences a sync run: verify both instances, copy the book,
then copy its chapters and pages in order while remapping parent ids onto
the entities the destination created.
"""

from .entity_copier import book_draft_from, chapter_draft_from, page_draft_from
from .id_mapping_tracker import IdMappingTracker
from .sync_orchestrator import SyncOrchestrator, SyncState
from .sync_report import SyncReport

__all__ = [
    'SyncOrchestrator',
    'SyncState',
    'SyncReport',
    'IdMappingTracker',
    'book_draft_from',
    'chapter_draft_from',
    'page_draft_from'
]
