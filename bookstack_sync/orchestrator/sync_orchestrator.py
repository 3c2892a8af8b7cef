"""
Sync orchestrator for copying one book between two BookStack instances.

The orchestrator verifies both instances, reads the source book and
re-creates it on the destination in dependency order: book, then each
content item in its original order (chapters followed by their pages,
standalone pages directly). Every destination id returned by a create call
is recorded and used as the parent of the entities created after it.

The first failure aborts the run. Entities already created on the
destination are left in place; the raised SyncError carries a report listing
them.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from ..clients import BookStackClient
from ..config_loader import get_nested
from ..errors import BookStackSyncError, DownloadError, SyncError, UnsupportedContentError
from ..logger import ProgressTracker, log_section
from ..models import Book, ContentRef, ContentType, PageSummary
from .entity_copier import book_draft_from, chapter_draft_from, page_draft_from
from .id_mapping_tracker import IdMappingTracker
from .sync_report import SyncReport


class SyncState(Enum):
    """Stages of a sync run."""
    IDLE = "idle"
    VERIFYING_SOURCE = "verifying_source"
    VERIFYING_DESTINATION = "verifying_destination"
    COPYING_BOOK = "copying_book"
    COPYING_CHILDREN = "copying_children"
    DONE = "done"
    FAILED = "failed"


class SyncOrchestrator:
    """Copies a book, its chapters and its pages from source to destination."""

    def __init__(
        self,
        source_client: BookStackClient,
        destination_client: BookStackClient,
        page_workers: int = 1,
        show_progress: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize sync orchestrator.

        Args:
            source_client: Client bound to the instance being read
            destination_client: Client bound to the instance being written
            page_workers: Concurrent page copies within one chapter (1 = sequential)
            show_progress: Show a tqdm progress bar over the book's contents
            logger: Optional logger instance
        """
        if page_workers < 1:
            raise ValueError("page_workers must be at least 1")

        self.source = source_client
        self.destination = destination_client
        self.page_workers = page_workers
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger(__name__)

        self.state = SyncState.IDLE
        self.last_completed_state: Optional[SyncState] = None
        self.id_mapper = IdMappingTracker(self.logger)

        self._context: Dict[str, Any] = {}
        self._report: Optional[SyncReport] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any], logger: Optional[logging.Logger] = None) -> 'SyncOrchestrator':
        """Build an orchestrator and both clients from a loaded configuration."""
        return cls(
            source_client=BookStackClient.from_config(config, 'source'),
            destination_client=BookStackClient.from_config(config, 'destination'),
            page_workers=get_nested(config, 'sync.page_workers', 1),
            show_progress=get_nested(config, 'advanced.progress_bars', False),
            logger=logger
        )

    def _client_for(self, side: str) -> BookStackClient:
        if side == 'source':
            return self.source
        if side == 'destination':
            return self.destination
        raise ValueError(f"side must be 'source' or 'destination', got '{side}'")

    def verify_credentials(self, side: str) -> bool:
        """
        Pre-flight check of one instance's token pair.

        Args:
            side: 'source' or 'destination'

        Raises:
            AuthError: If the instance rejected the token pair
            TransportError: If the instance could not be reached
        """
        return self._client_for(side).verify_credentials()

    def _transition(self, new_state: SyncState) -> None:
        """Move to the next stage, remembering the one just completed."""
        # A step that ends in FAILED did not complete
        if new_state is not SyncState.FAILED and self.state is not SyncState.IDLE:
            self.last_completed_state = self.state
        self.logger.debug(f"Sync state: {self.state.value} -> {new_state.value}")
        self.state = new_state
        if self._report is not None:
            self._report.state = new_state.value
            self._report.last_completed_state = (
                self.last_completed_state.value if self.last_completed_state else None
            )

    def sync_book(self, source_book_id: int) -> SyncReport:
        """
        Copy one book from the source instance to the destination instance.

        Every call creates a new destination book; nothing is deduplicated
        against earlier runs.

        Args:
            source_book_id: ID of the book on the source instance

        Returns:
            SyncReport for the completed run

        Raises:
            SyncError: On the first failure, wrapping the underlying error
        """
        self.state = SyncState.IDLE
        self.last_completed_state = None
        self.id_mapper = IdMappingTracker(self.logger)
        self._context = {}
        self._report = SyncReport(source_book_id=source_book_id)
        start_time = time.time()

        log_section(f"Syncing book {source_book_id}")
        self.logger.info(f"Source: {self.source.base_url}")
        self.logger.info(f"Destination: {self.destination.base_url}")

        try:
            self._transition(SyncState.VERIFYING_SOURCE)
            self.source.verify_credentials()

            self._transition(SyncState.VERIFYING_DESTINATION)
            self.destination.verify_credentials()

            self._transition(SyncState.COPYING_BOOK)
            source_book, dest_book_id = self._copy_book(source_book_id)

            self._transition(SyncState.COPYING_CHILDREN)
            self._copy_children(source_book, dest_book_id)

            self._transition(SyncState.DONE)
        except BookStackSyncError as e:
            raise self._fail(e, start_time) from e

        self._finish_report(start_time)
        self.logger.info(
            f"Book sync completed successfully: source book {source_book_id} -> "
            f"destination book {self._report.destination_book_id} "
            f"({self._report.chapters} chapters, {self._report.pages} pages)"
        )
        return self._report

    def _fail(self, error: BookStackSyncError, start_time: float) -> SyncError:
        """Record the failure and build the SyncError handed to the caller."""
        failed_step = self.state
        self._transition(SyncState.FAILED)

        entity_type = self._context.get('entity_type')
        source_id = self._context.get('source_id')

        self._report.error = {
            'kind': error.kind,
            'message': str(error),
            'step': failed_step.value,
            'entity_type': entity_type,
            'source_id': source_id
        }
        self._finish_report(start_time)

        where = f" ({entity_type} {source_id})" if entity_type else ""
        self.logger.error(
            f"Book sync failed during {failed_step.value}{where}: {error.kind}: {str(error)}"
        )
        if self._report.partial_content_left:
            self.logger.warning(
                f"Destination left with partial content: {self._report.books} book(s), "
                f"{self._report.chapters} chapter(s), {self._report.pages} page(s) created"
            )

        return SyncError(
            f"Sync of book {self._report.source_book_id} failed during {failed_step.value}{where}: {error}",
            cause=error,
            step=failed_step,
            last_completed_step=self.last_completed_state,
            source_id=source_id,
            entity_type=entity_type,
            report=self._report
        )

    def _finish_report(self, start_time: float) -> None:
        stats = self.id_mapper.get_statistics()
        self._report.books = stats['book']
        self._report.chapters = stats['chapter']
        self._report.pages = stats['page']
        self._report.mappings = self.id_mapper.get_all_mappings()
        self._report.duration_seconds = time.time() - start_time

    def _set_context(self, entity_type: str, source_id: int) -> None:
        self._context = {'entity_type': entity_type, 'source_id': source_id}

    def _copy_book(self, source_book_id: int):
        """Fetch the source book and create its copy; returns (source book, destination id)."""
        self._set_context('book', source_book_id)
        source_book = self.source.get_book(source_book_id)
        self.logger.info(f"Read source book: {source_book.name} ({len(source_book.contents)} content items)")

        # A cover that cannot be fetched aborts here, before anything is created
        image_data = None
        if source_book.cover is not None:
            cover_url = source_book.cover.url
            if not cover_url:
                raise DownloadError(f"Cover of book {source_book.id} has no download URL")
            image_data = self.source.download_file(cover_url)
            if not image_data:
                raise DownloadError(f"Cover download from {cover_url} returned no data", url=cover_url)
            self.logger.debug(f"Downloaded cover image ({len(image_data)} bytes)")

        dest_book = self.destination.create_book(book_draft_from(source_book, image_data))
        self.id_mapper.add_mapping('book', source_book.id, dest_book.id, dest_book.slug)
        self._report.destination_book_id = dest_book.id
        self.logger.info(f"Created book: {dest_book.name} (ID: {dest_book.id})")

        return source_book, dest_book.id

    def _copy_children(self, source_book: Book, dest_book_id: int) -> None:
        """Copy every content item in the source book's display order."""
        contents: List[ContentRef] = source_book.contents
        items = tqdm(contents, desc="Copying contents") if self.show_progress else contents

        with ProgressTracker(len(contents), "content items") as progress:
            for content in items:
                try:
                    if content.type is ContentType.CHAPTER:
                        self._copy_chapter(content.id, dest_book_id)
                    elif content.type is ContentType.PAGE:
                        self._set_context('page', content.id)
                        self._copy_page(content.id, dest_book_id, None)
                    else:
                        self._set_context(content.raw_type or 'unknown', content.id)
                        raise UnsupportedContentError(content.id, content.raw_type)
                except BookStackSyncError:
                    progress.increment(success=False)
                    raise
                progress.increment()

    def _copy_chapter(self, source_chapter_id: int, dest_book_id: int) -> None:
        """Create a chapter copy, then copy its pages in order."""
        self._set_context('chapter', source_chapter_id)
        source_chapter = self.source.get_chapter(source_chapter_id)

        dest_chapter = self.destination.create_chapter(chapter_draft_from(source_chapter, dest_book_id))
        self.id_mapper.add_mapping('chapter', source_chapter.id, dest_chapter.id, dest_chapter.slug)
        self.logger.info(f"Created chapter: {dest_chapter.name} (ID: {dest_chapter.id})")

        if self.page_workers > 1 and len(source_chapter.pages) > 1:
            self._copy_pages_concurrently(source_chapter.pages, dest_book_id, dest_chapter.id)
            return

        for summary in source_chapter.pages:
            self._set_context('page', summary.id)
            self._copy_page(summary.id, dest_book_id, dest_chapter.id)

    def _copy_pages_concurrently(
        self,
        summaries: List[PageSummary],
        dest_book_id: int,
        dest_chapter_id: int
    ) -> None:
        """
        Copy one chapter's pages on a bounded worker pool.

        After the first failure no further page is started and no further
        create is issued. Copies already in flight finish and are recorded,
        then the first failure in page order is raised.
        """
        abort = threading.Event()

        def copy_one(page_id: int) -> None:
            if abort.is_set():
                return
            try:
                self._copy_page(page_id, dest_book_id, dest_chapter_id, abort=abort)
            except Exception:
                abort.set()
                raise

        with ThreadPoolExecutor(max_workers=self.page_workers) as executor:
            futures = [executor.submit(copy_one, summary.id) for summary in summaries]
            for future in as_completed(futures):
                if future.exception() is not None:
                    for pending in futures:
                        pending.cancel()
                    break

        for summary, future in zip(summaries, futures):
            if future.cancelled():
                continue
            error = future.exception()
            if error is not None:
                self._set_context('page', summary.id)
                raise error

    def _copy_page(
        self,
        source_page_id: int,
        dest_book_id: int,
        dest_chapter_id: Optional[int],
        abort: Optional[threading.Event] = None
    ) -> None:
        source_page = self.source.get_page(source_page_id)
        if abort is not None and abort.is_set():
            self.logger.debug(f"Skipping create of page {source_page_id} after an earlier failure")
            return
        dest_page = self.destination.create_page(
            page_draft_from(source_page, dest_book_id, dest_chapter_id)
        )
        self.id_mapper.add_mapping('page', source_page.id, dest_page.id, dest_page.slug)
        self.logger.info(f"Created page: {dest_page.name} (ID: {dest_page.id})")

    def preview(self, source_book_id: int) -> Dict[str, Any]:
        """
        Read the source book and describe what a sync would create.

        Nothing is written to the destination.

        Raises:
            UnsupportedContentError: If the book holds an unknown content type
        """
        self.source.verify_credentials()
        source_book = self.source.get_book(source_book_id)

        plan = []
        chapter_count = 0
        page_count = 0

        for content in source_book.contents:
            if content.type is ContentType.CHAPTER:
                chapter = self.source.get_chapter(content.id)
                chapter_count += 1
                page_count += len(chapter.pages)
                plan.append({
                    'type': 'chapter',
                    'id': chapter.id,
                    'name': chapter.name,
                    'pages': [summary.id for summary in chapter.pages]
                })
            elif content.type is ContentType.PAGE:
                page_count += 1
                plan.append({'type': 'page', 'id': content.id, 'name': content.name})
            else:
                raise UnsupportedContentError(content.id, content.raw_type)

        return {
            'book_id': source_book.id,
            'book_name': source_book.name,
            'has_cover': source_book.cover is not None,
            'chapters': chapter_count,
            'pages': page_count,
            'plan': plan
        }


__all__ = ['SyncOrchestrator', 'SyncState']
