"""
Sync report for a single book synchronization run.

Collects what was created on the destination, where the run stopped, and
formats that for console display and JSON export.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of one sync_book run."""

    source_book_id: int
    destination_book_id: Optional[int] = None
    state: str = 'idle'
    last_completed_state: Optional[str] = None
    books: int = 0
    chapters: int = 0
    pages: int = 0
    mappings: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.state == 'done'

    @property
    def partial_content_left(self) -> bool:
        """Whether a failed run left entities on the destination."""
        return self.error is not None and (self.books + self.chapters + self.pages) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize report to dictionary."""
        return {
            'summary': {
                'source_book_id': self.source_book_id,
                'destination_book_id': self.destination_book_id,
                'state': self.state,
                'last_completed_state': self.last_completed_state,
                'succeeded': self.succeeded,
                'books': self.books,
                'chapters': self.chapters,
                'pages': self.pages,
                'partial_content_left': self.partial_content_left,
                'started_at': self.started_at,
                'duration_seconds': self.duration_seconds,
                'duration_formatted': _format_duration(self.duration_seconds)
            },
            'error': self.error,
            'mappings': self.mappings
        }

    def format_console_report(self) -> str:
        """
        Format report for console display.

        Returns:
            Formatted console string
        """
        sections = [
            "=" * 60,
            "BOOK SYNC REPORT",
            "=" * 60,
            "",
            "Summary:",
            f"  Source Book:      {self.source_book_id}",
            f"  Destination Book: {self.destination_book_id if self.destination_book_id is not None else '-'}",
            f"  State:            {self.state}",
            f"  Books:            {self.books}",
            f"  Chapters:         {self.chapters}",
            f"  Pages:            {self.pages}",
            f"  Duration:         {_format_duration(self.duration_seconds)}",
            ""
        ]

        if self.error:
            sections.append("Failure:")
            sections.append("-" * 60)
            sections.append(f"  Kind:             {self.error.get('kind')}")
            sections.append(f"  Step:             {self.error.get('step')}")
            sections.append(f"  Last Completed:   {self.last_completed_state or '-'}")
            if self.error.get('source_id') is not None:
                sections.append(
                    f"  Source Entity:    {self.error.get('entity_type')} {self.error.get('source_id')}"
                )
            sections.append(f"  Message:          {self.error.get('message')}")
            if self.partial_content_left:
                sections.append("")
                sections.append(
                    "  WARNING: the destination holds a partially copied book. "
                    "Re-running creates a second copy; remove the partial one by hand if needed."
                )
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            logger.error(f"Failed to export JSON report: {str(e)}")
            return

        logger.info(f"JSON report exported to {filepath}")


def _format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


__all__ = ['SyncReport']
