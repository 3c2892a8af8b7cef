"""BookStack Book Sync

Copies one book, with its chapters and pages, from a source BookStack
instance to a destination BookStack instance over the REST API of each.

Basic Usage:
    1. Copy config.yaml.example to config.yaml
    2. Fill in the base URL and API token pair of both instances
    3. Run: bookstack-sync --book-id 42

Example Configuration (config.yaml):
    source:
        base_url: "https://docs.example.com"
        token_id: ${SOURCE_TOKEN_ID}
        token_secret: ${SOURCE_TOKEN_SECRET}

    destination:
        base_url: "https://wiki.example.org"
        token_id: ${DESTINATION_TOKEN_ID}
        token_secret: ${DESTINATION_TOKEN_SECRET}
"""

__version__ = "1.0.0"
__description__ = "Copy a book between two BookStack instances"

from .models import (
    Book,
    BookDraft,
    Chapter,
    ChapterDraft,
    ContentRef,
    ContentType,
    Cover,
    Page,
    PageDraft,
    PageSummary,
    Tag,
)
from .config_loader import ConfigLoader, InstanceConfig, get_nested
from .errors import (
    ApiError,
    AuthError,
    BookStackSyncError,
    DownloadError,
    NotFoundError,
    ServerError,
    SyncError,
    TransportError,
    UnsupportedContentError,
    ValidationError,
)
from .logger import setup_logging, ProgressTracker, log_section, log_config
from .clients import BookStackClient
from .orchestrator import SyncOrchestrator, SyncReport, SyncState

__all__ = [
    # Version info
    '__version__',
    '__description__',

    # Data model
    'Book',
    'BookDraft',
    'Chapter',
    'ChapterDraft',
    'ContentRef',
    'ContentType',
    'Cover',
    'Page',
    'PageDraft',
    'PageSummary',
    'Tag',

    # Configuration
    'ConfigLoader',
    'InstanceConfig',
    'get_nested',

    # Errors
    'ApiError',
    'AuthError',
    'BookStackSyncError',
    'DownloadError',
    'NotFoundError',
    'ServerError',
    'SyncError',
    'TransportError',
    'UnsupportedContentError',
    'ValidationError',

    # Logging
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',

    # Sync
    'BookStackClient',
    'SyncOrchestrator',
    'SyncReport',
    'SyncState',
]
