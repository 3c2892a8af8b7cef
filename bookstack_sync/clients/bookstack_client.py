"""
BookStack REST API client for book synchronization.

This module provides a client wrapper for the BookStack REST API, bound to a
single instance. It handles token authentication, read retries, rate
limiting, and the mapping of HTTP failures onto the sync error taxonomy.
"""

import logging
import mimetypes
import threading
import time
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config_loader import InstanceConfig
from ..errors import (
    AuthError,
    DownloadError,
    NotFoundError,
    ServerError,
    TransportError,
    ValidationError,
)
from ..models import Book, BookDraft, Chapter, ChapterDraft, Page, PageDraft

logger = logging.getLogger(__name__)


class BookStackClient:
    """BookStack REST API client for one instance."""

    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5
    DEFAULT_RATE_LIMIT = 0.0
    DEFAULT_PAGE_SIZE = 100
    MAX_RATE_LIMIT_RETRIES = 3

    def __init__(
        self,
        instance: InstanceConfig,
        verify_ssl: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        rate_limit: float = DEFAULT_RATE_LIMIT
    ):
        """
        Initialize BookStack client.

        Args:
            instance: Base URL and token pair of the target instance
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries for failed reads
            retry_backoff_factor: Backoff factor for retries
            rate_limit: Minimum seconds between requests (0 = no limit)
        """
        self.instance = instance
        self.base_url = instance.base_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.rate_limit = rate_limit
        self._last_request_time = 0.0
        self._rate_limit_lock = threading.Lock()

        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': instance.auth_header(),
            'Accept': 'application/json'
        })

        # Only GETs are retried once a request has reached the server. POSTs
        # create entities, so they are retried only when the connection
        # could not be established.
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[502, 503, 504],
            allowed_methods=frozenset({'GET'}),
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized BookStack client for {self.base_url}")

    def _handle_rate_limit(self) -> None:
        """Enforce rate limiting between requests, across worker threads."""
        if self.rate_limit <= 0:
            return

        with self._rate_limit_lock:
            time_since_last = time.time() - self._last_request_time

            if time_since_last < self.rate_limit:
                sleep_time = self.rate_limit - time_since_last
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
                time.sleep(sleep_time)

            self._last_request_time = time.time()

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        _rate_limit_attempt: int = 0
    ) -> Dict[str, Any]:
        """
        Make HTTP request and map failures onto the error taxonomy.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint path
            params: Query parameters
            json: JSON payload
            data: Form fields for multipart uploads
            files: Files for multipart uploads

        Returns:
            JSON response as dictionary

        Raises:
            AuthError: On 401
            NotFoundError: On 404
            ValidationError: On other 4xx responses to a write
            ServerError: On 5xx, or other non-2xx responses to a read
            TransportError: On connection failures and timeouts
        """
        self._handle_rate_limit()

        url = f"{self.base_url}/api{endpoint}"

        logger.debug(f"{method} {url}")

        # Let requests set multipart/form-data with its boundary for uploads
        request_headers = None if files else {'Content-Type': 'application/json'}

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=request_headers,
                params=params,
                json=json,
                data=data,
                files=files,
                verify=self.verify_ssl,
                timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.error(f"Request timed out: {method} {url}")
            raise TransportError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error(f"Request failed: {method} {url} - {str(e)}")
            raise TransportError(f"Request to {url} failed: {str(e)}") from e

        logger.debug(f"Response status: {response.status_code}")

        # A 429 means the request was rejected before anything was created
        if response.status_code == 429 and _rate_limit_attempt < self.MAX_RATE_LIMIT_RETRIES:
            retry_after = response.headers.get('Retry-After', '1')
            try:
                wait_time = int(retry_after)
            except ValueError:
                wait_time = 1

            logger.warning(f"Rate limited (429). Retrying after {wait_time}s")
            time.sleep(wait_time)
            return self._make_request(
                method, endpoint, params=params, json=json, data=data, files=files,
                _rate_limit_attempt=_rate_limit_attempt + 1
            )

        if response.status_code >= 400:
            self._raise_for_status(response, method, url)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ServerError(
                f"Invalid JSON in response from {url}",
                status_code=response.status_code,
                method=method,
                url=url,
                response_text=response.text[:500]
            ) from e

    @staticmethod
    def _raise_for_status(response: requests.Response, method: str, url: str) -> None:
        """Translate an error response into the matching exception."""
        status = response.status_code
        body = response.text[:500] if response.text else ''
        message = BookStackClient._error_message(response) or response.reason or 'Request failed'

        logger.error(f"{method} {url} returned {status}: {body}")

        if status == 401:
            error_class = AuthError
        elif status == 404:
            error_class = NotFoundError
        elif status >= 500:
            error_class = ServerError
        elif method.upper() == 'GET':
            error_class = ServerError
        else:
            error_class = ValidationError

        raise error_class(message, status_code=status, method=method, url=url, response_text=body)

    @staticmethod
    def _error_message(response: requests.Response) -> Optional[str]:
        """Extract BookStack's {"error": {"message": ...}} text if present."""
        try:
            payload = response.json()
        except ValueError:
            return None
        if isinstance(payload, dict):
            error = payload.get('error')
            if isinstance(error, dict):
                return error.get('message')
            if isinstance(error, str):
                return error
        return None

    def _list_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect every item of a paginated listing endpoint."""
        items: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page_params = dict(params or {})
            page_params.update({'count': self.DEFAULT_PAGE_SIZE, 'offset': offset})
            response = self._make_request('GET', endpoint, params=page_params)

            batch = response.get('data', [])
            items.extend(batch)
            offset += len(batch)

            total = response.get('total', len(items))
            if not batch or offset >= total:
                return items

    def _require_id(self, payload: Dict[str, Any], endpoint: str) -> Dict[str, Any]:
        """Reject a create response that does not name the new entity."""
        if not isinstance(payload, dict) or payload.get('id') is None:
            raise ServerError(
                f"Create response from {endpoint} carries no entity id",
                method='POST',
                url=f"{self.base_url}/api{endpoint}",
                response_text=str(payload)[:500]
            )
        return payload

    def list_books(self, count: Optional[int] = None) -> List[Book]:
        """
        List books on this instance.

        Args:
            count: Fetch at most this many books (single request). When
                omitted, every page of results is collected.
        """
        if count is not None:
            response = self._make_request('GET', '/books', params={'count': count})
            data = response.get('data', [])
        else:
            data = self._list_all('/books')
        return [Book.from_dict(item) for item in data]

    def get_book(self, book_id: int) -> Book:
        """Get book by ID, including its ordered contents."""
        return Book.from_dict(self._make_request('GET', f'/books/{book_id}'))

    def create_book(self, draft: BookDraft) -> Book:
        """
        Create a new book.

        Books with cover bytes are sent as multipart/form-data with the image
        as a binary part. All other books are sent as JSON.
        """
        if draft.has_image():
            image_name = draft.cover.name or 'cover.jpg'
            mime_type, _ = mimetypes.guess_type(image_name)
            files = {
                'image': (image_name, draft.image_data, mime_type or 'application/octet-stream')
            }
            logger.debug(f"Creating book '{draft.name}' with cover image '{image_name}'")
            response = self._make_request('POST', '/books', data=draft.to_form_fields(), files=files)
        else:
            response = self._make_request('POST', '/books', json=draft.to_payload())
        return Book.from_dict(self._require_id(response, '/books'))

    def list_chapters(self, book_id: Optional[int] = None) -> List[Chapter]:
        """List chapters, optionally restricted to one book."""
        params = {'filter[book_id]': book_id} if book_id is not None else None
        return [Chapter.from_dict(item) for item in self._list_all('/chapters', params=params)]

    def get_chapter(self, chapter_id: int) -> Chapter:
        """Get chapter by ID, including its ordered page summaries."""
        return Chapter.from_dict(self._make_request('GET', f'/chapters/{chapter_id}'))

    def create_chapter(self, draft: ChapterDraft) -> Chapter:
        """Create a new chapter in a book."""
        response = self._make_request('POST', '/chapters', json=draft.to_payload())
        return Chapter.from_dict(self._require_id(response, '/chapters'))

    def list_pages(self, book_id: Optional[int] = None) -> List[Page]:
        """List pages, optionally restricted to one book."""
        params = {'filter[book_id]': book_id} if book_id is not None else None
        return [Page.from_dict(item) for item in self._list_all('/pages', params=params)]

    def get_page(self, page_id: int) -> Page:
        """Get page by ID with its full content."""
        return Page.from_dict(self._make_request('GET', f'/pages/{page_id}'))

    def create_page(self, draft: PageDraft) -> Page:
        """Create a new page in a book or chapter."""
        response = self._make_request('POST', '/pages', json=draft.to_payload())
        return Page.from_dict(self._require_id(response, '/pages'))

    def verify_credentials(self) -> bool:
        """
        Confirm the token pair is accepted by this instance.

        Returns:
            True when the instance answered a lightweight read

        Raises:
            AuthError: If the instance rejected the token pair
            TransportError: For any other failure
        """
        logger.info(f"Verifying credentials for {self.base_url}")
        try:
            self._make_request('GET', '/books', params={'count': 1})
        except AuthError:
            logger.error(f"Invalid API credentials for {self.base_url}")
            raise
        except (NotFoundError, ValidationError, ServerError) as e:
            raise TransportError(f"Failed to verify credentials for {self.base_url}: {e}") from e

        logger.info(f"Successfully verified credentials for {self.base_url}")
        return True

    def download_file(self, url: str) -> bytes:
        """
        Download binary content (e.g. a book cover image).

        Args:
            url: Absolute URL to download

        Returns:
            Raw bytes

        Raises:
            DownloadError: If the download fails for any reason
        """
        self._handle_rate_limit()
        logger.debug(f"Downloading {url}")

        try:
            response = self.session.get(url, verify=self.verify_ssl, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Download failed: {url} - {str(e)}")
            raise DownloadError(f"Failed to download {url}: {str(e)}", url=url) from e

        return response.content

    @classmethod
    def from_config(cls, config: Dict[str, Any], side: str) -> 'BookStackClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'source'/'destination' sections
            side: Which instance to bind the client to

        Returns:
            Configured BookStackClient instance
        """
        advanced_config = config.get('advanced') or {}

        return cls(
            instance=InstanceConfig.from_config(config, side),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF),
            rate_limit=advanced_config.get('rate_limit', cls.DEFAULT_RATE_LIMIT)
        )
