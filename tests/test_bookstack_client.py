"""Tests for the BookStack REST client and its HTTP status mapping."""

import json
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

import requests
from urllib3.exceptions import ConnectTimeoutError, ReadTimeoutError

from bookstack_sync.clients import BookStackClient
from bookstack_sync.config_loader import InstanceConfig
from bookstack_sync.errors import (
    AuthError,
    DownloadError,
    NotFoundError,
    ServerError,
    TransportError,
    ValidationError,
)
from bookstack_sync.models import BookDraft, ChapterDraft, Cover, PageDraft, Tag


def _response(status_code, payload=None, headers=None, reason='', content=None):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.encoding = 'utf-8'
    response.url = 'https://books.example.com/api/test'
    if content is not None:
        response._content = content
    elif payload is not None:
        response._content = json.dumps(payload).encode('utf-8')
    else:
        response._content = b''
    response.headers.update(headers or {})
    return response


class ClientTestCase(unittest.TestCase):
    def setUp(self):
        self.client = BookStackClient(
            InstanceConfig('https://books.example.com/', 'abc', 'secret'),
            timeout=5
        )
        patcher = mock.patch.object(self.client.session, 'request')
        self.request = patcher.start()
        self.addCleanup(patcher.stop)

    def last_call_kwargs(self):
        return self.request.call_args.kwargs


class TestSessionSetup(ClientTestCase):
    def test_token_header(self):
        self.assertEqual(self.client.session.headers['Authorization'], 'Token abc:secret')

    def test_trailing_slash_removed(self):
        self.request.return_value = _response(200, {'id': 1, 'name': 'Guide'})
        self.client.get_book(1)

        self.assertEqual(self.last_call_kwargs()['url'], 'https://books.example.com/api/books/1')
        self.assertEqual(self.last_call_kwargs()['timeout'], 5)

    def test_secret_not_in_repr(self):
        self.assertNotIn('secret', repr(self.client.instance))


class TestStatusMapping(ClientTestCase):
    def assertMaps(self, status, error_class, call):
        self.request.return_value = _response(status, {'error': {'message': 'nope', 'code': status}})
        with self.assertRaises(error_class) as ctx:
            call()
        self.assertEqual(ctx.exception.status_code, status)
        return ctx.exception

    def test_401_is_auth_error(self):
        error = self.assertMaps(401, AuthError, lambda: self.client.get_book(1))
        self.assertEqual(error.kind, 'auth')
        self.assertEqual(error.message, 'nope')

    def test_404_is_not_found(self):
        self.assertMaps(404, NotFoundError, lambda: self.client.get_page(5))

    def test_5xx_is_server_error(self):
        self.assertMaps(500, ServerError, lambda: self.client.get_chapter(5))
        self.assertMaps(503, ServerError, lambda: self.client.create_chapter(ChapterDraft(1, 'x')))

    def test_other_4xx_on_read_is_server_error(self):
        self.assertMaps(403, ServerError, lambda: self.client.get_book(1))

    def test_other_4xx_on_write_is_validation_error(self):
        error = self.assertMaps(422, ValidationError, lambda: self.client.create_page(PageDraft(1, 'x')))
        self.assertEqual(error.method, 'POST')
        self.assertIn('nope', error.response_text)

    def test_401_on_write_is_auth_error(self):
        self.assertMaps(401, AuthError, lambda: self.client.create_book(BookDraft('x')))

    def test_connection_failure_is_transport_error(self):
        self.request.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(TransportError) as ctx:
            self.client.get_book(1)
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)

    def test_timeout_is_transport_error(self):
        self.request.side_effect = requests.Timeout('slow')
        with self.assertRaises(TransportError):
            self.client.create_page(PageDraft(1, 'x'))

    def test_invalid_json_is_server_error(self):
        self.request.return_value = _response(200, content=b'<html>maintenance</html>')
        with self.assertRaises(ServerError):
            self.client.get_book(1)

    @mock.patch('bookstack_sync.clients.bookstack_client.time.sleep')
    def test_429_honours_retry_after(self, sleep):
        self.request.side_effect = [
            _response(429, headers={'Retry-After': '2'}),
            _response(200, {'id': 1, 'name': 'Guide'}),
        ]
        book = self.client.get_book(1)

        self.assertEqual(book.name, 'Guide')
        sleep.assert_called_once_with(2)

    @mock.patch('bookstack_sync.clients.bookstack_client.time.sleep')
    def test_429_gives_up_after_limit(self, sleep):
        self.request.return_value = _response(429, headers={'Retry-After': '0'})
        with self.assertRaises(ValidationError):
            self.client.create_page(PageDraft(1, 'x'))
        self.assertEqual(self.request.call_count, BookStackClient.MAX_RATE_LIMIT_RETRIES + 1)


class TestReads(ClientTestCase):
    def test_get_book_contents(self):
        self.request.return_value = _response(200, {
            'id': 1,
            'name': 'Guide',
            'contents': [
                {'id': 10, 'type': 'chapter', 'name': 'Intro', 'pages': [{'id': 101}]},
                {'id': 20, 'type': 'page', 'name': 'FAQ'},
            ],
        })
        book = self.client.get_book(1)

        self.assertEqual([c.id for c in book.contents], [10, 20])
        self.assertEqual(book.contents[0].pages[0].id, 101)

    def test_list_books_paginates(self):
        first = [{'id': i, 'name': f'Book {i}'} for i in range(100)]
        second = [{'id': i, 'name': f'Book {i}'} for i in range(100, 150)]
        self.request.side_effect = [
            _response(200, {'data': first, 'total': 150}),
            _response(200, {'data': second, 'total': 150}),
        ]
        books = self.client.list_books()

        self.assertEqual(len(books), 150)
        offsets = [c.kwargs['params']['offset'] for c in self.request.call_args_list]
        self.assertEqual(offsets, [0, 100])

    def test_list_books_with_count(self):
        self.request.return_value = _response(200, {'data': [{'id': 1, 'name': 'Guide'}], 'total': 9})
        books = self.client.list_books(count=1)

        self.assertEqual(len(books), 1)
        self.assertEqual(self.last_call_kwargs()['params'], {'count': 1})

    def test_list_chapters_filters_by_book(self):
        self.request.return_value = _response(200, {'data': [{'id': 10, 'book_id': 1, 'name': 'Intro'}], 'total': 1})
        chapters = self.client.list_chapters(book_id=1)

        self.assertEqual(chapters[0].id, 10)
        self.assertEqual(self.last_call_kwargs()['params']['filter[book_id]'], 1)

    def test_list_pages_filters_by_book(self):
        self.request.return_value = _response(200, {'data': [{'id': 20, 'book_id': 1, 'name': 'FAQ'}], 'total': 1})
        pages = self.client.list_pages(book_id=1)

        self.assertEqual(pages[0].name, 'FAQ')
        self.assertTrue(self.last_call_kwargs()['url'].endswith('/api/pages'))


class TestWrites(ClientTestCase):
    def test_book_without_cover_is_json(self):
        self.request.return_value = _response(200, {'id': 70, 'name': 'Guide'})
        book = self.client.create_book(BookDraft('Guide', tags=[Tag('team', 'docs')]))

        kwargs = self.last_call_kwargs()
        self.assertEqual(book.id, 70)
        self.assertEqual(kwargs['method'], 'POST')
        self.assertEqual(kwargs['json']['name'], 'Guide')
        self.assertIsNone(kwargs['files'])
        self.assertEqual(kwargs['headers'], {'Content-Type': 'application/json'})

    def test_book_with_cover_is_multipart(self):
        self.request.return_value = _response(200, {'id': 70, 'name': 'Guide'})
        draft = BookDraft(
            'Guide',
            tags=[Tag('team', 'docs')],
            cover=Cover(name='cover.png'),
            image_data=b'\x89PNG'
        )
        self.client.create_book(draft)

        kwargs = self.last_call_kwargs()
        self.assertIsNone(kwargs['json'])
        self.assertIsNone(kwargs['headers'])
        self.assertEqual(kwargs['files']['image'], ('cover.png', b'\x89PNG', 'image/png'))
        self.assertEqual(kwargs['data']['name'], 'Guide')
        self.assertEqual(kwargs['data']['tags[0][name]'], 'team')

    def test_create_page_in_chapter(self):
        self.request.return_value = _response(200, {'id': 500, 'book_id': 70, 'chapter_id': 71, 'name': 'Welcome'})
        page = self.client.create_page(PageDraft(70, 'Welcome', chapter_id=71, html='<p>Hi</p>'))

        self.assertEqual(page.chapter_id, 71)
        self.assertEqual(self.last_call_kwargs()['json']['chapter_id'], 71)
        self.assertTrue(self.last_call_kwargs()['url'].endswith('/api/pages'))

    def test_create_without_id_is_server_error(self):
        self.request.return_value = _response(200)
        with self.assertRaises(ServerError) as ctx:
            self.client.create_book(BookDraft('Guide'))

        self.assertEqual(ctx.exception.method, 'POST')
        self.assertTrue(ctx.exception.url.endswith('/api/books'))

    def test_create_page_response_missing_id(self):
        for payload in ({}, {'name': 'Welcome'}, {'id': None, 'name': 'Welcome'}):
            self.request.return_value = _response(200, payload)
            with self.assertRaises(ServerError):
                self.client.create_page(PageDraft(70, 'Welcome'))

    def test_create_chapter_response_missing_id(self):
        self.request.return_value = _response(200, {'book_id': 70, 'name': 'Intro'})
        with self.assertRaises(ServerError):
            self.client.create_chapter(ChapterDraft(70, 'Intro'))


class TestRetryPolicy(ClientTestCase):
    def setUp(self):
        super().setUp()
        self.retry = self.client.session.get_adapter('https://books.example.com').max_retries

    def test_policy_settings(self):
        self.assertEqual(self.retry.total, 3)
        self.assertEqual(self.retry.allowed_methods, frozenset({'GET'}))
        for status in (502, 503, 504):
            self.assertIn(status, self.retry.status_forcelist)

    def test_gateway_errors_retried_for_reads_only(self):
        self.assertTrue(self.retry.is_retry('GET', 503))
        self.assertFalse(self.retry.is_retry('POST', 503))
        self.assertFalse(self.retry.is_retry('GET', 404))

    def test_post_not_resent_after_read_timeout(self):
        error = ReadTimeoutError(None, '/api/pages', 'timed out')
        with self.assertRaises(ReadTimeoutError):
            self.retry.increment(method='POST', url='/api/pages', error=error)

    def test_get_resent_after_read_timeout(self):
        error = ReadTimeoutError(None, '/api/pages/1', 'timed out')
        retry = self.retry.increment(method='GET', url='/api/pages/1', error=error)
        self.assertEqual(retry.total, 2)

    def test_post_resent_when_connection_never_opened(self):
        retry = self.retry.increment(method='POST', url='/api/pages', error=ConnectTimeoutError('timed out'))
        self.assertEqual(retry.total, 2)


class TestRateLimit(unittest.TestCase):
    @mock.patch('bookstack_sync.clients.bookstack_client.time.sleep')
    @mock.patch('bookstack_sync.clients.bookstack_client.time.time', return_value=100.0)
    def test_spacing_holds_across_threads(self, _time, sleep):
        client = BookStackClient(
            InstanceConfig('https://books.example.com', 'abc', 'secret'),
            rate_limit=0.5
        )
        with ThreadPoolExecutor(max_workers=4) as executor:
            for future in [executor.submit(client._handle_rate_limit) for _ in range(4)]:
                future.result()

        # The first request goes straight through, the other three wait their turn
        self.assertEqual(sleep.call_count, 3)
        sleep.assert_called_with(0.5)

    @mock.patch('bookstack_sync.clients.bookstack_client.time.sleep')
    def test_disabled_by_default(self, sleep):
        client = BookStackClient(InstanceConfig('https://books.example.com', 'abc', 'secret'))
        client._handle_rate_limit()
        client._handle_rate_limit()

        sleep.assert_not_called()


class TestVerifyCredentials(ClientTestCase):
    def test_success(self):
        self.request.return_value = _response(200, {'data': [], 'total': 0})

        self.assertTrue(self.client.verify_credentials())
        self.assertEqual(self.last_call_kwargs()['params'], {'count': 1})

    def test_rejected_token(self):
        self.request.return_value = _response(401, {'error': {'message': 'bad token'}})
        with self.assertRaises(AuthError):
            self.client.verify_credentials()

    def test_other_failures_are_transport_errors(self):
        for status in (403, 404, 500):
            self.request.return_value = _response(status)
            with self.assertRaises(TransportError):
                self.client.verify_credentials()

    def test_unreachable(self):
        self.request.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(TransportError):
            self.client.verify_credentials()


class TestDownloadFile(ClientTestCase):
    def test_returns_bytes(self):
        with mock.patch.object(self.client.session, 'get', return_value=_response(200, content=b'img')) as get:
            data = self.client.download_file('https://books.example.com/cover.png')

        self.assertEqual(data, b'img')
        get.assert_called_once()

    def test_http_error(self):
        with mock.patch.object(self.client.session, 'get', return_value=_response(404, reason='Not Found')):
            with self.assertRaises(DownloadError) as ctx:
                self.client.download_file('https://books.example.com/missing.png')

        self.assertEqual(ctx.exception.kind, 'download')
        self.assertEqual(ctx.exception.url, 'https://books.example.com/missing.png')

    def test_connection_error(self):
        with mock.patch.object(self.client.session, 'get', side_effect=requests.ConnectionError('refused')):
            with self.assertRaises(DownloadError):
                self.client.download_file('https://books.example.com/cover.png')


class TestFromConfig(unittest.TestCase):
    def test_builds_side_specific_client(self):
        config = {
            'source': {'base_url': 'https://a.example.com', 'token_id': 'a', 'token_secret': 'sa'},
            'destination': {'base_url': 'https://b.example.com/', 'token_id': 'b', 'token_secret': 'sb'},
            'advanced': {'request_timeout': 12, 'verify_ssl': False},
        }
        client = BookStackClient.from_config(config, 'destination')

        self.assertEqual(client.base_url, 'https://b.example.com')
        self.assertEqual(client.timeout, 12)
        self.assertFalse(client.verify_ssl)
        self.assertEqual(client.session.headers['Authorization'], 'Token b:sb')

    def test_rejects_unknown_side(self):
        with self.assertRaises(ValueError):
            BookStackClient.from_config({}, 'mirror')


if __name__ == '__main__':
    unittest.main()
