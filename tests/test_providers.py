import unittest
from unittest.mock import patch

import httpx

from studybridge.errors import ProviderShapeFailure, ProviderTransportFailure
from studybridge.providers import ProviderName, create_provider, list_providers
from studybridge.providers.base import Failure, Success
from studybridge.providers.big_book import BigBookProvider
from studybridge.providers.google_books import GoogleBooksProvider
from studybridge.providers.open_library import OpenLibraryProvider


class FakeClient:
    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def get(self, url, params=None, headers=None):
        self.calls.append((url, params))
        return self.handler(url, params)


class TestProviders(unittest.IsolatedAsyncioTestCase):
    async def test_timeout_sets_timed_out(self):
        provider = OpenLibraryProvider(endpoint="https://example.com")

        def handler(url, params):
            raise httpx.TimeoutException("timeout")

        with patch("studybridge.providers.base.httpx.AsyncClient", return_value=FakeClient(handler)):
            outcome = await provider.fetch("test query", limit=5, timeout=1)

        self.assertIsInstance(outcome, Failure)
        self.assertIsInstance(outcome.cause, ProviderTransportFailure)
        self.assertTrue(outcome.cause.timed_out)

    async def test_http_error_hides_api_key(self):
        provider = BigBookProvider(api_key="secret-key", endpoint="https://example.com/search-books")

        def handler(url, params):
            request = httpx.Request("GET", url, params=params)
            return httpx.Response(401, request=request, text="unauthorized")

        with patch("studybridge.providers.base.httpx.AsyncClient", return_value=FakeClient(handler)):
            outcome = await provider.fetch("test query", limit=5, timeout=1)

        self.assertIsInstance(outcome, Failure)
        self.assertEqual(outcome.cause.status_code, 401)
        self.assertNotIn("secret-key", str(outcome.cause))

    async def test_invalid_json_is_shape_failure(self):
        provider = GoogleBooksProvider(endpoint="https://example.com")

        def handler(url, params):
            return httpx.Response(200, request=httpx.Request("GET", url), text="<html>oops</html>")

        with patch("studybridge.providers.base.httpx.AsyncClient", return_value=FakeClient(handler)):
            outcome = await provider.fetch("test query", limit=5, timeout=1)

        self.assertIsInstance(outcome, Failure)
        self.assertIsInstance(outcome.cause, ProviderShapeFailure)

    async def test_connection_error_is_transport_failure(self):
        provider = OpenLibraryProvider(endpoint="https://example.com")

        def handler(url, params):
            raise httpx.ConnectError("connection refused")

        with patch("studybridge.providers.base.httpx.AsyncClient", return_value=FakeClient(handler)):
            outcome = await provider.fetch("test query", limit=5, timeout=1)

        self.assertIsInstance(outcome, Failure)
        self.assertIn("ConnectError", str(outcome.cause))
        self.assertIsNone(outcome.cause.status_code)

    async def test_success_keeps_payload_and_headers(self):
        provider = BigBookProvider(api_key="key", endpoint="https://example.com/search-books")

        def handler(url, params):
            return httpx.Response(
                200,
                request=httpx.Request("GET", url),
                json={"books": []},
                headers={"x-api-quota-left": "12"},
            )

        fake = FakeClient(handler)
        with patch("studybridge.providers.base.httpx.AsyncClient", return_value=fake):
            outcome = await provider.fetch("clean code", limit=10, timeout=1)

        self.assertIsInstance(outcome, Success)
        self.assertEqual(outcome.payload, {"books": []})
        self.assertEqual(outcome.headers["x-api-quota-left"], "12")
        self.assertEqual(fake.calls[0][1], {"query": "clean code", "api-key": "key", "number": 10})


class TestProviderParams(unittest.TestCase):
    def test_open_library_params(self):
        params = OpenLibraryProvider().build_params("clean code", 10)
        self.assertEqual(params["q"], "clean code")
        self.assertEqual(params["limit"], 10)
        self.assertEqual(params["fields"], "key,title,author_name,cover_i,first_publish_year,subject")

    def test_google_books_caps_max_results(self):
        self.assertEqual(GoogleBooksProvider().build_params("x", 10)["maxResults"], 10)
        self.assertEqual(GoogleBooksProvider().build_params("x", 100)["maxResults"], 40)

    def test_big_book_needs_key(self):
        self.assertFalse(BigBookProvider(api_key="").is_available())
        self.assertTrue(BigBookProvider(api_key="key").is_available())
        self.assertTrue(OpenLibraryProvider().is_available())

    def test_registry_lists_all_providers(self):
        self.assertEqual(
            set(list_providers()),
            {ProviderName.OPEN_LIBRARY, ProviderName.GOOGLE_BOOKS, ProviderName.BIG_BOOK_API},
        )
        provider = create_provider("open_library")
        self.assertIsInstance(provider, OpenLibraryProvider)

    def test_registry_rejects_unknown_name(self):
        with self.assertRaises(KeyError):
            create_provider("brave")


if __name__ == "__main__":
    unittest.main()
