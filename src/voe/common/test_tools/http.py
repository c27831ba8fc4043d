#  Copyright © 2025 Bentley Systems, Incorporated
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#      http://www.apache.org/licenses/LICENSE-2.0
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.

import json
import unittest
from collections.abc import Mapping
from typing import Any
from unittest import mock
from urllib.parse import urlencode, urljoin, urlsplit

from ..connector import APIConnector, RequestTimeout
from ..data import HTTPHeaderDict, HTTPResponse, RequestMethod
from ..interfaces import ILogger, ITransport
from .consts import API_KEY, BASE_URL


class TestHTTPHeaderDict(HTTPHeaderDict):
    """A subclass of HTTPHeaderDict that does not hide sensitive headers when printed.

    Actual and expected headers are easier to compare visually in failing assertions.
    """

    __test__ = False  # Prevent unittest from discovering this class as a test case.

    def __repr__(self) -> str:
        repr_data = {key.title(): value for key, value in self.items()}
        return f"{self.__class__.__name__}({repr_data!r})"


class MockResponse(mock.Mock):
    """Fake HTTPResponse object to be returned by a mocked ITransport"""

    def __init__(
        self,
        status_code: int,
        reason: str | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        content: str = "",
    ):
        """
        :param status_code: HTTP status code.
        :param reason: Response reason.
        :param headers: Response headers.
        :param body: Response body, as bytes. Body takes precedence over content.
        :param content: Response body, as a string. Content will be encoded using utf-8.
        """
        super().__init__(spec=HTTPResponse)
        self.status = status_code
        self.reason = reason
        self.headers = TestHTTPHeaderDict(headers)
        self.data = body if body is not None else content.encode("utf-8")
        self.getheader = mock.Mock(side_effect=self.headers.get)
        self.getheaders = mock.Mock(return_value=self.headers.copy())
        # Decode with the real implementation, so that charset handling is exercised.
        self.text = mock.Mock(side_effect=lambda: HTTPResponse.text(self))
        self.json = mock.Mock(side_effect=lambda: HTTPResponse.json(self))

    def _get_child_mock(self, /, **kwargs: Any) -> mock.Mock:
        return mock.Mock(**kwargs)

    @classmethod
    def json_response(cls, status_code: int, content: Any, reason: str | None = None) -> "MockResponse":
        """Create a response with a JSON body.

        :param status_code: HTTP status code.
        :param content: The data to serialize as the response body.
        :param reason: Response reason.
        """
        return cls(
            status_code=status_code,
            reason=reason,
            headers={"Content-Type": "application/json; charset=utf-8"},
            content=json.dumps(content),
        )


class TestTransport(mock.AsyncMock):
    """Fake ITransport object to be used in tests.

    Every request is answered with a 503 response, unless `request.return_value` or `request.side_effect` is replaced.
    """

    __test__ = False

    open: mock.AsyncMock
    close: mock.AsyncMock
    request: mock.AsyncMock

    def __init__(self, *, base_url: str = BASE_URL) -> None:
        super().__init__(spec=ITransport)
        self._base_url = base_url
        self.request.return_value = MockResponse(status_code=503)

    def _resolve(self, path: str) -> str:
        if urlsplit(path).scheme:
            return path
        return urljoin(self._base_url, path.lstrip("/"))

    def assert_request_made(
        self,
        method: RequestMethod,
        path: str = "",
        headers: Mapping[str, str] | None = None,
        post_params: list[tuple[str, object]] | None = None,
        request_timeout: RequestTimeout = None,
    ) -> None:
        """Assert that the last call to ITransport.request() used the specified arguments.

        :param method: HTTP request method.
        :param path: The API path, relative to the base_url, or an absolute URL.
        :param headers: Http request headers.
        :param post_params: Request form fields, for `multipart/form-data`.
        :param request_timeout: Timeout setting for this request.
        """
        self.request.assert_called_with(
            method=method,
            url=self._resolve(path),
            headers=TestHTTPHeaderDict(headers or {}),
            post_params=post_params,
            request_timeout=request_timeout,
        )

    def assert_n_requests_made(self, n: int) -> None:
        """Assert that there were a certain number of calls to ITransport.request().

        :param n: Number of expected calls.
        """
        assert self.request.await_count == n, f"Expected {n} requests, got {self.request.await_count}"

    def assert_no_requests(self) -> None:
        """Assert that ITransport.request() has not been called."""
        self.request.assert_not_called()


class TestLogger(mock.Mock):
    """Fake ILogger object that records every message."""

    __test__ = False

    info: mock.Mock
    warning: mock.Mock
    error: mock.Mock

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(spec=ILogger, **kwargs)

    def _get_child_mock(self, /, **kwargs: Any) -> mock.Mock:
        # Child mocks would otherwise be created by calling this class.
        return mock.Mock(**kwargs)

    def messages(self, level: str) -> list[str]:
        """Get the messages emitted at a level.

        :param level: One of 'info', 'warning', or 'error'.

        :return: The messages, in the order they were emitted.
        """
        return [call.args[0] for call in getattr(self, level).call_args_list]


class TestWithConnector(unittest.IsolatedAsyncioTestCase):
    """Base unittest class for testing API calls"""

    def setUp(self) -> None:
        self.transport = TestTransport()
        self.logger = TestLogger()
        self.connector = APIConnector(BASE_URL, self.transport, API_KEY, logger=self.logger)

    @staticmethod
    def api_path(path: str, query_params: Mapping[str, Any] | None = None) -> str:
        """Build the expected request path for a JSON endpoint, including the API key.

        :param path: The API path, relative to the base_url.
        :param query_params: The expected query parameters, in order, excluding the API key.

        :return: The path with the encoded query string.
        """
        query = [("key", API_KEY), *(query_params or {}).items()]
        return f"{path.lstrip('/')}?{urlencode(query)}"

    def assert_request_made(
        self,
        method: RequestMethod,
        path: str = "",
        query_params: Mapping[str, Any] | None = None,
        request_timeout: RequestTimeout = None,
    ) -> None:
        """Assert that the last call to ITransport.request() was a JSON endpoint request with the specified arguments.

        :param method: HTTP request method.
        :param path: The API path, relative to the base_url.
        :param query_params: The expected query parameters, in order, excluding the API key.
        :param request_timeout: Timeout setting for this request.
        """
        self.transport.assert_request_made(
            method=method,
            path=self.api_path(path, query_params),
            headers={"Accept": "application/json"},
            post_params=None,
            request_timeout=request_timeout,
        )
