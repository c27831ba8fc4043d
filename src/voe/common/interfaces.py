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

from __future__ import annotations

from types import TracebackType

from pure_interface import Interface

from .data import HTTPHeaderDict, HTTPResponse, RequestMethod

__all__ = [
    "ILogger",
    "ITransport",
]


class ITransport(Interface):
    """Interface for HTTP Transport.

    ITransport is responsible for sending HTTP requests and receiving responses. The open and close methods are
    used to manage the connection state. The request method is used to send an HTTP request and receive a response.

    An internal counter should be incremented when open is called and decremented when close is called. The transport
    should only release resources when the counter reaches zero.
    """

    async def open(self) -> None:
        """Open the HTTP transport.

        This method should be called before sending any requests. ITransport implementations should be reentrant,
        meaning that calling open multiple times should not have any side effects. Resources that are consumed by the
        transport should be retained until the close method is called the same number of times as open.
        """
        ...  # pragma: no cover

    async def close(self) -> None:
        """Close the transport.

        Resources should be retained as long as there is an open call that has not been matched by a close call.
        """
        ...  # pragma: no cover

    async def __aenter__(self) -> ITransport:
        """ITransport should be an asynchronous context manager that opens the transport when entered, and closes it when
        exited.
        """
        ...

    async def __aexit__(
        self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: TracebackType | None
    ) -> None:
        """ITransport should be an asynchronous context manager that opens the transport when entered, and closes it when
        exited.
        """
        ...

    async def request(
        self,
        method: RequestMethod,
        url: str,
        headers: HTTPHeaderDict | None = None,
        post_params: list[tuple[str, object]] | None = None,
        request_timeout: int | float | tuple[int | float, int | float] | None = None,
    ) -> HTTPResponse:
        """Send an asynchronous request.

        ITransport implementations *MUST NOT* automatically follow redirects, and *MUST NOT* retry failed requests.
        Responses with an error status are returned, not raised.

        :param method: HTTP request method.
        :param url: HTTP request url.
        :param headers: Http request headers.
        :param post_params: Form fields, sent as `multipart/form-data`. The `Content-Type` header must be
            `multipart/form-data` when they are provided. `FilePart` values are sent as file fields.
        :param request_timeout: Timeout setting for this request. If one number provided, it will be total request
            timeout. It can also be a pair (tuple) of (connection, read) timeouts.

        :return: The HTTP response object.

        :raise ClientValueError: If the request cannot be constructed, e.g., the URL is invalid.
        :raise TransportError: If the request was sent, but no response was received.
        """
        ...  # pragma: no cover


class ILogger(Interface):
    """The logging capability used to report requests, responses, and failures.

    Any `logging.Logger` satisfies this interface.
    """

    def info(self, msg: str, *args: object) -> None:
        """Emit an informational message."""
        ...  # pragma: no cover

    def warning(self, msg: str, *args: object) -> None:
        """Emit a warning."""
        ...  # pragma: no cover

    def error(self, msg: str, *args: object) -> None:
        """Emit an error."""
        ...  # pragma: no cover
