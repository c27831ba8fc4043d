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

import enum
from typing import TYPE_CHECKING, Any

from .data import HTTPResponse, decode_body

if TYPE_CHECKING:
    from .interfaces import ILogger

__all__ = [
    "ClientValueError",
    "ErrorCode",
    "TransportError",
    "VOEClientException",
    "VOEError",
    "classify",
]

DEFAULT_API_ERROR_MESSAGE = "API request failed"
NETWORK_ERROR_MESSAGE = "Network error"


class VOEClientException(Exception):
    """The base exception class for all VOE client exceptions."""


class _WrappedError(VOEClientException):
    """Wrapper for standard exceptions that occur while sending requests or parsing responses."""

    def __init__(self, msg: str, caused_by: Exception | None = None):
        """
        :param msg: The exception message.
        :param caused_by: The original error.
        """
        self.caused_by = caused_by
        full_msg = msg
        if caused_by:
            full_msg = f"{msg}: {str(caused_by)}"
        super(_WrappedError, self).__init__(full_msg)


class TransportError(_WrappedError):
    """Wraps errors raised by the underlying HTTP transport after a request was sent without receiving a response."""


class ClientValueError(_WrappedError, ValueError):
    """Raised when a request cannot be constructed from the provided arguments, or when a response cannot be parsed."""


class ErrorCode(str, enum.Enum):
    """Coarse classification of a `VOEError`."""

    MISSING_API_KEY = "MISSING_API_KEY"
    """The client was constructed without an API key."""

    API_ERROR = "API_ERROR"
    """The service responded with an error status."""

    NETWORK_ERROR = "NETWORK_ERROR"
    """The request was sent, but no response was received."""

    REQUEST_ERROR = "REQUEST_ERROR"
    """The request could not be constructed or sent."""

    def __str__(self) -> str:
        return self.value


class VOEError(VOEClientException):
    """The error raised by every `VOEClient` operation."""

    def __init__(self, message: str, code: ErrorCode, response: HTTPResponse | None = None):
        """
        :param message: Human-readable error message.
        :param code: The error classification.
        :param response: The service response, for `ErrorCode.API_ERROR`.
        """
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.response = response

    @property
    def status(self) -> int | None:
        """The HTTP status code of the attached response, if any."""
        return None if self.response is None else self.response.status

    @property
    def reason(self) -> str | None:
        """The HTTP reason phrase of the attached response, if any."""
        return None if self.response is None else self.response.reason

    @property
    def content(self) -> Any | None:
        """The deserialized body of the attached response, if any.

        Bodies that are not valid JSON are returned as text.
        """
        if self.response is None:
            return None
        return decode_body(self.response)

    def __str__(self) -> str:
        error_message = f"[{self.code}] {self.message}"
        if (status := self.status) is not None:
            error_message += f" ({status}"
            if reason := self.reason:
                error_message += f" {reason}"
            error_message += ")"
        return error_message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, code={self.code.value!r}, status={self.status!r})"


def classify(failure: HTTPResponse | BaseException, logger: ILogger | None = None) -> VOEError:
    """Collapse a failed request into a `VOEError`.

    Rules are evaluated in order:

    1. The service responded with an error status: `ErrorCode.API_ERROR`. The message is the `message` field of the
       response body if there is one, and the response is attached.
    2. The request was sent, but no response was received (`TransportError`): `ErrorCode.NETWORK_ERROR`.
    3. The request could not be constructed or sent: `ErrorCode.REQUEST_ERROR`, with the message of the original
       exception.

    An existing `VOEError` is returned unchanged.

    :param failure: Either the error response, or the exception raised while making the request.
    :param logger: Optional logger to report the failure to, at error level.

    :return: The classified error. The caller is responsible for raising it.
    """
    if isinstance(failure, VOEError):
        return failure

    if isinstance(failure, HTTPResponse):
        content = decode_body(failure)
        message = None
        if isinstance(content, dict):
            message = content.get("message")
        if logger is not None:
            logger.error(f"API Error: {failure.status} {failure.reason or ''}".rstrip() + f" {content!r}")
        return VOEError(str(message) if message else DEFAULT_API_ERROR_MESSAGE, ErrorCode.API_ERROR, failure)

    if isinstance(failure, TransportError):
        if logger is not None:
            logger.error("Network Error: No response received")
        return VOEError(NETWORK_ERROR_MESSAGE, ErrorCode.NETWORK_ERROR)

    message = str(failure) or type(failure).__name__
    if logger is not None:
        logger.error(f"Request Error: {message}")
    return VOEError(message, ErrorCode.REQUEST_ERROR)
