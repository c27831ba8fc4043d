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
from collections.abc import Mapping
from inspect import isclass
from types import TracebackType
from typing import Any, TypeVar
from urllib.parse import urlencode, urlsplit

from pydantic import BaseModel, ValidationError

from voe import logging

from .data import HTTPHeaderDict, HTTPResponse, RequestMethod, decode_body
from .exceptions import ClientValueError, ErrorCode, VOEError, classify
from .interfaces import ILogger, ITransport

logger = logging.getLogger("connector")

__all__ = [
    "APIConnector",
    "decode_response",
    "require_api_key",
    "send_request",
]

T = TypeVar("T")

RequestTimeout = int | float | tuple[int | float, int | float] | None


def require_api_key(api_key: str | None) -> str:
    """Check that an API key was provided.

    :param api_key: The API key.

    :return: The API key, unchanged.

    :raise VOEError: With `ErrorCode.MISSING_API_KEY` if the API key is missing or blank.
    """
    if not isinstance(api_key, str) or not api_key.strip():
        raise VOEError("API key is required", ErrorCode.MISSING_API_KEY)
    return api_key


def _is_success(response: HTTPResponse) -> bool:
    return 200 <= response.status <= 299


def _display_path(url: str) -> str:
    """The part of a URL that is written to the request log. Query parameters are left out, as they carry the key."""
    parts = urlsplit(url)
    if parts.netloc:
        return f"{parts.scheme}://{parts.netloc}{parts.path}"
    return parts.path


async def send_request(
    transport: ITransport,
    log: ILogger,
    method: RequestMethod,
    url: str,
    headers: Mapping[str, str] | None = None,
    post_params: list[tuple[str, object]] | None = None,
    request_timeout: RequestTimeout = None,
    display_path: str | None = None,
) -> HTTPResponse:
    """Send a request, logging the request and the response, and classifying any failure.

    The transport must already be open.

    :param transport: The transport to send the request with.
    :param log: The logger to report the request, the response, and any failure to.
    :param method: HTTP request method.
    :param url: The complete request URL.
    :param headers: Request headers.
    :param post_params: Request form fields.
    :param request_timeout: Timeout setting for this request, passed to the transport untouched.
    :param display_path: The path to write to the request log. Defaults to the URL without its query string.

    :return: The successful response.

    :raise VOEError: If the service responds with an error status, or the request fails.
    """
    log.info(f"Request: {method} {display_path or _display_path(url)}")
    try:
        response = await transport.request(
            method=method,
            url=url,
            headers=HTTPHeaderDict(headers or {}),
            post_params=post_params,
            request_timeout=request_timeout,
        )
    except Exception as e:
        raise classify(e, log) from e

    log.info(f"Response: {response.status} {response.reason or ''}".rstrip())
    if not _is_success(response):
        raise classify(response, log)
    return response


def decode_response(response: HTTPResponse, response_type: type[T] | None = None) -> T | Any:
    """Decode the body of a successful response.

    :param response: The response to decode.
    :param response_type: A pydantic model to validate the decoded data against, or None to return the decoded data
        as-is.

    :return: The decoded JSON data, the body text if the body is not JSON, or the body bytes if the body cannot be
        decoded. None if the body is empty.

    :raise ClientValueError: If the decoded data does not match `response_type`.
    """
    response_data = decode_body(response) if response.data else None

    if response_type is None:
        return response_data
    elif isclass(response_type) and issubclass(response_type, BaseModel):
        try:
            return response_type.model_validate(response_data)
        except ValidationError as e:
            raise ClientValueError(msg="Could not deserialize result", caused_by=e)
    else:
        raise ClientValueError(msg=f"Unsupported response type '{response_type}'")


class APIConnector:
    """The shared request pipeline for the JSON endpoints of the VOE API.

    Every request is sent to the configured base URL with the API key attached as the `key` query parameter. Requests
    and responses are logged, and failures are raised as `VOEError`.
    """

    def __init__(
        self,
        base_url: str,
        transport: ITransport,
        api_key: str,
        logger: ILogger | None = None,
        request_timeout: RequestTimeout = None,
    ) -> None:
        """
        :param base_url: The host URL of the API.
        :param transport: The transport to use for sending requests.
        :param api_key: The API key to attach to every request.
        :param logger: The logger for request and response messages. Defaults to the `voe.connector` logger.
        :param request_timeout: Timeout setting for every request, passed to the transport untouched.

        :raise VOEError: With `ErrorCode.MISSING_API_KEY` if the API key is empty.
        """
        self.__api_key = require_api_key(api_key)
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._logger = logger if logger is not None else logging.getLogger("connector")
        self._request_timeout = request_timeout

    @property
    def base_url(self) -> str:
        """The base_url of the connected API."""
        return self._base_url + "/"

    @property
    def transport(self) -> ITransport:
        """The transport used to send requests."""
        return self._transport

    @property
    def logger(self) -> ILogger:
        """The logger that requests, responses, and failures are reported to."""
        return self._logger

    @property
    def request_timeout(self) -> RequestTimeout:
        """The timeout setting used for every request."""
        return self._request_timeout

    async def open(self) -> None:
        """Open the HTTP transport."""
        await self._transport.open()

    async def close(self) -> None:
        """Close the HTTP transport."""
        await self._transport.close()

    async def __aenter__(self) -> APIConnector:
        await self.open()
        return self

    async def __aexit__(
        self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: TracebackType | None
    ) -> None:
        await self.close()

    async def call_api(
        self,
        method: RequestMethod,
        resource_path: str,
        query_params: Mapping[str, Any] | None = None,
        response_type: type[T] | None = None,
    ) -> T | Any:
        """Call the API with the given parameters and decode the response.

        :param method: HTTP request method.
        :param resource_path: Path to the API endpoint, relative to the base URL.
        :param query_params: Query parameters to embed in the url. Parameters with a value of None are omitted.
        :param response_type: A pydantic model to validate the response data against, or None to return the decoded
            JSON data as-is.

        :return: The decoded response.

        :raise VOEError: If the service responds with an error status, or the request fails.
        :raise ClientValueError: If the response does not match `response_type`.
        """
        resource_url = self._encode_url_parameters(resource_path, query_params)
        logger.debug(f"Making {method} request to {self._base_url}/{resource_path.lstrip('/')}")

        # Always use the connector in a context manager to ensure the transport is opened and closed correctly.
        async with self:
            response = await send_request(
                self._transport,
                self._logger,
                method,
                resource_url,
                headers={"Accept": "application/json"},
                request_timeout=self._request_timeout,
                display_path="/" + resource_path.lstrip("/"),
            )
        return decode_response(response, response_type)

    def _encode_url_parameters(self, resource_path: str, query_params: Mapping[str, Any] | None = None) -> str:
        """Encode the API key and the query parameters at the end of the resource URL.

        :param resource_path: The resource path.
        :param query_params: Query parameters that are to be encoded at the end of the URL.

        :return: A URL with the API key and all query parameters encoded.
        """
        resource_url = self._base_url + "/" + resource_path.lstrip("/")
        params = [("key", self.__api_key)]
        params.extend(self._parameters_to_tuples(query_params or {}))
        return resource_url + "?" + urlencode(params)

    @classmethod
    def _parameters_to_tuples(cls, params: Mapping[str, Any]) -> list[tuple[str, str]]:
        """Get parameters as a list of tuples, dropping parameters with no value.

        :param params: Parameters as a dict.

        :return: Parameters as a list of tuples, with values converted to strings.
        """
        new_params = []
        for key, value in params.items():
            if value is None:
                continue
            new_params.append((str(key), cls._sanitize_for_query(value)))
        return new_params

    @classmethod
    def _sanitize_for_query(cls, value: Any) -> str:
        if isinstance(value, enum.Enum):
            return cls._sanitize_for_query(value.value)
        elif isinstance(value, bool):
            return "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            return ",".join(cls._sanitize_for_query(item) for item in value)
        else:
            return str(value)
