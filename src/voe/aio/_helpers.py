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

import asyncio
from dataclasses import dataclass
from typing import Any

import aiohttp
from aiohttp.typedefs import StrOrURL

from voe.common import FilePart, HTTPHeaderDict, HTTPResponse
from voe.common.connector import RequestTimeout
from voe.common.exceptions import ClientValueError

__all__ = ["Session", "SessionOptions", "client_timeout", "multipart_body"]


@dataclass(frozen=True, kw_only=True)
class SessionOptions:
    num_pools: int
    """Maximum number of simultaneous connections."""

    verify_ssl: bool
    """Verify SSL certificates."""

    proxy: StrOrURL | None
    """Proxy server to use for every request."""

    close_grace_period_ms: int
    """Grace period (in milliseconds) to wait for connections to close gracefully."""

    def open_session(self) -> Session:
        return Session(self)


def client_timeout(request_timeout: RequestTimeout) -> aiohttp.ClientTimeout | None:
    """Translate a request timeout into aiohttp's timeout settings.

    A single number is the total timeout. A pair is the (connect, read) socket timeouts.
    """
    match request_timeout:
        case int() | float():
            return aiohttp.ClientTimeout(total=request_timeout)
        case (sock_connect, sock_read):
            return aiohttp.ClientTimeout(sock_connect=sock_connect, sock_read=sock_read)
        case _:
            return None


def multipart_body(fields: list[tuple[str, Any]]) -> aiohttp.FormData:
    """Build a multipart body. `FilePart` values become file fields."""
    data = aiohttp.FormData(quote_fields=False)
    for name, value in fields:
        if isinstance(value, FilePart):
            data.add_field(name, value.data, filename=value.filename, content_type=value.content_type)
        else:
            data.add_field(name, value)
    return data


class Session:
    """An open aiohttp session, shared by every request until the transport is closed."""

    def __init__(self, options: SessionOptions) -> None:
        connector = aiohttp.TCPConnector(ssl=None if options.verify_ssl else False, limit=options.num_pools)
        self.__session: aiohttp.ClientSession | None = aiohttp.ClientSession(
            connector=connector, skip_auto_headers=["Accept", "Accept-Encoding"]
        )
        self.__options = options

    async def close(self) -> None:
        session, self.__session = self.__session, None
        if session is None:
            return
        await session.close()

        # Wait for the underlying SSL connections to close
        # https://docs.aiohttp.org/en/stable/client_advanced.html#graceful-shutdown
        await asyncio.sleep(self.__options.close_grace_period_ms / 1000)

    async def send(
        self,
        method: str,
        url: str,
        headers: HTTPHeaderDict,
        data: aiohttp.FormData | None,
        timeout: aiohttp.ClientTimeout | None,
    ) -> HTTPResponse:
        """Send one request and read the whole response. Redirects are returned, not followed.

        :param method: HTTP method.
        :param url: Request URL.
        :param headers: Request headers.
        :param data: The multipart body, if any.
        :param timeout: Request timeout.

        :return: The server response.
        """
        if self.__session is None:
            raise ClientValueError("Cannot make a request after the transport has been closed.")

        async with self.__session.request(
            allow_redirects=False,
            method=method,
            url=url,
            headers=headers,
            data=data,
            timeout=timeout,
            proxy=self.__options.proxy,
        ) as resp:
            return HTTPResponse(
                status=resp.status,
                reason=resp.reason,
                headers=HTTPHeaderDict(resp.headers),
                data=await resp.read(),
            )
