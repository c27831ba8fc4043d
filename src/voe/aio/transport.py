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

try:
    from aiohttp.client_exceptions import ClientError, InvalidURL
    from aiohttp.typedefs import StrOrURL
except ImportError:
    raise ImportError("AioTransport cannot be used because the aiohttp library is not installed.")
import asyncio
from types import TracebackType

from voe.common import HTTPHeaderDict, HTTPResponse, RequestMethod
from voe.common.connector import RequestTimeout
from voe.common.exceptions import ClientValueError, TransportError
from voe.common.interfaces import ITransport
from voe.logging import getLogger

from ._helpers import Session, SessionOptions, client_timeout, multipart_body

__all__ = ["AioTransport"]

logger = getLogger("aio.transport")

MULTIPART_FORM_DATA = "multipart/form-data"


class AioTransport(ITransport):
    """An aiohttp transport that shares one session between every open handle.

    The session is created by the first `open()` and closed by the matching last `close()`. Requests are sent once,
    and redirects are never followed. See `voe.common.interfaces.ITransport` for more detail.
    """

    def __init__(
        self,
        user_agent: str,
        num_pools: int = 4,
        verify_ssl: bool = True,
        proxy: StrOrURL | None = None,
        close_grace_period_ms: int = 250,
    ):
        """
        :param user_agent: The value to provide in the `User-Agent` header.
        :param num_pools: Maximum number of simultaneous connections.
        :param verify_ssl: Verify SSL certificates. This should never be disabled in production environments.
        :param proxy: Proxy server to use for requests.
        :param close_grace_period_ms: Grace period (in milliseconds) to wait for connections to close.
        """
        self.__user_agent = user_agent
        self.__options = SessionOptions(
            num_pools=num_pools,
            verify_ssl=verify_ssl,
            proxy=proxy,
            close_grace_period_ms=close_grace_period_ms,
        )
        self.__session: Session | None = None
        self.__lock = asyncio.Lock()
        self.__handles = 0

    @property
    def user_agent(self) -> str:
        return self.__user_agent

    async def open(self) -> None:
        async with self.__lock:
            if self.__session is None:
                logger.debug("Opening aiohttp session.")
                self.__session = self.__options.open_session()
            self.__handles += 1
            logger.debug(f"Transport opened ({self.__handles} open).")

    async def close(self) -> None:
        async with self.__lock:
            assert self.__handles > 0, "Transport closed more times than it was opened."
            self.__handles -= 1
            logger.debug(f"Transport closed ({self.__handles} open).")
            if self.__handles == 0 and self.__session is not None:
                logger.debug("Closing aiohttp session.")
                session, self.__session = self.__session, None
                await session.close()

    async def __aenter__(self) -> AioTransport:
        await self.open()
        return self

    async def __aexit__(
        self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: TracebackType | None
    ) -> None:
        await self.close()

    async def __current_session(self) -> Session:
        async with self.__lock:
            if self.__session is None:
                raise ClientValueError(
                    "Cannot make a request before the transport has been opened, or after it has been closed."
                )
            return self.__session

    async def request(
        self,
        method: RequestMethod,
        url: str,
        headers: HTTPHeaderDict | None = None,
        post_params: list[tuple[str, object]] | None = None,
        request_timeout: RequestTimeout = None,
    ) -> HTTPResponse:
        headers = HTTPHeaderDict(headers or {})
        headers.setdefault("User-Agent", self.__user_agent)

        match headers.get("Content-Type"), post_params:
            case None, None:
                data = None
            case "multipart/form-data", list():
                data = multipart_body(post_params)
                # aiohttp sets the content type, including the multipart boundary.
                del headers["Content-Type"]
            case content_type, _:
                raise ClientValueError(
                    f"Form fields must be sent as '{MULTIPART_FORM_DATA}', and only with form fields "
                    f"(content type: {content_type!r}, form fields: {post_params is not None})."
                )

        session = await self.__current_session()
        try:
            return await session.send(str(method), url, headers, data, client_timeout(request_timeout))
        except InvalidURL as e:
            raise ClientValueError(msg="Could not prepare HTTP request", caused_by=e)
        except (ClientError, TimeoutError, asyncio.TimeoutError) as e:
            raise TransportError(msg="Could not complete HTTP request", caused_by=e)
