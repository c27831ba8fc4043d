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

import os
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import Any, BinaryIO

from voe import logging
from voe.aio import AioTransport
from voe.common import APIConnector, FilePart, ILogger, ITransport, RequestMethod, classify
from voe.common.connector import RequestTimeout, decode_response, require_api_key, send_request
from voe.common.models import UploadServerResponse

from .config import BASE_URL, ClientConfig, default_user_agent

__all__ = ["VOEClient"]

FileSource = bytes | bytearray | memoryview | BinaryIO | str | os.PathLike

DEFAULT_FILENAME = "file"


def _read_file(file: FileSource, filename: str | None) -> FilePart:
    """Read an upload source into memory.

    :param file: Raw bytes, a binary file object, or a path to a local file.
    :param filename: The file name to report to the server. By default, the name of the file object or path is used.

    :return: A file part for a multipart request body.
    """
    match file:
        case bytes() | bytearray() | memoryview():
            data = bytes(file)
            default_name = DEFAULT_FILENAME
        case str() | os.PathLike():
            path = Path(file)
            data = path.read_bytes()
            default_name = path.name
        case _ if hasattr(file, "read"):
            data = file.read()
            if not isinstance(data, bytes):
                raise TypeError("File objects must be opened in binary mode.")
            name = getattr(file, "name", None)
            default_name = Path(name).name if isinstance(name, str) and name else DEFAULT_FILENAME
        case _:
            raise TypeError(f"Cannot upload an object of type '{type(file).__name__}'.")
    return FilePart(filename=filename or default_name, data=data)


class VOEClient:
    """Asynchronous client for the VOE file hosting API.

    Every method is a single request. JSON endpoints are called through a shared `APIConnector`, which attaches the API
    key to every request. Failures are raised as `VOEError`, and nothing is retried.

    Example:
        >>> async with VOEClient("my-api-key") as client:
        ...     server = await client.get_upload_server()
        ...     result = await client.upload_file(server, Path("video.mp4"))
    """

    def __init__(
        self,
        api_key: str,
        *,
        transport: ITransport | None = None,
        logger: ILogger | None = None,
        base_url: str = BASE_URL,
        request_timeout: RequestTimeout = None,
    ) -> None:
        """
        :param api_key: Your VOE API key.
        :param transport: The transport to send requests with. By default, an `AioTransport` is created.
        :param logger: The logger that requests, responses, and failures are reported to. Any `logging.Logger` can be
            used. By default, the `voe.client` logger is used.
        :param base_url: The base URL of the VOE API.
        :param request_timeout: Timeout setting for every request, passed to the transport untouched.

        :raises VOEError: With `ErrorCode.MISSING_API_KEY` if the API key is empty.
        """
        api_key = require_api_key(api_key)
        log = logger if logger is not None else logging.getLogger("client")
        if transport is None:
            transport = AioTransport(user_agent=default_user_agent())
        self._connector = APIConnector(base_url, transport, api_key, logger=log, request_timeout=request_timeout)

    @classmethod
    def from_config(
        cls, config: ClientConfig, *, transport: ITransport | None = None, logger: ILogger | None = None
    ) -> VOEClient:
        """Create a client from a `ClientConfig`.

        :param config: The client configuration.
        :param transport: The transport to send requests with. By default, an `AioTransport` is created using the
            configured user agent.
        :param logger: The logger that requests, responses, and failures are reported to.

        :return: A new client.
        """
        if transport is None:
            transport = AioTransport(user_agent=config.user_agent)
        return cls(
            config.api_key,
            transport=transport,
            logger=logger,
            base_url=config.base_url,
            request_timeout=config.request_timeout,
        )

    @classmethod
    def from_environment(cls, *, transport: ITransport | None = None, logger: ILogger | None = None) -> VOEClient:
        """Create a client using the `VOE_API_KEY` environment variable.

        See `ClientConfig.from_env` for the variables that are read.
        """
        return cls.from_config(ClientConfig.from_env(), transport=transport, logger=logger)

    @property
    def connector(self) -> APIConnector:
        """The connector used for JSON endpoint requests."""
        return self._connector

    async def open(self) -> None:
        """Open the underlying transport."""
        await self._connector.open()

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._connector.close()

    async def __aenter__(self) -> VOEClient:
        await self.open()
        return self

    async def __aexit__(
        self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: TracebackType | None
    ) -> None:
        await self.close()

    async def _get(self, resource_path: str, **query_params: Any) -> Any:
        return await self._connector.call_api(RequestMethod.GET, resource_path, query_params=query_params)

    async def get_account_info(self) -> Any:
        """Get account information.

        :return: The account information, as returned by the service.
        """
        return await self._get("/account/info")

    async def get_account_stats(self) -> Any:
        """Get account statistics.

        :return: The account statistics, as returned by the service.
        """
        return await self._get("/account/stats")

    async def get_upload_server(self) -> str:
        """Get the URL of a server to upload a file to.

        The URL is only valid for the upload that immediately follows. It is never cached.

        :return: The upload server URL.

        :raises ClientValueError: If the response does not contain a `result` field.
        """
        response = await self._connector.call_api(
            RequestMethod.GET, "/upload/server", response_type=UploadServerResponse
        )
        return response.result

    async def upload_file(self, upload_server: str, file: FileSource, filename: str | None = None) -> Any:
        """Upload a file.

        The file is posted as `multipart/form-data` directly to the upload server. The API key is not attached to this
        request.

        :param upload_server: The upload server URL, from `get_upload_server`.
        :param file: The file content, as bytes, a binary file object, or a path to a local file.
        :param filename: The file name to report to the server.

        :return: The upload result, as returned by the upload server.
        """
        log = self._connector.logger
        try:
            file_part = _read_file(file, filename)
        except (OSError, TypeError, ValueError) as e:
            raise classify(e, log) from e

        async with self._connector:
            response = await send_request(
                self._connector.transport,
                log,
                RequestMethod.POST,
                upload_server,
                headers={"Content-Type": "multipart/form-data", "Accept": "application/json"},
                post_params=[("file", file_part)],
                request_timeout=self._connector.request_timeout,
            )
        return decode_response(response)

    async def remote_upload(self, url: str) -> Any:
        """Ask the service to fetch and host a remote file.

        :param url: The URL of the file to upload.

        :return: The remote upload result.
        """
        return await self._get("/upload/url", url=url)

    async def get_remote_upload_list(self, upload_id: int | None = None) -> Any:
        """List remote uploads.

        :param upload_id: Only list the remote upload with this ID.

        :return: The remote uploads.
        """
        return await self._get("/upload/url/list", id=upload_id)

    async def clone_upload(self, file_code: str, folder_id: int = 0) -> Any:
        """Clone an existing file.

        :param file_code: The code of the file to clone.
        :param folder_id: The folder to place the clone in.

        :return: The clone result.
        """
        return await self._get("/file/clone", file_code=file_code, fld_id=folder_id)

    async def get_file_info(self, file_codes: str | Sequence[str]) -> Any:
        """Get information about one or more files.

        :param file_codes: A comma-separated string of file codes, or a sequence of file codes.

        :return: The file information.
        """
        if not isinstance(file_codes, str):
            file_codes = ",".join(file_codes)
        return await self._get("/file/info", file_code=file_codes)

    async def list_files(
        self,
        page: int | None = None,
        per_page: int | None = None,
        fld_id: int | None = None,
        created: str | None = None,
        name: str | None = None,
    ) -> Any:
        """List files.

        Filters that are not provided are not sent.

        :param page: Page number.
        :param per_page: Number of results per page.
        :param fld_id: Only list files in this folder.
        :param created: Filter by creation date.
        :param name: Filter by file name.

        :return: The list of files.
        """
        return await self._get("/file/list", page=page, per_page=per_page, fld_id=fld_id, created=created, name=name)

    async def rename_file(self, file_code: str, title: str) -> Any:
        """Rename a file.

        :param file_code: The code of the file to rename.
        :param title: The new file title.

        :return: The rename result.
        """
        return await self._get("/file/rename", file_code=file_code, title=title)

    async def move_file(self, file_code: str, folder_id: int) -> Any:
        """Move a file to a folder.

        :param file_code: The code of the file to move.
        :param folder_id: The destination folder.

        :return: The move result.
        """
        return await self._get("/file/move", file_code=file_code, fld_id=folder_id)

    async def delete_file(self, file_code: str) -> Any:
        """Delete a file.

        :param file_code: The code of the file to delete.

        :return: The delete result.
        """
        return await self._get("/file/delete", file_code=file_code)
