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

import functools
import os
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path

import dotenv

from voe import logging
from voe.common.connector import require_api_key
from voe.common.exceptions import ErrorCode, VOEError

__all__ = [
    "API_KEY_VARIABLE",
    "BASE_URL",
    "ClientConfig",
    "default_user_agent",
]

logger = logging.getLogger("config")

BASE_URL = "https://voe.sx/api"
"""The base URL of the VOE API."""

API_KEY_VARIABLE = "VOE_API_KEY"
REQUEST_TIMEOUT_VARIABLE = "VOE_REQUEST_TIMEOUT"

_DISTRIBUTION = "voe-sdk"


@functools.cache
def default_user_agent() -> str:
    """The `User-Agent` header value, including the installed package version if there is one."""
    try:
        version = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return _DISTRIBUTION
    return f"{_DISTRIBUTION}/{version}"


@dataclass(frozen=True, kw_only=True)
class ClientConfig:
    """Configuration for `VOEClient`.

    The configuration is immutable once created.
    """

    api_key: str = field(repr=False)
    """The VOE API key. Attached to every JSON endpoint request."""

    base_url: str = BASE_URL
    """The base URL of the VOE API."""

    user_agent: str = field(default_factory=default_user_agent)
    """The value to provide in the `User-Agent` header."""

    request_timeout: int | float | tuple[int | float, int | float] | None = None
    """Timeout setting for every request. Passed to the transport untouched."""

    def __post_init__(self) -> None:
        require_api_key(self.api_key)

    @classmethod
    def from_env(cls, dotenv_path: str | os.PathLike[str] | None = None, **kwargs) -> ClientConfig:
        """Create a configuration from environment variables.

        `VOE_API_KEY` and the optional `VOE_REQUEST_TIMEOUT` (in seconds) are read from the process environment.
        Variables that are not set in the process environment are read from a `.env` file, if one is found.

        :param dotenv_path: The `.env` file to read. By default, the file is searched for from the working directory.
        :param kwargs: Other `ClientConfig` fields.

        :return: The configuration.

        :raises VOEError: With `ErrorCode.MISSING_API_KEY` if no API key is configured.
        :raises ValueError: If `VOE_REQUEST_TIMEOUT` is not a number.
        """
        if dotenv_path is None:
            dotenv_path = dotenv.find_dotenv(usecwd=True)
        file_values = dotenv.dotenv_values(dotenv_path, encoding="utf-8") if dotenv_path else {}
        if dotenv_path and Path(dotenv_path).exists():
            logger.debug(f"Loaded environment file: {dotenv_path}")

        def get(key: str) -> str | None:
            return os.environ.get(key) or file_values.get(key)

        api_key = get(API_KEY_VARIABLE)
        if not api_key:
            raise VOEError(
                f"API key is required. Set the {API_KEY_VARIABLE} environment variable.", ErrorCode.MISSING_API_KEY
            )

        if (timeout := get(REQUEST_TIMEOUT_VARIABLE)) is not None:
            try:
                kwargs.setdefault("request_timeout", float(timeout))
            except ValueError:
                raise ValueError(f"Invalid value for {REQUEST_TIMEOUT_VARIABLE}: {timeout!r}")

        return cls(api_key=api_key, **kwargs)
