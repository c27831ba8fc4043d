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

import copy
import enum
import json
import re
from collections.abc import ItemsView, Iterator, KeysView, Mapping, MutableMapping, Sequence, ValuesView
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "FilePart",
    "HTTPHeaderDict",
    "HTTPResponse",
    "RequestMethod",
    "decode_body",
]

_RE_CHARSET = re.compile(r'charset="?([\w\-.:]+)', re.IGNORECASE)


class RequestMethod(str, enum.Enum):
    """HTTP request method."""

    GET = "GET"
    """HTTP [`GET`](https://developer.mozilla.org/en-US/docs/Web/HTTP/Methods/GET)"""

    POST = "POST"
    """HTTP [`POST`](https://developer.mozilla.org/en-US/docs/Web/HTTP/Methods/POST)"""

    def __str__(self) -> str:
        return self.value


class HTTPHeaderDict(MutableMapping[str, str]):
    def __init__(self, seq: Mapping[str, str] | Sequence[tuple[str, str]] | None = None, **kwargs: str) -> None:
        self.__values: dict[str, str] = {}
        self.update(seq, **kwargs)

    def update(self, seq: Mapping[str, str] | Sequence[tuple[str, str]] | None = None, **kwargs: str) -> None:
        if isinstance(seq, Mapping):
            self.__update_from_mapping(seq)
        elif isinstance(seq, Sequence):
            self.__update_from_sequence(seq)

        self.__update_from_mapping(kwargs)

    def __update_from_mapping(self, mapping: Mapping[str, str]) -> None:
        for key, value in mapping.items():
            self.__setitem__(key, value)

    def __update_from_sequence(self, seq: Sequence[tuple[str, str]]) -> None:
        for key, value in seq:
            self.__setitem__(key, value)

    def __setitem__(self, key: str, value: str) -> None:
        lookup = key.title()
        if lookup in self.__values and lookup != "Set-Cookie":
            # RFC 7230 section 3.2.2: repeated fields are combined with a comma, in order.
            self.__values[lookup] += "," + value
        else:
            self.__values[lookup] = value

    def __delitem__(self, key: str) -> None:
        del self.__values[key.title()]

    def __getitem__(self, key: str) -> str:
        return self.__values[key.title()]

    def __len__(self) -> int:
        return len(self.__values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __contains__(self, item: str) -> bool:
        return item.title() in self.__values

    def __repr__(self) -> str:
        repr_data = {}
        for key, value in self.items():
            if key in ("Authorization", "Proxy-Authorization", "Cookie", "Set-Cookie"):
                # Do not expose sensitive information.
                value = "*****"
            repr_data[key] = value

        return f"{self.__class__.__name__}({repr_data!r})"

    def items(self) -> ItemsView[str, str]:
        return ItemsView(self)

    def keys(self) -> KeysView[str]:
        return KeysView(self.__values)

    def values(self) -> ValuesView[str]:
        return ValuesView(self.__values)

    def copy(self) -> HTTPHeaderDict:
        return copy.deepcopy(self)


@dataclass(frozen=True, kw_only=True)
class HTTPResponse:
    """A complete response, as received from the transport."""

    status: int
    reason: str | None = None
    headers: HTTPHeaderDict = field(default_factory=HTTPHeaderDict)
    data: bytes = b""

    def getheaders(self) -> HTTPHeaderDict:
        return self.headers.copy()

    def getheader(self, key: str, default: str | None = None) -> str:
        return self.headers.get(key, default)

    def text(self) -> str:
        """Decode the response body, using the charset from the `Content-Type` header if there is one."""
        match = None
        content_type = self.getheader("content-type")
        if content_type is not None:
            match = _RE_CHARSET.search(content_type)
        encoding = match.group(1) if match else "utf-8"
        return self.data.decode(encoding)

    def json(self) -> Any:
        """Decode the response body as JSON.

        :raises ValueError: If the body is not valid JSON, or cannot be decoded with the declared charset.
        :raises LookupError: If the declared charset is unknown.
        """
        return json.loads(self.text())


def decode_body(response: HTTPResponse) -> Any:
    """Decode a response body as JSON, falling back to text, then to the raw bytes.

    :param response: The response to decode.

    :return: The decoded JSON data, the body text if the body is not JSON, or the body bytes if the body cannot be
        decoded with the declared charset.
    """
    try:
        return response.json()
    except (LookupError, ValueError):
        pass  # Data must not be JSON formatted.
    try:
        return response.text()
    except (LookupError, ValueError):
        return response.data


@dataclass(frozen=True, kw_only=True)
class FilePart:
    """A file field in a `multipart/form-data` request body."""

    filename: str
    """The file name reported to the server."""

    data: bytes
    """The file content."""

    content_type: str = "application/octet-stream"
    """The content type of the file part."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(filename={self.filename!r}, size={len(self.data)})"
