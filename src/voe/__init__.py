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

"""VOE SDK
==========

An asynchronous client for the VOE file hosting API.
"""

from .client import VOEClient
from .common import APIConnector, ErrorCode, FilePart, ILogger, ITransport, VOEClientException, VOEError, classify
from .config import BASE_URL, ClientConfig
from .logging import create_default_logger

__all__ = [
    "APIConnector",
    "BASE_URL",
    "ClientConfig",
    "ErrorCode",
    "FilePart",
    "ILogger",
    "ITransport",
    "VOEClient",
    "VOEClientException",
    "VOEError",
    "classify",
    "create_default_logger",
]
