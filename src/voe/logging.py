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

"""Logging helpers for the VOE client.

Library modules obtain their loggers through `getLogger`, which places them under the `voe` logger hierarchy. The
library never installs handlers itself. Applications that want the conventional console and log file output can call
`create_default_logger` and pass the result to `VOEClient`.
"""

from __future__ import annotations

import logging
import os

__all__ = [
    "DEFAULT_LOG_FILE",
    "create_default_logger",
    "getLogger",
]

_ROOT = "voe"

DEFAULT_LOG_FILE = "voe-api.log"
DEFAULT_FORMAT = "%(levelname)s: %(message)s"


def getLogger(name: str | None = None) -> logging.Logger:
    """Get a logger in the `voe` hierarchy.

    :param name: The logger name, relative to `voe`. Names that already start with `voe.` are used as-is.

    :return: The logger.
    """
    if not name or name == _ROOT:
        return logging.getLogger(_ROOT)
    if name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")


def create_default_logger(
    filename: str | os.PathLike[str] = DEFAULT_LOG_FILE,
    level: int = logging.INFO,
    name: str = "default",
) -> logging.Logger:
    """Create a logger that writes to the console and appends to a local log file.

    Calling this more than once with the same name returns the same logger without adding duplicate handlers.

    :param filename: The log file to append to.
    :param level: The minimum level to emit.
    :param name: The logger name, relative to `voe`.

    :return: A logger suitable for passing to `VOEClient`.
    """
    logger = getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        formatter = logging.Formatter(DEFAULT_FORMAT)
        for handler in (logging.StreamHandler(), logging.FileHandler(filename, mode="a", encoding="utf-8")):
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        # Records are already emitted by this logger's handlers.
        logger.propagate = False
    return logger
