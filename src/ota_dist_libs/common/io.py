# Copyright 2022 TIER IV, INC. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Common shared helper functions for IO."""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

DEFAULT_FILE_CHUNK_SIZE = 1024**2  # 1MiB


def file_sha256(fpath: str | Path, chunk_size: int = DEFAULT_FILE_CHUNK_SIZE) -> str:
    """Return the hex sha256 digest of the file at <fpath>."""
    _hasher = hashlib.sha256()
    with open(fpath, "rb") as f:
        while _chunk := f.read(chunk_size):
            _hasher.update(_chunk)
    return _hasher.hexdigest()


def spool_stream_to_file(
    src: IO[bytes],
    dst: Path,
    *,
    chunk_size: int = DEFAULT_FILE_CHUNK_SIZE,
    size_limit: int | None = None,
) -> int:
    """Copy <src> into <dst> chunk by chunk, return the number of bytes written.

    Raises:
        ValueError if <size_limit> is set and the stream exceeds it.
    """
    _written = 0
    with open(dst, "wb") as f:
        while _chunk := src.read(chunk_size):
            _written += len(_chunk)
            if size_limit is not None and _written > size_limit:
                raise ValueError(f"stream exceeds size limit {size_limit} bytes")
            f.write(_chunk)
    return _written


def remove_file(_fpath: Path, *, ignore_error: bool = True) -> None:
    """Use proper way to remove <_fpath>.

    With <ignore_error>, failures are logged and swallowed.
    """
    try:
        _fpath.unlink(missing_ok=True)
    except IsADirectoryError:
        return shutil.rmtree(_fpath, ignore_errors=ignore_error)
    except Exception as e:
        if not ignore_error:
            raise
        logger.warning(f"failed to remove {_fpath}: {e!r}")
