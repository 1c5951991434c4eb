# Copyright 2025 TIER IV, INC. All rights reserved.
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
"""Read iOS application archive without extracting the archive."""

from __future__ import annotations

from os import PathLike
from pathlib import PurePosixPath
from typing import IO, Callable
from zipfile import ZipFile, ZipInfo

from .consts import APP_BUNDLE_SUFFIX, DESCRIPTOR_FNAME, TRUST_ARTIFACT_FNAME


def _shallowest(entries: list[ZipInfo]) -> ZipInfo | None:
    if not entries:
        return None
    return min(
        entries,
        key=lambda _entry: (len(PurePosixPath(_entry.filename).parts), _entry.filename),
    )


def _is_descriptor(_path: PurePosixPath) -> bool:
    return _path.name == DESCRIPTOR_FNAME and _path.parent.name.endswith(
        APP_BUNDLE_SUFFIX
    )


def _is_trust_artifact(_path: PurePosixPath) -> bool:
    return _path.name == TRUST_ARTIFACT_FNAME


class IPAArchiveReader:
    """Helper class for reading the .ipa archive.

    Only one entry is decompressed at a time, and only in memory.

    This class is NOT safe for multi-thread, create separated instance
        for each worker thread if used in multi-threaded environment.
    """

    def __init__(
        self,
        _f: ZipFile | PathLike | str | IO[bytes],
        *,
        close_on_exit: bool = True,
    ) -> None:
        if isinstance(_f, ZipFile):
            self._f = _f
        else:
            self._f = ZipFile(_f, mode="r")
        self._close_on_exit = close_on_exit

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._close_on_exit:
            self.close()
        return False

    def close(self) -> None:
        self._f.close()

    def _find_entry(self, _matcher: Callable[[PurePosixPath], bool]) -> ZipInfo | None:
        return _shallowest(
            [
                _entry
                for _entry in self._f.infolist()
                if not _entry.is_dir() and _matcher(PurePosixPath(_entry.filename))
            ]
        )

    def find_descriptor_entry(self) -> ZipInfo | None:
        """Find the `*.app/Info.plist`, the shallowest one wins."""
        return self._find_entry(_is_descriptor)

    def find_trust_artifact_entry(self) -> ZipInfo | None:
        return self._find_entry(_is_trust_artifact)

    def is_valid_ipa(self) -> bool:
        """Check if this ZIP archive looks like an .ipa.

        NOTE that this method works by only checking the present of
            the app bundle's `Info.plist` file!
        """
        return self.find_descriptor_entry() is not None

    def read_entry(self, _entry: ZipInfo) -> bytes:
        with self._f.open(_entry) as _reader:
            return _reader.read()
