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
"""Upload, store and inspect binary artifacts.

Ingestion only registers the artifact, inspection is a separate step that
    can be (re-)run any time later, each run atomically replaces the
    previously saved DistributionMetadata.
"""

from __future__ import annotations

import logging
import re
import secrets
import tempfile
import time
from pathlib import Path, PurePath
from typing import IO, Callable, Union

from ota_dist_libs.common import tmp_fname
from ota_dist_libs.common.io import file_sha256, remove_file, spool_stream_to_file
from ota_dist_libs.errors import InvalidUpload
from ota_dist_libs.ipa.consts import (
    ALLOWED_EXTENSIONS,
    APK_CONTENT_TYPE,
    IPA_CONTENT_TYPE,
    MAX_UPLOAD_SIZE,
)
from ota_dist_libs.ipa.inspector import inspect_archive_file
from ota_dist_libs.ipa.schema import DistributionMetadata, Platform
from ota_dist_libs.registry.db import DistributionDBHelper
from ota_dist_libs.registry.schema import BinaryArtifactRecord
from ota_dist_libs.storage import StorageGateway

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,62}$")
VERSION_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]{0,63}$")

CONTENT_TYPES = {
    Platform.ios: IPA_CONTENT_TYPE,
    Platform.android: APK_CONTENT_TYPE,
}


def new_artifact_id() -> str:
    return secrets.token_hex(16)


def validate_upload(filename: str, platform: Platform) -> str:
    """Check <filename> against <platform>, return the normalized file extension.

    Raises:
        InvalidUpload if the extension is not allowed for the platform.
    """
    _ext = PurePath(filename).suffix.lower()
    _allowed = ALLOWED_EXTENSIONS[platform.value]
    if _ext not in _allowed:
        raise InvalidUpload(
            f"{platform.value} uploads must be one of {', '.join(_allowed)}",
            details={"filename": filename},
        )
    return _ext


def make_storage_key(artifact_id: str, version: str, ext: str, *, now: float) -> str:
    """Storage key layout: apps/<artifact_id>/versions/<version>/<ms>-<8 hex><ext>."""
    return (
        f"apps/{artifact_id}/versions/{version}/"
        f"{int(now * 1000)}-{secrets.token_hex(4)}{ext}"
    )


class ArtifactIngestor:
    def __init__(
        self,
        db: DistributionDBHelper,
        gateway: StorageGateway,
        *,
        tmp_dir: Union[Path, None] = None,
        size_limit: int = MAX_UPLOAD_SIZE,
        time_func: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._gateway = gateway
        self._tmp_dir = Path(tmp_dir or tempfile.gettempdir())
        self._size_limit = size_limit
        self._time_func = time_func

    def ingest(
        self,
        stream: IO[bytes],
        *,
        filename: str,
        slug: str,
        app_name: str,
        version: str,
        platform: Platform,
    ) -> BinaryArtifactRecord:
        """Store the uploaded binary and register it as a new artifact.

        Raises:
            InvalidUpload if the upload is rejected.
            StorageUnavailable if the binary or the record cannot be persisted.
        """
        if not SLUG_PATTERN.match(slug):
            raise InvalidUpload("invalid slug", details={"slug": slug})
        if not VERSION_PATTERN.match(version):
            raise InvalidUpload("invalid version", details={"version": version})
        if not app_name.strip():
            raise InvalidUpload("app name must not be empty")
        _ext = validate_upload(filename, platform)

        _tmp_f = self._tmp_dir / tmp_fname("upload", suffix=_ext)
        try:
            try:
                _size = spool_stream_to_file(
                    stream, _tmp_f, size_limit=self._size_limit
                )
            except ValueError as e:
                raise InvalidUpload(
                    str(e), details={"size_limit": self._size_limit}
                ) from e
            if _size == 0:
                raise InvalidUpload("uploaded file is empty")

            _now = self._time_func()
            artifact_id = new_artifact_id()
            record = BinaryArtifactRecord(
                artifact_id=artifact_id,
                slug=slug,
                app_name=app_name.strip(),
                version=version,
                storage_key=make_storage_key(artifact_id, version, _ext, now=_now),
                platform=platform.value,
                file_size=_size,
                sha256=file_sha256(_tmp_f),
                created_at=_now,
            )
            self._gateway.put(
                record.storage_key, _tmp_f.read_bytes(), CONTENT_TYPES[platform]
            )
        finally:
            remove_file(_tmp_f)

        self._db.insert_artifact(record)
        logger.info(
            f"ingested {filename} as {artifact_id=}, {slug=}, {version=}, {_size=}"
        )
        return record

    def inspect_artifact(self, artifact_id: str) -> DistributionMetadata:
        """(Re-)inspect a stored iOS artifact and save its metadata.

        Raises:
            ArtifactNotFound if no such artifact.
            InvalidUpload if the artifact is not an iOS archive.
            UpstreamFetchFailure if the binary cannot be fetched from storage.
            MissingDescriptor, CorruptTrustArtifact on inspection failures,
                previously saved metadata is kept in this case.
        """
        record = self._db.get_artifact(artifact_id)
        if record.platform_tag is not Platform.ios:
            raise InvalidUpload(
                "only iOS archives can be inspected",
                details={"artifact_id": artifact_id},
            )

        _tmp_f = self._tmp_dir / tmp_fname("inspect", suffix=".ipa")
        try:
            _tmp_f.write_bytes(self._gateway.get(record.storage_key))
            metadata = inspect_archive_file(_tmp_f)
        finally:
            remove_file(_tmp_f)

        self._db.save_metadata(
            artifact_id, metadata, inspected_at=self._time_func()
        )
        return metadata

    def ingest_and_inspect(
        self, stream: IO[bytes], **kwargs
    ) -> tuple[BinaryArtifactRecord, Union[DistributionMetadata, None]]:
        """Ingest, then inspect right away if the artifact is an iOS archive.

        A failed inspection doesn't roll back the ingestion.
        """
        record = self.ingest(stream, **kwargs)
        if record.platform_tag is not Platform.ios:
            return record, None
        return record, self.inspect_artifact(record.artifact_id)
