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

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Generator

from simple_sqlite3_orm import CreateIndexParams, ORMBase
from simple_sqlite3_orm.utils import enable_wal_mode

from ota_dist_libs.errors import ArtifactNotFound, StorageUnavailable
from ota_dist_libs.ipa.schema import DistributionMetadata
from ota_dist_libs.token.db import DownloadTokenORM

from . import ARTIFACT_TABLE_NAME, METADATA_TABLE_NAME
from .schema import BinaryArtifactRecord, DistributionMetadataRecord

logger = logging.getLogger(__name__)

DB_TIMEOUT = 16  # seconds


class _BinaryArtifactTableConfig:
    orm_bootstrap_table_name = ARTIFACT_TABLE_NAME
    orm_bootstrap_indexes_params = [
        CreateIndexParams(index_name="ba_slug_idx", index_cols=("slug",))
    ]


class BinaryArtifactORM(ORMBase[BinaryArtifactRecord], _BinaryArtifactTableConfig):
    orm_bootstrap_table_name = ARTIFACT_TABLE_NAME


class _DistributionMetadataTableConfig:
    orm_bootstrap_table_name = METADATA_TABLE_NAME


class DistributionMetadataORM(
    ORMBase[DistributionMetadataRecord], _DistributionMetadataTableConfig
):
    orm_bootstrap_table_name = METADATA_TABLE_NAME


@contextmanager
def storage_errors_as_dist_error() -> Generator[None]:
    """Translate sqlite3 failures(other than constraint violation) into StorageUnavailable."""
    try:
        yield
    except sqlite3.IntegrityError:
        raise
    except (sqlite3.OperationalError, sqlite3.DatabaseError) as e:
        raise StorageUnavailable(f"database failure: {e!r}") from e


class DistributionDBHelper:
    """Owns the sqlite database holding artifacts, metadata and download tokens.

    Every call opens its own connection, so the helper can be shared across threads.
    """

    def __init__(self, db_f: str | Path, *, enable_wal: bool = False) -> None:
        self.db_f = db_f
        self._enable_wal = enable_wal

    def connect_db(self) -> sqlite3.Connection:
        _conn = sqlite3.connect(self.db_f, check_same_thread=False, timeout=DB_TIMEOUT)
        if self._enable_wal:
            enable_wal_mode(_conn)
        return _conn

    def bootstrap_db(self) -> None:
        with storage_errors_as_dist_error(), closing(self.connect_db()) as conn:
            BinaryArtifactORM(conn).orm_bootstrap_db()
            DistributionMetadataORM(conn).orm_bootstrap_db()
            DownloadTokenORM(conn).orm_bootstrap_db()

    # ------ binary artifact ------ #

    def insert_artifact(self, record: BinaryArtifactRecord) -> None:
        with storage_errors_as_dist_error(), closing(self.connect_db()) as conn:
            with conn:
                BinaryArtifactORM(conn).orm_insert_entry(record)

    def get_artifact(self, artifact_id: str) -> BinaryArtifactRecord:
        """
        Raises:
            ArtifactNotFound if no artifact with <artifact_id>.
        """
        with storage_errors_as_dist_error(), closing(self.connect_db()) as conn:
            _entry = BinaryArtifactORM(conn).orm_select_entry(artifact_id=artifact_id)
        if not _entry:
            raise ArtifactNotFound(f"artifact {artifact_id} not found")
        return _entry

    def get_download_count(self, artifact_id: str) -> int:
        return self.get_artifact(artifact_id).download_count

    @staticmethod
    def increment_download_count(conn: sqlite3.Connection, artifact_id: str) -> None:
        # NOTE: single statement add, concurrent increments never lose an update.
        conn.execute(
            f"UPDATE {ARTIFACT_TABLE_NAME} "
            "SET download_count = download_count + 1 WHERE artifact_id = ?",
            (artifact_id,),
        )

    # ------ distribution metadata ------ #

    def save_metadata(
        self, artifact_id: str, metadata: DistributionMetadata, *, inspected_at: float
    ) -> None:
        """Write <metadata> for <artifact_id>, replacing the previous one if any.

        Replacement is done within one transaction, readers see either
            the old record or the new one, never a mix.
        """
        self.get_artifact(artifact_id)
        record = DistributionMetadataRecord.from_metadata(
            artifact_id, metadata, inspected_at=inspected_at
        )
        with storage_errors_as_dist_error(), closing(self.connect_db()) as conn:
            with conn:
                conn.execute(
                    f"DELETE FROM {METADATA_TABLE_NAME} WHERE artifact_id = ?",
                    (artifact_id,),
                )
                DistributionMetadataORM(conn).orm_insert_entry(record)
        logger.debug(f"metadata for {artifact_id=} saved")

    def get_metadata(self, artifact_id: str) -> DistributionMetadata | None:
        with storage_errors_as_dist_error(), closing(self.connect_db()) as conn:
            _entry = DistributionMetadataORM(conn).orm_select_entry(artifact_id=artifact_id)
        if not _entry:
            return None
        return _entry.to_metadata()
