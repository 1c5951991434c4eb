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
"""Issue and resolve download tokens.

A token can be resolved any number of times before it expires,
    `last_accessed_at` is only recorded for telemetry.
"""

from __future__ import annotations

import logging
import secrets
import sqlite3
import time
from contextlib import closing
from datetime import datetime, timezone
from typing import Callable

from ota_dist_libs.errors import TokenCollision, TokenExpired, TokenNotFound
from ota_dist_libs.registry.db import DistributionDBHelper, storage_errors_as_dist_error

from . import DEFAULT_TOKEN_TTL, TOKEN_NBYTES
from .db import DownloadTokenORM, touch_token
from .schema import DownloadToken, DownloadTokenRecord, ResolvedToken

logger = logging.getLogger(__name__)


def generate_token_value(nbytes: int = TOKEN_NBYTES) -> str:
    return secrets.token_urlsafe(nbytes)


class DownloadTokenService:
    def __init__(
        self,
        db: DistributionDBHelper,
        *,
        time_func: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._time_func = time_func

    def issue(
        self,
        artifact_id: str,
        issuer_id: str,
        ttl_seconds: float = DEFAULT_TOKEN_TTL,
    ) -> DownloadToken:
        """Issue a new token for <artifact_id>.

        Raises:
            ValueError if <ttl_seconds> is not positive.
            ArtifactNotFound if the artifact doesn't exist.
            TokenCollision if the generated token value is already taken.
        """
        if not ttl_seconds > 0:
            raise ValueError(f"ttl_seconds must be positive, get {ttl_seconds}")
        self._db.get_artifact(artifact_id)

        _now = self._time_func()
        record = DownloadTokenRecord(
            token=generate_token_value(),
            artifact_id=artifact_id,
            issuer_id=issuer_id,
            created_at=_now,
            expires_at=_now + ttl_seconds,
        )
        try:
            with storage_errors_as_dist_error(), closing(
                self._db.connect_db()
            ) as conn:
                with conn:
                    DownloadTokenORM(conn).orm_insert_entry(record)
        except sqlite3.IntegrityError as e:
            raise TokenCollision(
                "generated token value already exists",
                details={"artifact_id": artifact_id},
            ) from e

        logger.info(f"issued download token for {artifact_id=} by {issuer_id=}")
        return DownloadToken.from_record(record)

    def _lookup_valid(self, conn: sqlite3.Connection, token: str) -> DownloadTokenRecord:
        _entry = DownloadTokenORM(conn).orm_select_entry(token=token)
        if not _entry:
            raise TokenNotFound("download token not found")
        if self._time_func() > _entry.expires_at:
            raise TokenExpired(
                "download token expired",
                details={"artifact_id": _entry.artifact_id},
            )
        return _entry

    @staticmethod
    def _as_resolved(record: DownloadTokenRecord) -> ResolvedToken:
        return ResolvedToken(
            artifact_id=record.artifact_id,
            expires_at=datetime.fromtimestamp(record.expires_at, tz=timezone.utc),
        )

    def peek(self, token: str) -> ResolvedToken:
        """Validate <token> without counting a download.

        Raises:
            TokenNotFound, TokenExpired.
        """
        with storage_errors_as_dist_error(), closing(self._db.connect_db()) as conn:
            return self._as_resolved(self._lookup_valid(conn, token))

    def resolve(self, token: str) -> ResolvedToken:
        """Validate <token> and count one download for its artifact.

        Raises:
            TokenNotFound, TokenExpired.
        """
        with storage_errors_as_dist_error(), closing(self._db.connect_db()) as conn:
            with conn:
                # NOTE: take the write lock before reading, concurrent resolvers
                #       are serialized by the busy timeout instead of failing.
                conn.execute("BEGIN IMMEDIATE")
                _entry = self._lookup_valid(conn, token)
                touch_token(conn, token, accessed_at=self._time_func())
                self._db.increment_download_count(conn, _entry.artifact_id)

        logger.debug(f"token resolved for artifact_id={_entry.artifact_id}")
        return self._as_resolved(_entry)

    def get_token(self, token: str) -> DownloadToken:
        with storage_errors_as_dist_error(), closing(self._db.connect_db()) as conn:
            _entry = DownloadTokenORM(conn).orm_select_entry(token=token)
        if not _entry:
            raise TokenNotFound("download token not found")
        return DownloadToken.from_record(_entry)
