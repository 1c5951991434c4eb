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

import sqlite3

from simple_sqlite3_orm import CreateIndexParams, ORMBase

from . import TOKEN_TABLE_NAME
from .schema import DownloadTokenRecord


class _DownloadTokenTableConfig:
    orm_bootstrap_table_name = TOKEN_TABLE_NAME
    orm_bootstrap_indexes_params = [
        CreateIndexParams(index_name="dt_artifact_id_idx", index_cols=("artifact_id",))
    ]


class DownloadTokenORM(ORMBase[DownloadTokenRecord], _DownloadTokenTableConfig):
    orm_bootstrap_table_name = TOKEN_TABLE_NAME


def touch_token(conn: sqlite3.Connection, token: str, *, accessed_at: float) -> None:
    conn.execute(
        f"UPDATE {TOKEN_TABLE_NAME} SET last_accessed_at = ? WHERE token = ?",
        (accessed_at, token),
    )
