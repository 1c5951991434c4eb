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

from datetime import datetime, timezone
from typing import NamedTuple, Optional

from pydantic import BaseModel
from simple_sqlite3_orm import ConstrainRepr, TableSpec
from typing_extensions import Annotated


class DownloadTokenRecord(TableSpec):
    token: Annotated[str, ConstrainRepr("PRIMARY KEY")]
    artifact_id: Annotated[str, ConstrainRepr("NOT NULL")]
    issuer_id: Annotated[str, ConstrainRepr("NOT NULL")]
    created_at: Annotated[float, ConstrainRepr("NOT NULL")]
    expires_at: Annotated[float, ConstrainRepr("NOT NULL")]
    last_accessed_at: Optional[float] = None


class DownloadToken(BaseModel):
    token: str
    artifact_id: str
    issuer_id: str
    created_at: datetime
    expires_at: datetime
    last_accessed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: DownloadTokenRecord) -> DownloadToken:
        return cls(
            token=record.token,
            artifact_id=record.artifact_id,
            issuer_id=record.issuer_id,
            created_at=datetime.fromtimestamp(record.created_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(record.expires_at, tz=timezone.utc),
            last_accessed_at=(
                datetime.fromtimestamp(record.last_accessed_at, tz=timezone.utc)
                if record.last_accessed_at is not None
                else None
            ),
        )


class ResolvedToken(NamedTuple):
    artifact_id: str
    expires_at: datetime
