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

import json
from datetime import datetime, timezone
from typing import Optional

from simple_sqlite3_orm import ConstrainRepr, TableSpec
from typing_extensions import Annotated

from ota_dist_libs.ipa.schema import DistributionClass, DistributionMetadata, Platform


def _to_timestamp(_dt: datetime | None) -> float | None:
    if _dt is None:
        return None
    # NOTE: plist dates are parsed as naive datetime in UTC
    if _dt.tzinfo is None:
        _dt = _dt.replace(tzinfo=timezone.utc)
    return _dt.timestamp()


def _from_timestamp(_ts: float | None) -> datetime | None:
    if _ts is None:
        return None
    return datetime.fromtimestamp(_ts, tz=timezone.utc).replace(tzinfo=None)


class BinaryArtifactRecord(TableSpec):
    """One uploaded revision of an application."""

    artifact_id: Annotated[str, ConstrainRepr("PRIMARY KEY")]
    slug: Annotated[str, ConstrainRepr("NOT NULL")]
    app_name: Annotated[str, ConstrainRepr("NOT NULL")]
    version: Annotated[str, ConstrainRepr("NOT NULL")]
    storage_key: Annotated[str, ConstrainRepr("NOT NULL")]
    platform: Annotated[str, ConstrainRepr("NOT NULL")]
    file_size: Annotated[int, ConstrainRepr("NOT NULL")]
    sha256: Annotated[str, ConstrainRepr("NOT NULL")]
    created_at: Annotated[float, ConstrainRepr("NOT NULL")]
    download_count: Annotated[int, ConstrainRepr("NOT NULL")] = 0

    @property
    def platform_tag(self) -> Platform:
        return Platform(self.platform)


class DistributionMetadataRecord(TableSpec):
    """Persisted projection of DistributionMetadata, one row per artifact."""

    artifact_id: Annotated[str, ConstrainRepr("PRIMARY KEY")]
    bundle_id: Annotated[str, ConstrainRepr("NOT NULL")]
    display_name: Annotated[str, ConstrainRepr("NOT NULL")]
    short_version: Annotated[str, ConstrainRepr("NOT NULL")]
    build_id: Annotated[str, ConstrainRepr("NOT NULL")]
    minimum_os_version: Annotated[str, ConstrainRepr("NOT NULL")]
    supported_devices: Annotated[str, ConstrainRepr("NOT NULL")]
    """JSON encoded list of device classes."""
    distribution_class: Annotated[str, ConstrainRepr("NOT NULL")]
    inspected_at: Annotated[float, ConstrainRepr("NOT NULL")]

    provisioning_profile_b64: Optional[str] = None
    team_id: Optional[str] = None
    profile_uuid: Optional[str] = None
    profile_name: Optional[str] = None
    profile_expiration: Optional[float] = None

    @classmethod
    def from_metadata(
        cls, artifact_id: str, metadata: DistributionMetadata, *, inspected_at: float
    ) -> DistributionMetadataRecord:
        return cls(
            artifact_id=artifact_id,
            bundle_id=metadata.bundle_id,
            display_name=metadata.display_name,
            short_version=metadata.short_version,
            build_id=metadata.build_id,
            minimum_os_version=metadata.minimum_os_version,
            supported_devices=json.dumps(metadata.supported_devices),
            distribution_class=metadata.distribution_class.value,
            inspected_at=inspected_at,
            provisioning_profile_b64=metadata.provisioning_profile_b64,
            team_id=metadata.team_id,
            profile_uuid=metadata.profile_uuid,
            profile_name=metadata.profile_name,
            profile_expiration=_to_timestamp(metadata.profile_expiration),
        )

    def to_metadata(self) -> DistributionMetadata:
        return DistributionMetadata(
            bundle_id=self.bundle_id,
            display_name=self.display_name,
            short_version=self.short_version,
            build_id=self.build_id,
            minimum_os_version=self.minimum_os_version,
            supported_devices=json.loads(self.supported_devices),
            distribution_class=DistributionClass(self.distribution_class),
            provisioning_profile_b64=self.provisioning_profile_b64,
            team_id=self.team_id,
            profile_uuid=self.profile_uuid,
            profile_name=self.profile_name,
            profile_expiration=_from_timestamp(self.profile_expiration),
        )
