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

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Platform(str, Enum):
    ios = "ios"
    android = "android"


class DistributionClass(str, Enum):
    development_build = "developmentBuild"
    ad_hoc = "adHoc"
    enterprise = "enterprise"
    app_store = "appStore"

    @property
    def display_label(self) -> str:
        return _DISTRIBUTION_LABELS[self]

    @property
    def sideloadable(self) -> bool:
        return self is not DistributionClass.app_store


_DISTRIBUTION_LABELS = {
    DistributionClass.development_build: "Development Build",
    DistributionClass.ad_hoc: "Ad Hoc Distribution",
    DistributionClass.enterprise: "Enterprise Distribution",
    DistributionClass.app_store: "App Store",
}


class ExtractStrategy(str, Enum):
    """How the profile plist was unwrapped from its signed container."""

    structured_container_parse = "structured_container_parse"
    raw_marker_substring = "raw_marker_substring"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class Descriptor(_FrozenModel):
    """Facts read from the application's Info.plist."""

    bundle_id: str
    display_name: str
    short_version: str
    build_id: str
    minimum_os_version: str
    supported_devices: List[str] = Field(min_length=1)


class TrustArtifact(_FrozenModel):
    """Facts read from the embedded provisioning profile."""

    uuid: Optional[str] = None
    name: Optional[str] = None
    team_id: Optional[str] = None
    expiration_date: Optional[datetime] = None
    provisioned_devices: List[str] = Field(default_factory=list)
    provisions_all_devices: bool = False
    allow_debug_attach: bool = False
    developer_certificates: List[bytes] = Field(default_factory=list, repr=False)

    raw_b64: str = Field(repr=False)
    """The whole signed profile, base64 encoded."""
    extracted_by: ExtractStrategy


class DistributionMetadata(_FrozenModel):
    """Result of inspecting one binary artifact.

    Only derived from the archive content, so that inspecting byte-identical
        archives always gives equal values.
    """

    bundle_id: str
    display_name: str
    short_version: str
    build_id: str
    minimum_os_version: str
    supported_devices: List[str] = Field(min_length=1)
    distribution_class: DistributionClass

    provisioning_profile_b64: Optional[str] = Field(default=None, repr=False)
    team_id: Optional[str] = None
    profile_uuid: Optional[str] = None
    profile_name: Optional[str] = None
    profile_expiration: Optional[datetime] = None

    @field_validator("supported_devices")
    @classmethod
    def _no_duplicated_devices(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError(f"duplicated device class in {v}")
        return v

    @classmethod
    def from_inspection(
        cls,
        descriptor: Descriptor,
        trust_artifact: Optional[TrustArtifact],
        distribution_class: DistributionClass,
    ) -> DistributionMetadata:
        _profile = {}
        if trust_artifact is not None:
            _profile = dict(
                provisioning_profile_b64=trust_artifact.raw_b64,
                team_id=trust_artifact.team_id,
                profile_uuid=trust_artifact.uuid,
                profile_name=trust_artifact.name,
                profile_expiration=trust_artifact.expiration_date,
            )
        return cls(
            **descriptor.model_dump(),
            distribution_class=distribution_class,
            **_profile,
        )
