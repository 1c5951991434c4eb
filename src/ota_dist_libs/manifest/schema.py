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
"""Property list models for the OTA manifest and the configuration profile.

Plist keys are kept as field aliases, see PlistModelBase.
"""

from __future__ import annotations

from typing import Annotated, ClassVar, List, Literal, Union

from pydantic import Field

from ota_dist_libs.common import AliasEnabledModel, PlistModelBase

from . import IOS_PLATFORM_IDENTIFIER, OTA_MANIFEST_MEDIA_TYPE, PROFILE_MEDIA_TYPE
from .consts import (
    ASSET_KIND_SOFTWARE_PACKAGE,
    KEY_BUNDLE_IDENTIFIER,
    KEY_BUNDLE_VERSION,
    KEY_MINIMUM_OS_VERSION,
    KEY_PLATFORM_IDENTIFIER,
    METADATA_KIND_SOFTWARE,
    PAYLOAD_VERSION,
    PROFILE_PAYLOAD_TYPE,
    PROVISIONING_PAYLOAD_TYPE,
    WEBCLIP_PAYLOAD_TYPE,
)


# fmt: off
class OTAManifest(PlistModelBase):
    class Item(AliasEnabledModel):
        class Asset(AliasEnabledModel):
            kind: str = ASSET_KIND_SOFTWARE_PACKAGE
            url: str

        class Metadata(AliasEnabledModel):
            bundle_identifier: str = Field(alias=KEY_BUNDLE_IDENTIFIER)
            bundle_version: str = Field(alias=KEY_BUNDLE_VERSION)
            kind: str = METADATA_KIND_SOFTWARE
            platform_identifier: str = Field(alias=KEY_PLATFORM_IDENTIFIER, default=IOS_PLATFORM_IDENTIFIER)
            title: str
            minimum_os_version: str = Field(alias=KEY_MINIMUM_OS_VERSION)
            subtitle: Union[str, None] = None

        assets: List[Asset] = Field(min_length=1)
        metadata: Metadata

    MediaType: ClassVar[str] = OTA_MANIFEST_MEDIA_TYPE

    items: List[Item] = Field(min_length=1)

    @property
    def software_package_url(self) -> str:
        return self.items[0].assets[0].url


class ProvisioningPayload(AliasEnabledModel):
    payload_type: Literal["com.apple.developer.provisioning-profile"] = Field(alias="PayloadType", default=PROVISIONING_PAYLOAD_TYPE)
    payload_description: str = Field(alias="PayloadDescription")
    payload_display_name: str = Field(alias="PayloadDisplayName")
    payload_identifier: str = Field(alias="PayloadIdentifier")
    payload_uuid: str = Field(alias="PayloadUUID")
    payload_version: int = Field(alias="PayloadVersion", default=PAYLOAD_VERSION)
    provisioning_profile: bytes = Field(alias="ProvisioningProfile", repr=False)


class WebClipPayload(AliasEnabledModel):
    payload_type: Literal["com.apple.webClip.managed"] = Field(alias="PayloadType", default=WEBCLIP_PAYLOAD_TYPE)
    payload_description: str = Field(alias="PayloadDescription")
    payload_display_name: str = Field(alias="PayloadDisplayName")
    payload_identifier: str = Field(alias="PayloadIdentifier")
    payload_uuid: str = Field(alias="PayloadUUID")
    payload_version: int = Field(alias="PayloadVersion", default=PAYLOAD_VERSION)
    url: str = Field(alias="URL")
    label: str = Field(alias="Label")
    is_removable: bool = Field(alias="IsRemovable", default=True)


ProfilePayload = Annotated[
    Union[ProvisioningPayload, WebClipPayload], Field(discriminator="payload_type")
]


class TrustedInstallProfile(PlistModelBase):
    class ConsentText(AliasEnabledModel):
        default: str

    MediaType: ClassVar[str] = PROFILE_MEDIA_TYPE

    payload_content: List[ProfilePayload] = Field(alias="PayloadContent")
    payload_description: str = Field(alias="PayloadDescription")
    payload_display_name: str = Field(alias="PayloadDisplayName")
    payload_identifier: str = Field(alias="PayloadIdentifier")
    payload_organization: str = Field(alias="PayloadOrganization")
    payload_removal_disallowed: bool = Field(alias="PayloadRemovalDisallowed", default=False)
    payload_type: str = Field(alias="PayloadType", default=PROFILE_PAYLOAD_TYPE)
    payload_uuid: str = Field(alias="PayloadUUID")
    payload_version: int = Field(alias="PayloadVersion", default=PAYLOAD_VERSION)
    consent_text: ConsentText = Field(alias="ConsentText")

    @property
    def provisioning_payloads(self) -> List[ProvisioningPayload]:
        return [_p for _p in self.payload_content if isinstance(_p, ProvisioningPayload)]

    @property
    def installer_payload(self) -> WebClipPayload:
        for _p in self.payload_content:
            if isinstance(_p, WebClipPayload):
                return _p
        raise ValueError("profile has no installer payload")
# fmt: on
