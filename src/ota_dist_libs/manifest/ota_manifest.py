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

from typing import Optional

from ota_dist_libs.ipa.schema import DistributionMetadata

from . import OTA_MANIFEST_FNAME
from .schema import OTAManifest


def manifest_subtitle(short_version: str, build_id: str) -> str:
    return f"v{short_version} ({build_id})"


def render_ota_manifest(
    metadata: DistributionMetadata,
    signed_binary_url: str,
    *,
    title: Optional[str] = None,
) -> OTAManifest:
    """Render the OTA manifest pointing the device at <signed_binary_url>.

    Args:
        metadata: the inspected metadata of the artifact to install.
        signed_binary_url: URL the device downloads the .ipa from.
        title: title shown in the install prompt, default to the display name.
    """
    return OTAManifest(
        items=[
            OTAManifest.Item(
                assets=[OTAManifest.Item.Asset(url=signed_binary_url)],
                metadata=OTAManifest.Item.Metadata(
                    bundle_identifier=metadata.bundle_id,
                    bundle_version=metadata.short_version,
                    title=title or metadata.display_name,
                    minimum_os_version=metadata.minimum_os_version,
                    subtitle=manifest_subtitle(
                        metadata.short_version, metadata.build_id
                    ),
                ),
            )
        ]
    )


def ota_manifest_headers() -> dict[str, str]:
    return {
        "Content-Type": OTAManifest.MediaType,
        "Content-Disposition": f'inline; filename="{OTA_MANIFEST_FNAME}"',
        "Cache-Control": "no-cache",
    }
