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
"""Render the trusted-install configuration profile.

The profile is served to the device as a .mobileconfig. Installing it
    installs the provisioning profile(if any), then puts a managed web clip
    on the home screen which triggers the OTA install via itms-services.
"""

from __future__ import annotations

import base64
import binascii
import html
import logging
from typing import List, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from ota_dist_libs.common import random_uuid4
from ota_dist_libs.errors import CorruptTrustArtifact, PolicyViolation
from ota_dist_libs.ipa.schema import DistributionClass, DistributionMetadata

from . import ITMS_SERVICES_URL_PREFIX, PROFILE_FNAME_SUFFIX
from .consts import (
    CONSENT_FOOTER,
    CONSENT_INTRO_TMPL,
    INSTALLER_IDENTIFIER_SUFFIX,
    PROFILE_IDENTIFIER_SUFFIX,
    PROVISIONING_IDENTIFIER_SUFFIX,
)
from .schema import ProvisioningPayload, TrustedInstallProfile, WebClipPayload

logger = logging.getLogger(__name__)

DEVICE_DISPLAY_NAMES = {"phone": "iPhone", "tablet": "iPad"}


class ProfileConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_name: str
    bundle_id: str
    version: str
    build_id: str
    manifest_url: str
    organization_name: str
    distribution_class: DistributionClass
    provisioning_profile_b64: Optional[str] = Field(default=None, repr=False)
    team_id: Optional[str] = None
    minimum_os_version: Optional[str] = None
    supported_devices: List[str] = Field(default_factory=lambda: ["phone"])

    @classmethod
    def from_metadata(
        cls,
        metadata: DistributionMetadata,
        *,
        manifest_url: str,
        organization_name: str,
        app_name: Optional[str] = None,
    ) -> ProfileConfig:
        return cls(
            app_name=app_name or metadata.display_name,
            bundle_id=metadata.bundle_id,
            version=metadata.short_version,
            build_id=metadata.build_id,
            manifest_url=manifest_url,
            organization_name=organization_name,
            distribution_class=metadata.distribution_class,
            provisioning_profile_b64=metadata.provisioning_profile_b64,
            team_id=metadata.team_id,
            minimum_os_version=metadata.minimum_os_version,
            supported_devices=metadata.supported_devices,
        )


def install_trigger_url(manifest_url: str) -> str:
    """The itms-services URL that makes iOS fetch <manifest_url> and install."""
    return f"{ITMS_SERVICES_URL_PREFIX}{quote(manifest_url, safe='')}"


def profile_filename(slug: str, version: str) -> str:
    return f"{slug}-auto-v{version}{PROFILE_FNAME_SUFFIX}"


def profile_headers(slug: str, version: str) -> dict[str, str]:
    return {
        "Content-Type": TrustedInstallProfile.MediaType,
        "Content-Disposition": f'attachment; filename="{profile_filename(slug, version)}"',
    }


def build_consent_text(config: ProfileConfig) -> str:
    _devices = ", ".join(
        DEVICE_DISPLAY_NAMES.get(_d, _d) for _d in config.supported_devices
    )
    lines = [
        CONSENT_INTRO_TMPL.format(app_name=config.app_name),
        "",
        f"App: {config.app_name}",
        f"Version: {config.version} ({config.build_id})",
        f"Distribution: {config.distribution_class.display_label}",
        f"Bundle ID: {config.bundle_id}",
    ]
    if config.team_id:
        lines.append(f"Team ID: {config.team_id}")
    if config.minimum_os_version:
        lines.append(f"Minimum iOS: {config.minimum_os_version}")
    lines += [f"Supported: {_devices}", "", CONSENT_FOOTER]
    return "\n".join(lines)


def _decode_provisioning_profile(_b64: str) -> bytes:
    try:
        return base64.b64decode(_b64, validate=True)
    except binascii.Error as e:
        raise CorruptTrustArtifact(
            f"stored provisioning profile is not valid base64: {e}"
        ) from e


def ensure_sideloadable(distribution_class: DistributionClass, **details) -> None:
    """
    Raises:
        PolicyViolation if <distribution_class> cannot be installed over the air.
    """
    if not distribution_class.sideloadable:
        raise PolicyViolation(
            "App Store builds cannot be installed with a configuration profile, "
            "use TestFlight instead",
            details=details,
        )


def render_trusted_install_profile(config: ProfileConfig) -> TrustedInstallProfile:
    """Render the configuration profile for <config>.

    Every call generates fresh UUIDs for the profile and all its payloads.

    Raises:
        PolicyViolation if the artifact is an App Store build.
        CorruptTrustArtifact if the provisioning profile cannot be decoded.
    """
    ensure_sideloadable(config.distribution_class, bundle_id=config.bundle_id)

    payloads: list[ProvisioningPayload | WebClipPayload] = []
    if config.provisioning_profile_b64:
        payloads.append(
            ProvisioningPayload(
                payload_description=f"Provisioning Profile for {config.app_name}",
                payload_display_name=f"{config.app_name} Provisioning",
                payload_identifier=f"{config.bundle_id}{PROVISIONING_IDENTIFIER_SUFFIX}",
                payload_uuid=random_uuid4(),
                provisioning_profile=_decode_provisioning_profile(
                    config.provisioning_profile_b64
                ),
            )
        )
    payloads.append(
        WebClipPayload(
            payload_description=f"Install {config.app_name} v{config.version}",
            payload_display_name=f"{config.app_name} Installer",
            payload_identifier=f"{config.bundle_id}{INSTALLER_IDENTIFIER_SUFFIX}",
            payload_uuid=random_uuid4(),
            url=install_trigger_url(config.manifest_url),
            label=config.app_name,
        )
    )

    _label = config.distribution_class.display_label
    logger.debug(
        f"render profile for {config.bundle_id} ({_label}), "
        f"with {len(payloads)} payload(s)"
    )
    return TrustedInstallProfile(
        payload_content=payloads,
        payload_description=f"{config.app_name} - Automatic Install Profile ({_label})",
        payload_display_name=f"{config.app_name} Auto Install",
        payload_identifier=f"{config.bundle_id}{PROFILE_IDENTIFIER_SUFFIX}",
        payload_organization=config.organization_name,
        payload_uuid=random_uuid4(),
        consent_text=TrustedInstallProfile.ConsentText(
            default=build_consent_text(config)
        ),
    )


INSTALL_PAGE_TMPL = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Install {app_name}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, sans-serif; padding: 20px; text-align: center; background: #f5f5f7; }}
    .container {{ max-width: 400px; margin: 50px auto; background: white; border-radius: 12px; padding: 30px; }}
    .install-btn {{ background: #007AFF; color: white; padding: 15px 30px; border-radius: 8px; font-weight: 600; text-decoration: none; display: inline-block; margin: 20px 0; }}
    .info {{ color: #666; font-size: 14px; line-height: 1.5; }}
  </style>
</head>
<body>
  <div class="container">
    <h2>{app_name}</h2>
    <p>Version: {version}</p>
    <a href="{install_url}" class="install-btn">Install App</a>
    <div class="info">
      <p><strong>Installation:</strong></p>
      <p>1. Tap "Install App".</p>
      <p>2. Confirm the install prompt.</p>
      <p>3. Trust the developer in Settings &gt; General &gt; VPN &amp; Device Management.</p>
    </div>
  </div>
</body>
</html>
"""


def render_install_page(app_name: str, version: str, manifest_url: str) -> str:
    """HTML landing page with the itms-services install link, for iOS browsers."""
    return INSTALL_PAGE_TMPL.format(
        app_name=html.escape(app_name),
        version=html.escape(version),
        install_url=html.escape(install_trigger_url(manifest_url)),
    )
