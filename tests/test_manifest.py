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
"""Tests for the OTA manifest and trusted-install profile rendering."""

from __future__ import annotations

import base64
import plistlib
import re
from urllib.parse import unquote

import pytest

from ota_dist_libs.errors import CorruptTrustArtifact, PolicyViolation
from ota_dist_libs.ipa.schema import DistributionClass, DistributionMetadata
from ota_dist_libs.manifest.ota_manifest import ota_manifest_headers, render_ota_manifest
from ota_dist_libs.manifest.profile import (
    ProfileConfig,
    build_consent_text,
    install_trigger_url,
    profile_filename,
    profile_headers,
    render_install_page,
    render_trusted_install_profile,
)
from ota_dist_libs.manifest.schema import (
    OTAManifest,
    ProvisioningPayload,
    TrustedInstallProfile,
    WebClipPayload,
)

UUID4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)
MANIFEST_URL = "https://dist.example.com/api/download/tok-123/manifest?x=1&y=2"
PROFILE_RAW = b"\x30\x82signed profile bytes"


@pytest.fixture
def metadata() -> DistributionMetadata:
    return DistributionMetadata(
        bundle_id="com.acme.app",
        display_name="Acme",
        short_version="1.2.3",
        build_id="7",
        minimum_os_version="15.0",
        supported_devices=["phone", "tablet"],
        distribution_class=DistributionClass.ad_hoc,
        provisioning_profile_b64=base64.b64encode(PROFILE_RAW).decode(),
        team_id="TEAM123456",
    )


def _config(metadata: DistributionMetadata, **kwargs) -> ProfileConfig:
    _config = ProfileConfig.from_metadata(
        metadata, manifest_url=MANIFEST_URL, organization_name="Acme Inc."
    )
    return _config.model_copy(update=kwargs)


class TestOTAManifest:
    def test_render(self, metadata):
        _url = "https://storage.example.com/acme.ipa?sig=abc"
        _exported = render_ota_manifest(metadata, _url).export_plist()
        assert _exported.startswith(b"<?xml")

        _item = plistlib.loads(_exported)["items"][0]
        assert _item["assets"] == [{"kind": "software-package", "url": _url}]
        assert _item["metadata"] == {
            "bundle-identifier": "com.acme.app",
            "bundle-version": "1.2.3",
            "kind": "software",
            "platform-identifier": "com.apple.platform.iphoneos",
            "title": "Acme",
            "minimum-os-version": "15.0",
            "subtitle": "v1.2.3 (7)",
        }

    def test_title_override(self, metadata):
        _manifest = render_ota_manifest(metadata, "https://x/y.ipa", title="Acme Beta")
        assert _manifest.items[0].metadata.title == "Acme Beta"

    def test_url_is_escaped(self, metadata):
        """Query strings survive as XML-escaped text."""
        _url = "https://storage.example.com/acme.ipa?a=1&b=2"
        _exported = render_ota_manifest(metadata, _url).export_plist()
        assert b"a=1&amp;b=2" in _exported
        assert OTAManifest.parse_plist(_exported).software_package_url == _url

    def test_headers(self):
        assert ota_manifest_headers() == {
            "Content-Type": "application/x-plist",
            "Content-Disposition": 'inline; filename="manifest.plist"',
            "Cache-Control": "no-cache",
        }


class TestTrustedInstallProfile:
    @pytest.mark.parametrize(
        "_class",
        (
            DistributionClass.ad_hoc,
            DistributionClass.enterprise,
            DistributionClass.development_build,
        ),
    )
    def test_sideloadable(self, metadata, _class):
        _profile = render_trusted_install_profile(
            _config(metadata, distribution_class=_class)
        )
        assert isinstance(_profile, TrustedInstallProfile)

    def test_appstore_rejected(self, metadata):
        with pytest.raises(PolicyViolation):
            render_trusted_install_profile(
                _config(metadata, distribution_class=DistributionClass.app_store)
            )

    def test_payloads(self, metadata):
        """Provisioning payload first, then the installer web clip."""
        _profile = render_trusted_install_profile(_config(metadata))
        _provisioning, _installer = _profile.payload_content
        assert isinstance(_provisioning, ProvisioningPayload)
        assert isinstance(_installer, WebClipPayload)

        assert _provisioning.payload_identifier == "com.acme.app.provisioning"
        assert _provisioning.provisioning_profile == PROFILE_RAW
        assert _installer.payload_identifier == "com.acme.app.installer"
        assert _installer.label == "Acme"
        assert _installer.is_removable is True

    def test_no_provisioning_payload_without_profile(self, metadata):
        _profile = render_trusted_install_profile(
            _config(metadata, provisioning_profile_b64=None)
        )
        assert _profile.provisioning_payloads == []
        assert len(_profile.payload_content) == 1
        assert isinstance(_profile.installer_payload, WebClipPayload)

    def test_invalid_stored_profile(self, metadata):
        with pytest.raises(CorruptTrustArtifact):
            render_trusted_install_profile(
                _config(metadata, provisioning_profile_b64="not base64!!")
            )

    def test_install_trigger_url(self, metadata):
        _installer = render_trusted_install_profile(_config(metadata)).installer_payload
        _prefix = "itms-services://?action=download-manifest&url="
        assert _installer.url.startswith(_prefix)

        _encoded = _installer.url[len(_prefix) :]
        assert not set(":/?&=") & set(_encoded)
        assert unquote(_encoded) == MANIFEST_URL
        assert _installer.url == install_trigger_url(MANIFEST_URL)

    def test_uuids(self, metadata):
        """Every payload gets a fresh, well-formed version 4 UUID."""
        _uuids = []
        for _ in range(20):
            _profile = render_trusted_install_profile(_config(metadata))
            _uuids.append(_profile.payload_uuid)
            _uuids.extend(_p.payload_uuid for _p in _profile.payload_content)

        assert all(UUID4_PATTERN.match(_uuid) for _uuid in _uuids)
        assert len(set(_uuids)) == len(_uuids)

    def test_document(self, metadata):
        _doc = plistlib.loads(render_trusted_install_profile(_config(metadata)).export_plist())
        assert _doc["PayloadType"] == "Configuration"
        assert _doc["PayloadVersion"] == 1
        assert _doc["PayloadIdentifier"] == "com.acme.app.auto.profile"
        assert _doc["PayloadOrganization"] == "Acme Inc."
        assert _doc["PayloadRemovalDisallowed"] is False
        assert _doc["PayloadDisplayName"] == "Acme Auto Install"
        assert "Ad Hoc Distribution" in _doc["PayloadDescription"]

        _provisioning, _installer = _doc["PayloadContent"]
        assert _provisioning["PayloadType"] == "com.apple.developer.provisioning-profile"
        assert _provisioning["ProvisioningProfile"] == PROFILE_RAW
        assert _installer["PayloadType"] == "com.apple.webClip.managed"
        assert _installer["IsRemovable"] is True
        assert _doc["ConsentText"]["default"] == build_consent_text(_config(metadata))

    def test_parse_back(self, metadata):
        _profile = render_trusted_install_profile(_config(metadata))
        assert TrustedInstallProfile.parse_plist(_profile.export_plist()) == _profile

    def test_filename_and_headers(self):
        assert profile_filename("acme", "1.2.3") == "acme-auto-v1.2.3.mobileconfig"
        assert profile_headers("acme", "1.2.3") == {
            "Content-Type": "application/x-apple-aspen-config",
            "Content-Disposition": 'attachment; filename="acme-auto-v1.2.3.mobileconfig"',
        }


class TestConsentText:
    def test_lines(self, metadata):
        _lines = build_consent_text(_config(metadata)).split("\n")
        assert _lines == [
            "This profile will automatically install Acme on your device.",
            "",
            "App: Acme",
            "Version: 1.2.3 (7)",
            "Distribution: Ad Hoc Distribution",
            "Bundle ID: com.acme.app",
            "Team ID: TEAM123456",
            "Minimum iOS: 15.0",
            "Supported: iPhone, iPad",
            "",
            "The information above was extracted automatically from the IPA file.",
        ]

    def test_optional_lines_omitted(self, metadata):
        """Absent optional fields leave no blank lines behind."""
        _lines = build_consent_text(
            _config(metadata, team_id=None, minimum_os_version=None)
        ).split("\n")
        assert not any(_line.startswith("Team ID") for _line in _lines)
        assert not any(_line.startswith("Minimum iOS") for _line in _lines)
        assert _lines[5:7] == ["Bundle ID: com.acme.app", "Supported: iPhone, iPad"]
        assert _lines.count("") == 2


class TestInstallPage:
    def test_render(self):
        _page = render_install_page("Acme <Beta>", "1.2.3", MANIFEST_URL)
        assert "Acme &lt;Beta&gt;" in _page
        assert "Version: 1.2.3" in _page
        assert "itms-services://?action=download-manifest&amp;url=https%3A%2F%2F" in _page
