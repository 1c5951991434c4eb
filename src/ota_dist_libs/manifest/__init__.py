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
"""Documents handed to iOS devices for over-the-air installation.

Two documents are rendered here, both as XML property lists:
    1. the OTA manifest(manifest.plist), fetched by the device through
        the `itms-services://?action=download-manifest` URL scheme.
    2. the trusted-install configuration profile(.mobileconfig), which
        bundles the provisioning profile with a managed web clip that
        triggers the OTA install.
"""

ITMS_SERVICES_URL_PREFIX = "itms-services://?action=download-manifest&url="
IOS_PLATFORM_IDENTIFIER = "com.apple.platform.iphoneos"

OTA_MANIFEST_MEDIA_TYPE = "application/x-plist"
OTA_MANIFEST_FNAME = "manifest.plist"
PROFILE_MEDIA_TYPE = "application/x-apple-aspen-config"
PROFILE_FNAME_SUFFIX = ".mobileconfig"
