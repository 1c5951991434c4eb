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

# ------ OTA manifest ------ #

ASSET_KIND_SOFTWARE_PACKAGE = "software-package"
METADATA_KIND_SOFTWARE = "software"

KEY_BUNDLE_IDENTIFIER = "bundle-identifier"
KEY_BUNDLE_VERSION = "bundle-version"
KEY_PLATFORM_IDENTIFIER = "platform-identifier"
KEY_MINIMUM_OS_VERSION = "minimum-os-version"

# ------ configuration profile ------ #

PROFILE_PAYLOAD_TYPE = "Configuration"
PROVISIONING_PAYLOAD_TYPE = "com.apple.developer.provisioning-profile"
WEBCLIP_PAYLOAD_TYPE = "com.apple.webClip.managed"
PAYLOAD_VERSION = 1

PROFILE_IDENTIFIER_SUFFIX = ".auto.profile"
PROVISIONING_IDENTIFIER_SUFFIX = ".provisioning"
INSTALLER_IDENTIFIER_SUFFIX = ".installer"

CONSENT_INTRO_TMPL = "This profile will automatically install {app_name} on your device."
CONSENT_FOOTER = "The information above was extracted automatically from the IPA file."
