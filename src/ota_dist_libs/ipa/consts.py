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
"""Consts related to iOS application archive."""

APP_BUNDLE_SUFFIX = ".app"
DESCRIPTOR_FNAME = "Info.plist"
TRUST_ARTIFACT_FNAME = "embedded.mobileprovision"

DEFAULT_MINIMUM_OS_VERSION = "12.0"

DEVICE_PHONE = "phone"
DEVICE_TABLET = "tablet"
DEVICE_FAMILY_CODES = {1: DEVICE_PHONE, 2: DEVICE_TABLET}
DEFAULT_SUPPORTED_DEVICES = (DEVICE_PHONE,)

XML_START_MARKER = b"<?xml"
PLIST_END_MARKER = b"</plist>"

# ------ Info.plist keys ------ #

KEY_BUNDLE_ID = "CFBundleIdentifier"
KEY_DISPLAY_NAME = "CFBundleDisplayName"
KEY_BUNDLE_NAME = "CFBundleName"
KEY_SHORT_VERSION = "CFBundleShortVersionString"
KEY_BUNDLE_VERSION = "CFBundleVersion"
KEY_MINIMUM_OS = "MinimumOSVersion"
KEY_DEVICE_FAMILY = "UIDeviceFamily"

# ------ provisioning profile keys ------ #

KEY_PROFILE_UUID = "UUID"
KEY_PROFILE_NAME = "Name"
KEY_TEAM_IDENTIFIER = "TeamIdentifier"
KEY_EXPIRATION_DATE = "ExpirationDate"
KEY_PROVISIONED_DEVICES = "ProvisionedDevices"
KEY_PROVISIONS_ALL_DEVICES = "ProvisionsAllDevices"
KEY_ENTITLEMENTS = "Entitlements"
KEY_GET_TASK_ALLOW = "get-task-allow"
KEY_DEVELOPER_CERTIFICATES = "DeveloperCertificates"

# ------ upload validation ------ #

ALLOWED_EXTENSIONS = {
    "ios": (".ipa",),
    "android": (".apk", ".aab"),
}
MAX_UPLOAD_SIZE = 100 * 1024**2  # 100MiB
IPA_CONTENT_TYPE = "application/octet-stream"
APK_CONTENT_TYPE = "application/vnd.android.package-archive"
