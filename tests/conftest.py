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
"""Shared test fixtures for ota-dist-libs tests."""

from __future__ import annotations

import plistlib
import struct
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from ota_dist_libs.registry.db import DistributionDBHelper
from ota_dist_libs.registry.schema import BinaryArtifactRecord
from ota_dist_libs.storage import LocalStorageGateway

TEST_BASE_URL = "http://testserver"
TEST_SECRET = "test-secret-with-enough-length-for-hs256!"

ACME_BUNDLE_ID = "com.acme.app"
ACME_VERSION = "1.2.3"
ACME_BUILD = "7"
ACME_TEAM_ID = "TEAM123456"

# 1.2.840.113549.1.7.1
OID_DATA = bytes.fromhex("2a864886f70d010701")
# 1.2.840.113549.1.7.2
OID_SIGNED_DATA = bytes.fromhex("2a864886f70d010702")


#
# ------ DER / CMS helpers ------ #
#


def der(tag: int, value: bytes) -> bytes:
    _len = len(value)
    if _len < 0x80:
        return bytes([tag, _len]) + value
    _len_bytes = _len.to_bytes((_len.bit_length() + 7) // 8, "big")
    return bytes([tag, 0x80 | len(_len_bytes)]) + _len_bytes + value


def ber_indefinite(tag: int, value: bytes) -> bytes:
    """Constructed element with indefinite length, terminated by end-of-contents."""
    return bytes([tag, 0x80]) + value + b"\x00\x00"


def wrap_signed_data(
    content: bytes,
    *,
    detached: bool = False,
    chunked: bool = False,
    indefinite: bool = False,
) -> bytes:
    """Wrap <content> as a (unsigned) CMS SignedData.

    With <indefinite>, every constructed element uses BER indefinite length
        and the content is split into OCTET STRING chunks, the framing that
        codesign emits for embedded.mobileprovision.
    """
    _constructed = ber_indefinite if indefinite else der
    if chunked or indefinite:
        _half = len(content) // 2
        _octets = _constructed(
            0x24, der(0x04, content[:_half]) + der(0x04, content[_half:])
        )
    else:
        _octets = der(0x04, content)

    _econtent = b"" if detached else _constructed(0xA0, _octets)
    encap = _constructed(0x30, der(0x06, OID_DATA) + _econtent)
    signed_data = _constructed(
        0x30,
        der(0x02, b"\x01")  # version
        + der(0x31, b"")  # digestAlgorithms
        + encap
        + der(0x31, b""),  # signerInfos
    )
    return _constructed(
        0x30, der(0x06, OID_SIGNED_DATA) + _constructed(0xA0, signed_data)
    )


#
# ------ IPA helpers ------ #
#


def make_info_plist(**overrides: Any) -> dict[str, Any]:
    info: dict[str, Any] = {
        "CFBundleIdentifier": ACME_BUNDLE_ID,
        "CFBundleDisplayName": "Acme",
        "CFBundleName": "AcmeApp",
        "CFBundleShortVersionString": ACME_VERSION,
        "CFBundleVersion": ACME_BUILD,
        "MinimumOSVersion": "15.0",
        "UIDeviceFamily": [1, 2],
    }
    for _key, _value in overrides.items():
        if _value is None:
            info.pop(_key, None)
        else:
            info[_key] = _value
    return info


def make_profile_plist(
    *,
    devices: list[str] | None = None,
    all_devices: bool = False,
    get_task_allow: bool = False,
    certificates: list[bytes] | None = None,
) -> dict[str, Any]:
    profile: dict[str, Any] = {
        "UUID": "2f1b5ad6-8c5e-4c1a-9a3c-0d3c7d6a1f00",
        "Name": "Acme AdHoc",
        "TeamIdentifier": [ACME_TEAM_ID],
        "ExpirationDate": datetime(2030, 1, 1, 0, 0, 0),
        "Entitlements": {"get-task-allow": get_task_allow},
        "DeveloperCertificates": certificates or [],
    }
    if devices is not None:
        profile["ProvisionedDevices"] = devices
    if all_devices:
        profile["ProvisionsAllDevices"] = True
    return profile


def build_ipa(
    dst: Path,
    *,
    info: dict[str, Any] | None = None,
    info_fmt=plistlib.FMT_XML,
    profile: dict[str, Any] | None = None,
    profile_raw: bytes | None = None,
    app_dir: str = "Payload/Acme.app",
    extra_entries: dict[str, bytes] | None = None,
) -> Path:
    """Write a minimal .ipa to <dst>.

    <profile> is wrapped into a CMS SignedData, <profile_raw> is stored as is.
    """
    if info is None:
        info = make_info_plist()

    with zipfile.ZipFile(dst, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(f"{app_dir}/Info.plist", plistlib.dumps(info, fmt=info_fmt))
        zf.writestr(f"{app_dir}/Acme", b"\xcf\xfa\xed\xfe" + b"\x00" * 64)
        if profile is not None:
            zf.writestr(
                f"{app_dir}/embedded.mobileprovision",
                wrap_signed_data(plistlib.dumps(profile)),
            )
        elif profile_raw is not None:
            zf.writestr(f"{app_dir}/embedded.mobileprovision", profile_raw)
        for _name, _data in (extra_entries or {}).items():
            zf.writestr(_name, _data)
    return dst


def corrupt_entry_data(ipa: Path, suffix: str) -> None:
    """Invert every byte of the compressed data of the entry ending with <suffix>."""
    with zipfile.ZipFile(ipa) as zf:
        _entry = next(_i for _i in zf.infolist() if _i.filename.endswith(suffix))
    assert _entry.compress_type == zipfile.ZIP_DEFLATED

    with open(ipa, "r+b") as f:
        # local file header: name and extra field lengths at offset 26
        f.seek(_entry.header_offset + 26)
        _name_len, _extra_len = struct.unpack("<HH", f.read(4))
        _data_start = _entry.header_offset + 30 + _name_len + _extra_len
        f.seek(_data_start)
        _data = f.read(_entry.compress_size)
        f.seek(_data_start)
        f.write(bytes(_b ^ 0xFF for _b in _data))


@pytest.fixture
def ipa_factory(tmp_path: Path) -> Callable[..., Path]:
    _count = 0

    def _factory(**kwargs) -> Path:
        nonlocal _count
        _count += 1
        return build_ipa(tmp_path / f"app_{_count}.ipa", **kwargs)

    return _factory


@pytest.fixture
def adhoc_ipa(ipa_factory) -> Path:
    """com.acme.app 1.2.3 build 7, provisioned for two devices."""
    return ipa_factory(profile=make_profile_plist(devices=["udid-1", "udid-2"]))


@pytest.fixture
def ber_adhoc_ipa(ipa_factory) -> Path:
    """Same as <adhoc_ipa>, with the profile in BER indefinite length framing."""
    _profile = make_profile_plist(devices=["udid-1", "udid-2"])
    return ipa_factory(
        profile_raw=wrap_signed_data(plistlib.dumps(_profile), indefinite=True)
    )


@pytest.fixture
def appstore_ipa(ipa_factory) -> Path:
    return ipa_factory()


#
# ------ persistence / storage ------ #
#


@pytest.fixture
def dist_db(tmp_path: Path) -> DistributionDBHelper:
    db = DistributionDBHelper(tmp_path / "dist.sqlite3")
    db.bootstrap_db()
    return db


@pytest.fixture
def gateway(tmp_path: Path) -> LocalStorageGateway:
    return LocalStorageGateway(
        tmp_path / "storage", base_url=TEST_BASE_URL, secret=TEST_SECRET
    )


def make_artifact_record(artifact_id: str = "a" * 32, **kwargs) -> BinaryArtifactRecord:
    _fields: dict[str, Any] = dict(
        artifact_id=artifact_id,
        slug="acme",
        app_name="Acme",
        version=ACME_VERSION,
        storage_key=f"apps/{artifact_id}/versions/{ACME_VERSION}/1-deadbeef.ipa",
        platform="ios",
        file_size=1024,
        sha256="0" * 64,
        created_at=1_700_000_000.0,
    )
    _fields.update(kwargs)
    return BinaryArtifactRecord(**_fields)


@pytest.fixture
def registered_artifact(dist_db: DistributionDBHelper) -> BinaryArtifactRecord:
    record = make_artifact_record()
    dist_db.insert_artifact(record)
    return record


#
# ------ certificates ------ #
#


@pytest.fixture(scope="session")
def developer_cert_der() -> bytes:
    """A self-signed certificate shaped like an Apple developer certificate."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, "Apple Distribution: Acme Inc."),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, ACME_TEAM_ID),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Acme Inc."),
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        ]
    )
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime.now(timezone.utc))
        .not_valid_after(datetime.now(timezone.utc) + timedelta(days=365))
        .sign(private_key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)
