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
"""Descriptive helpers for the developer certificates embedded in a provisioning profile.

NOTE that nothing here verifies the certificates, they are only decoded
    so that the signer identity can be shown to the operator.
"""

from __future__ import annotations

import logging
from datetime import datetime

from cryptography.hazmat.primitives import hashes
from cryptography.x509 import (
    Certificate,
    Name,
    load_der_x509_certificate,
    load_pem_x509_certificate,
)
from cryptography.x509.oid import NameOID
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DeveloperCertificateInfo(BaseModel):
    common_name: str | None = None
    organization: str | None = None
    team_id: str | None = None
    not_valid_after: datetime
    sha1_fingerprint: str


def load_developer_certificate(data: bytes) -> Certificate:
    """Profiles store DER certs, but we also accept PEM for convenience."""
    if data.startswith(b"-----BEGIN CERTIFICATE-----"):
        return load_pem_x509_certificate(data)
    return load_der_x509_certificate(data)


def _get_name_attr(name: Name, oid) -> str | None:
    _attrs = name.get_attributes_for_oid(oid)
    if not _attrs:
        return None
    _value = _attrs[0].value
    return _value.decode("utf-8") if isinstance(_value, bytes) else _value


def describe_certificate(cert: Certificate) -> DeveloperCertificateInfo:
    subject = cert.subject
    return DeveloperCertificateInfo(
        common_name=_get_name_attr(subject, NameOID.COMMON_NAME),
        organization=_get_name_attr(subject, NameOID.ORGANIZATION_NAME),
        # Apple puts the team identifier into the OU field
        team_id=_get_name_attr(subject, NameOID.ORGANIZATIONAL_UNIT_NAME),
        not_valid_after=cert.not_valid_after_utc,
        sha1_fingerprint=cert.fingerprint(hashes.SHA1()).hex(),
    )


def describe_developer_certificates(
    raw_certs: list[bytes],
) -> list[DeveloperCertificateInfo]:
    """Decode <raw_certs>, entries that fail to decode are skipped."""
    res: list[DeveloperCertificateInfo] = []
    for _idx, _raw in enumerate(raw_certs):
        try:
            res.append(describe_certificate(load_developer_certificate(_raw)))
        except Exception as e:
            logger.warning(f"skip undecodable developer certificate #{_idx}: {e!r}")
    return res
