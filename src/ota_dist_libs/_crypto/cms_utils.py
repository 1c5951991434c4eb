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
"""Pull the signed content out of a CMS SignedData container.

See https://datatracker.ietf.org/doc/html/rfc5652#section-5.1 for the layout.

Provisioning profiles are BER encoded (indefinite length framing is common),
    so parsing is left to asn1crypto. The signature itself is NOT checked.
"""

from __future__ import annotations

from asn1crypto import cms

SIGNED_DATA_CONTENT_TYPE = "signed_data"


def load_content_info(data: bytes) -> cms.ContentInfo:
    """Parse <data> as a BER/DER encoded CMS ContentInfo.

    Raises:
        ValueError if <data> is not a ContentInfo.
    """
    try:
        content_info = cms.ContentInfo.load(data)
        # NOTE: asn1crypto parses lazily, touch the content type to fail early.
        content_info["content_type"].native
    except (TypeError, KeyError) as e:
        raise ValueError(f"not a CMS ContentInfo: {e!r}") from e
    return content_info


def extract_signed_content(data: bytes) -> bytes:
    """Return the encapsulated content octets of a CMS SignedData.

    Raises:
        ValueError if <data> is not a SignedData with attached content.
    """
    content_info = load_content_info(data)
    if content_info["content_type"].native != SIGNED_DATA_CONTENT_TYPE:
        raise ValueError("contentType is not id-signedData")

    try:
        signed_data = content_info["content"]
        if not isinstance(signed_data, cms.SignedData):
            raise ValueError("ContentInfo has no SignedData content")
        res = signed_data["encap_content_info"]["content"].native
    except (TypeError, KeyError) as e:
        raise ValueError(f"malformed SignedData: {e!r}") from e

    if res is None:
        raise ValueError("SignedData is detached, no eContent")
    if not isinstance(res, bytes):
        raise ValueError(f"unexpected eContent type: {type(res)}")
    return res
