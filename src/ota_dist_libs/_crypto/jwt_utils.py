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

from typing import Any

import jwt

SIGNED_URL_JWT_ALG = "HS256"


def compose_jwt(
    payload: dict[str, Any],
    headers: dict[str, Any] | None = None,
    *,
    key: bytes | str,
    alg: str = SIGNED_URL_JWT_ALG,
) -> str:
    return jwt.encode(
        payload=payload,
        headers=headers,
        key=key,
        algorithm=alg,
    )


def get_verified_jwt_payload(
    token: str,
    *,
    key: bytes | str,
    allowed_algs: list[str] | None = None,
    leeway: float = 0,
) -> dict[str, Any]:
    """Parse the input JWT, verify its signature and `exp` claim, then return its payload.

    Raises:
        jwt.ExpiredSignatureError if the token is expired.
        jwt.InvalidTokenError for all other verification failures.
    """
    return jwt.decode(
        token,
        key=key,
        algorithms=allowed_algs or [SIGNED_URL_JWT_ALG],
        leeway=leeway,
        options={"verify_signature": True, "require": ["exp"]},
    )
