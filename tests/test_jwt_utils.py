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
"""Test JWT utilities."""

from __future__ import annotations

import time

import jwt
import pytest

from ota_dist_libs._crypto.jwt_utils import compose_jwt, get_verified_jwt_payload

SECRET = "jwt-utils-test-secret-with-enough-length"


class TestJWTUtils:
    def test_compose_jwt(self):
        """Test JWT composition."""
        token = compose_jwt({"key": "a", "exp": int(time.time()) + 60}, key=SECRET)
        assert isinstance(token, str)
        assert len(token.split(".")) == 3
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_get_verified_jwt_payload(self):
        """Test JWT payload verification."""
        _exp = int(time.time()) + 60
        token = compose_jwt({"key": "a", "exp": _exp}, key=SECRET)
        assert get_verified_jwt_payload(token, key=SECRET) == {"key": "a", "exp": _exp}

    def test_wrong_key(self):
        token = compose_jwt({"exp": int(time.time()) + 60}, key=SECRET)
        with pytest.raises(jwt.InvalidSignatureError):
            get_verified_jwt_payload(token, key="another-secret-with-enough-length!!")

    def test_expired(self):
        token = compose_jwt({"exp": int(time.time()) - 60}, key=SECRET)
        with pytest.raises(jwt.ExpiredSignatureError):
            get_verified_jwt_payload(token, key=SECRET)

        # leeway accepts slightly expired tokens
        assert get_verified_jwt_payload(token, key=SECRET, leeway=120)

    def test_exp_required(self):
        """Tokens without expiration are never accepted."""
        token = compose_jwt({"key": "a"}, key=SECRET)
        with pytest.raises(jwt.MissingRequiredClaimError):
            get_verified_jwt_payload(token, key=SECRET)

    def test_alg_not_allowed(self):
        token = compose_jwt({"exp": int(time.time()) + 60}, key=SECRET, alg="HS512")
        with pytest.raises(jwt.InvalidAlgorithmError):
            get_verified_jwt_payload(token, key=SECRET)
        assert get_verified_jwt_payload(token, key=SECRET, allowed_algs=["HS512"])
