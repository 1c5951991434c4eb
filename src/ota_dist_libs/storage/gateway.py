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

import logging
import time
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote

import jwt

from ota_dist_libs._crypto.jwt_utils import compose_jwt, get_verified_jwt_payload
from ota_dist_libs.errors import StorageUnavailable, TokenExpired, UpstreamFetchFailure

logger = logging.getLogger(__name__)

CONTENT_TYPE_SUFFIX = ".content-type"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
SIGNED_URL_PATH = "/api/storage"
SIGNATURE_QUERY = "sig"


class StorageGateway(Protocol):
    def sign(self, key: str, ttl_seconds: int) -> str:
        """Return a URL that grants GET access to <key> for <ttl_seconds>."""
        ...

    def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> bytes: ...


class InvalidSignature(ValueError):
    """The signed URL doesn't grant access to the requested key."""


class LocalStorageGateway:
    """StorageGateway backed by a local directory.

    Signed URLs point back to the HTTP server's storage endpoint, carrying
        a HS256 JWT bound to the object key with an `exp` claim.
    """

    def __init__(self, root: str | Path, *, base_url: str, secret: str | bytes) -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")
        self._secret = secret

    def _object_path(self, key: str) -> Path:
        _key = PurePosixPath(key)
        if _key.is_absolute() or ".." in _key.parts or not _key.parts:
            raise ValueError(f"invalid object key: {key!r}")
        return self._root.joinpath(*_key.parts)

    def put(self, key: str, data: bytes, content_type: str) -> None:
        _dst = self._object_path(key)
        try:
            _dst.parent.mkdir(parents=True, exist_ok=True)
            _dst.write_bytes(data)
            _dst.with_name(_dst.name + CONTENT_TYPE_SUFFIX).write_text(content_type)
        except OSError as e:
            raise StorageUnavailable(f"failed to store {key}: {e!r}") from e
        logger.debug(f"stored {key} ({len(data)} bytes)")

    def get(self, key: str) -> bytes:
        try:
            return self._object_path(key).read_bytes()
        except OSError as e:
            raise UpstreamFetchFailure(f"failed to fetch {key}: {e!r}") from e

    def content_type(self, key: str) -> str:
        _path = self._object_path(key)
        try:
            return _path.with_name(_path.name + CONTENT_TYPE_SUFFIX).read_text()
        except OSError:
            return DEFAULT_CONTENT_TYPE

    def object_path(self, key: str) -> Path:
        """Return the local path of <key>.

        Raises:
            UpstreamFetchFailure if the object doesn't exist.
        """
        _path = self._object_path(key)
        if not _path.is_file():
            raise UpstreamFetchFailure(f"object {key} not found")
        return _path

    def sign(self, key: str, ttl_seconds: int) -> str:
        self._object_path(key)
        _sig = compose_jwt(
            {"key": key, "exp": int(time.time() + ttl_seconds)}, key=self._secret
        )
        return f"{self._base_url}{SIGNED_URL_PATH}/{quote(key)}?{SIGNATURE_QUERY}={_sig}"

    def verify(self, key: str, signature: str) -> None:
        """Check that <signature> grants access to <key>.

        Raises:
            TokenExpired if the signature is expired.
            InvalidSignature for all other failures.
        """
        try:
            _payload = get_verified_jwt_payload(signature, key=self._secret)
        except jwt.ExpiredSignatureError as e:
            raise TokenExpired("signed URL expired", details={"key": key}) from e
        except jwt.InvalidTokenError as e:
            raise InvalidSignature(f"invalid signature: {e}") from e

        if _payload.get("key") != key:
            raise InvalidSignature("signature is bound to another object")
