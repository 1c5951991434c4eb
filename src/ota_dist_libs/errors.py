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
"""Error taxonomy of the distribution core.

Every failure surfaced by the libs is a subclass of `DistError`, and each
    subclass is bound to exactly one `ErrorKind`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    MissingDescriptor = "MissingDescriptor"
    CorruptTrustArtifact = "CorruptTrustArtifact"
    PolicyViolation = "PolicyViolation"
    TokenNotFound = "TokenNotFound"
    TokenExpired = "TokenExpired"
    TokenCollision = "TokenCollision"
    StorageUnavailable = "StorageUnavailable"
    UpstreamFetchFailure = "UpstreamFetchFailure"
    ArtifactNotFound = "ArtifactNotFound"
    NotInspected = "NotInspected"
    InvalidUpload = "InvalidUpload"


class DistError(Exception):
    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            _details = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({_details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class MissingDescriptor(DistError):
    """No usable `*.app/Info.plist` in the archive."""

    kind = ErrorKind.MissingDescriptor


class CorruptTrustArtifact(DistError):
    """The embedded provisioning profile cannot be unwrapped or parsed."""

    kind = ErrorKind.CorruptTrustArtifact


class PolicyViolation(DistError):
    kind = ErrorKind.PolicyViolation


class TokenNotFound(DistError):
    kind = ErrorKind.TokenNotFound


class TokenExpired(DistError):
    kind = ErrorKind.TokenExpired


class TokenCollision(DistError):
    kind = ErrorKind.TokenCollision


class StorageUnavailable(DistError):
    kind = ErrorKind.StorageUnavailable


class UpstreamFetchFailure(DistError):
    kind = ErrorKind.UpstreamFetchFailure


class ArtifactNotFound(DistError):
    kind = ErrorKind.ArtifactNotFound


class NotInspected(DistError):
    """The artifact has no distribution metadata yet."""

    kind = ErrorKind.NotInspected


class InvalidUpload(DistError):
    kind = ErrorKind.InvalidUpload
