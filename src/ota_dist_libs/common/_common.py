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

import os
import uuid

DEFAULT_TMP_FNAME_PREFIX = "tmp"


def tmp_fname(
    hint: str = "",
    prefix: str = DEFAULT_TMP_FNAME_PREFIX,
    suffix: str = "",
    sep: str = "_",
    *,
    random_bytes: int = 4,
) -> str:
    return f"{prefix}{sep}{hint}{sep}{os.urandom(random_bytes).hex()}{suffix}"


def random_uuid4() -> str:
    """Version 4 UUID string, `uuid.uuid4` draws from `os.urandom`.

    Format: 36 chars, lowercase, 8-4-4-4-12, version nibble `4`.
    """
    return str(uuid.uuid4())
