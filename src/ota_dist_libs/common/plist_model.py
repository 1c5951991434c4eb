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

import plistlib
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from typing_extensions import Self


class AliasEnabledModel(BaseModel):
    # NOTE: allow field to be validated by its original attr name.
    model_config = ConfigDict(populate_by_name=True)


class PlistModelBase(AliasEnabledModel):
    """Base class for a document served to the device as property list.

    Field aliases are the plist keys, fields set to None are dropped
        from the exported document.
    """

    MediaType: ClassVar[str] = "application/x-plist"

    @classmethod
    def parse_plist(cls, _input: bytes) -> Self:
        _raw = plistlib.loads(_input)
        if not isinstance(_raw, dict):
            raise ValueError(f"expect a plist dict, get {type(_raw)}")
        return cls.model_validate(_raw)

    def to_plist_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def export_plist(self) -> bytes:
        return plistlib.dumps(
            self.to_plist_dict(), fmt=plistlib.FMT_XML, sort_keys=False
        )
