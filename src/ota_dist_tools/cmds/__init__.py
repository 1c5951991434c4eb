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

from .inspect_ipa import inspect_ipa_cmd_args
from .render_manifest import render_manifest_cmd_args
from .render_profile import render_profile_cmd_args
from .serve import serve_cmd_args

__all__ = [
    "inspect_ipa_cmd_args",
    "render_manifest_cmd_args",
    "render_profile_cmd_args",
    "serve_cmd_args",
]
