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
import re
from typing import TYPE_CHECKING

from ota_dist_libs.errors import DistError
from ota_dist_libs.manifest.profile import (
    ProfileConfig,
    profile_filename,
    render_trusted_install_profile,
)
from ota_dist_tools._utils import exit_with_err_msg
from ota_dist_tools.cmds.inspect_ipa import load_ipa_or_exit

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def slugify(_in: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", _in.lower()).strip("-") or "app"


def render_profile_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    render_profile_arg_parser = sub_arg_parser.add_parser(
        name="render-profile",
        help=(_help_txt := "Render the trusted-install profile(.mobileconfig) for an .ipa"),
        description=_help_txt,
        parents=parent_parser,
    )
    render_profile_arg_parser.add_argument(
        "--manifest-url",
        help="URL of the OTA manifest for this .ipa.",
        required=True,
    )
    render_profile_arg_parser.add_argument(
        "--org",
        help="Organization name shown in the profile.",
        required=True,
    )
    render_profile_arg_parser.add_argument(
        "--slug",
        help="App slug used in the output file name, default to slugified display name.",
    )
    render_profile_arg_parser.add_argument(
        "--output",
        "-o",
        help="Save the profile to this file, default to <slug>-auto-v<version>.mobileconfig.",
    )
    render_profile_arg_parser.add_argument(
        "ipa",
        help="Path to the .ipa file.",
    )
    render_profile_arg_parser.set_defaults(handler=render_profile_cmd)


def render_profile_cmd(args: Namespace) -> None:
    logger.debug(f"calling {render_profile_cmd.__name__} with {args}")
    metadata, _ = load_ipa_or_exit(args.ipa)

    _config = ProfileConfig.from_metadata(
        metadata, manifest_url=args.manifest_url, organization_name=args.org
    )
    try:
        _profile = render_trusted_install_profile(_config)
    except DistError as e:
        exit_with_err_msg(f"cannot render profile: [{e.kind.value}] {e}")

    _slug = args.slug or slugify(metadata.display_name)
    _save_dst = args.output or profile_filename(_slug, metadata.short_version)
    print(f"Save profile to {_save_dst} ...")
    with open(_save_dst, "wb") as f:
        f.write(_profile.export_plist())
