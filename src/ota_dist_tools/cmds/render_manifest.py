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
from typing import TYPE_CHECKING

from ota_dist_libs.manifest.ota_manifest import render_ota_manifest
from ota_dist_tools.cmds.inspect_ipa import load_ipa_or_exit

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def render_manifest_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    render_manifest_arg_parser = sub_arg_parser.add_parser(
        name="render-manifest",
        help=(_help_txt := "Render the OTA manifest(manifest.plist) for an .ipa"),
        description=_help_txt,
        parents=parent_parser,
    )
    render_manifest_arg_parser.add_argument(
        "--url",
        help="URL the device downloads the .ipa from.",
        required=True,
    )
    render_manifest_arg_parser.add_argument(
        "--title",
        help="Title shown in the install prompt, default to the app display name.",
    )
    render_manifest_arg_parser.add_argument(
        "--output",
        "-o",
        help="If specified, save the manifest to a file.",
    )
    render_manifest_arg_parser.add_argument(
        "ipa",
        help="Path to the .ipa file.",
    )
    render_manifest_arg_parser.set_defaults(handler=render_manifest_cmd)


def render_manifest_cmd(args: Namespace) -> None:
    logger.debug(f"calling {render_manifest_cmd.__name__} with {args}")
    metadata, _ = load_ipa_or_exit(args.ipa)

    _exported = render_ota_manifest(metadata, args.url, title=args.title).export_plist()
    if _save_dst := args.output:
        print(f"Save manifest to {_save_dst} ...")
        with open(_save_dst, "wb") as f:
            f.write(_exported)
        return
    print(_exported.decode())
