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

from ota_dist_libs.config import load_settings
from ota_dist_tools._utils import exit_with_err_msg

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def serve_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    serve_arg_parser = sub_arg_parser.add_parser(
        name="serve",
        help=(_help_txt := "Run the OTA distribution HTTP server"),
        description=_help_txt,
        parents=parent_parser,
    )
    serve_arg_parser.add_argument(
        "--config",
        "-c",
        help="Settings YAML file, default settings are used if not specified.",
    )
    serve_arg_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind.",
    )
    serve_arg_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to listen on.",
    )
    serve_arg_parser.set_defaults(handler=serve_cmd)


def serve_cmd(args: Namespace) -> None:
    logger.debug(f"calling {serve_cmd.__name__} with {args}")
    import uvicorn

    from ota_dist_tools.server import create_app_from_settings

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        exit_with_err_msg(str(e))

    app = create_app_from_settings(settings)
    logger.info(f"serving on {args.host}:{args.port}, public url {settings.base_url}")
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
