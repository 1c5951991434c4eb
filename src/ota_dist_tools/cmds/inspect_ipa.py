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
from pathlib import Path
from typing import TYPE_CHECKING

from ota_dist_libs._crypto.x509_utils import describe_developer_certificates
from ota_dist_libs.errors import DistError
from ota_dist_libs.ipa.inspector import inspect_archive_detailed
from ota_dist_libs.ipa.reader import IPAArchiveReader
from ota_dist_libs.ipa.schema import DistributionMetadata, TrustArtifact
from ota_dist_tools._utils import exit_with_err_msg

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def inspect_ipa_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    inspect_ipa_arg_parser = sub_arg_parser.add_parser(
        name="inspect-ipa",
        help=(_help_txt := "Inspect an .ipa and print out its distribution metadata"),
        description=_help_txt,
        parents=parent_parser,
    )
    inspect_ipa_arg_parser.add_argument(
        "--json",
        action="store_true",
        help="Print out the metadata as JSON.",
    )
    inspect_ipa_arg_parser.add_argument(
        "ipa",
        help="Path to the .ipa file.",
    )
    inspect_ipa_arg_parser.set_defaults(handler=inspect_ipa_cmd)


def load_ipa_or_exit(
    _ipa: str,
) -> tuple[DistributionMetadata, TrustArtifact | None]:
    """Inspect the .ipa at <_ipa>, exit with error message on failure."""
    ipa = Path(_ipa)
    if not ipa.is_file():
        exit_with_err_msg(f"{ipa} not found.")

    try:
        with IPAArchiveReader(ipa) as archive:
            return inspect_archive_detailed(archive)
    except DistError as e:
        exit_with_err_msg(f"failed to inspect {ipa}: [{e.kind.value}] {e}")
    except Exception as e:
        exit_with_err_msg(f"failed to open {ipa}: {e!r}")


def inspect_ipa_cmd(args: Namespace) -> None:
    logger.debug(f"calling {inspect_ipa_cmd.__name__} with {args}")
    metadata, trust_artifact = load_ipa_or_exit(args.ipa)

    if args.json:
        print(
            metadata.model_dump_json(
                indent=2, exclude={"provisioning_profile_b64"}
            )
        )
        return

    print(f"Bundle ID: {metadata.bundle_id}")
    print(f"Name: {metadata.display_name}")
    print(f"Version: {metadata.short_version} ({metadata.build_id})")
    print(f"Minimum iOS: {metadata.minimum_os_version}")
    print(f"Supported devices: {', '.join(metadata.supported_devices)}")
    print(f"Distribution: {metadata.distribution_class.display_label}")
    if trust_artifact is None:
        print("Provisioning profile: <none>")
        return

    print(
        f"Provisioning profile: {trust_artifact.name} ({trust_artifact.uuid}), "
        f"team={trust_artifact.team_id}, expires at {trust_artifact.expiration_date}"
    )
    print(f"Provisioned devices: {len(trust_artifact.provisioned_devices)}")
    for _cert in describe_developer_certificates(trust_artifact.developer_certificates):
        print(
            f"Developer certificate: {_cert.common_name}, team={_cert.team_id}, "
            f"not valid after {_cert.not_valid_after}, sha1={_cert.sha1_fingerprint}"
        )
