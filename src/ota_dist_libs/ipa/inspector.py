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
"""Inspect an .ipa, recover its identity and trust metadata, classify its distribution channel.

All the functions here are pure over the archive content, persisting the
    result is the caller's job.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import plistlib
import zlib
from concurrent.futures import Executor, Future
from os import PathLike
from pathlib import Path
from typing import IO, Any, Callable
from zipfile import BadZipFile

from ota_dist_libs._crypto.cms_utils import extract_signed_content
from ota_dist_libs.common import tmp_fname
from ota_dist_libs.common.io import remove_file, spool_stream_to_file
from ota_dist_libs.errors import CorruptTrustArtifact, MissingDescriptor

from .consts import (
    DEFAULT_MINIMUM_OS_VERSION,
    DEFAULT_SUPPORTED_DEVICES,
    DEVICE_FAMILY_CODES,
    KEY_BUNDLE_ID,
    KEY_BUNDLE_NAME,
    KEY_BUNDLE_VERSION,
    KEY_DEVELOPER_CERTIFICATES,
    KEY_DEVICE_FAMILY,
    KEY_DISPLAY_NAME,
    KEY_ENTITLEMENTS,
    KEY_EXPIRATION_DATE,
    KEY_GET_TASK_ALLOW,
    KEY_MINIMUM_OS,
    KEY_PROFILE_NAME,
    KEY_PROFILE_UUID,
    KEY_PROVISIONED_DEVICES,
    KEY_PROVISIONS_ALL_DEVICES,
    KEY_SHORT_VERSION,
    KEY_TEAM_IDENTIFIER,
    PLIST_END_MARKER,
    XML_START_MARKER,
)
from .reader import IPAArchiveReader
from .schema import (
    Descriptor,
    DistributionClass,
    DistributionMetadata,
    ExtractStrategy,
    TrustArtifact,
)

logger = logging.getLogger(__name__)

#
# ------ descriptor ------ #
#


def _opt_str(_in: Any) -> str | None:
    if _in is None or _in == "":
        return None
    return str(_in)


def map_device_family(_raw: Any) -> list[str]:
    """Map UIDeviceFamily codes to device classes, phone first.

    Unknown codes are ignored, an empty result falls back to phone only.
    """
    if isinstance(_raw, int):
        _raw = [_raw]
    if not isinstance(_raw, (list, tuple)):
        _raw = []

    _codes = set()
    for _code in _raw:
        try:
            _codes.add(int(_code))
        except (TypeError, ValueError):
            continue

    res = [_device for _code, _device in DEVICE_FAMILY_CODES.items() if _code in _codes]
    return res or list(DEFAULT_SUPPORTED_DEVICES)


def descriptor_from_plist(info: dict[str, Any]) -> Descriptor:
    """Build a Descriptor from a parsed Info.plist.

    Raises:
        MissingDescriptor if the mandatory keys are missing.
    """
    bundle_id = _opt_str(info.get(KEY_BUNDLE_ID))
    if not bundle_id:
        raise MissingDescriptor(f"descriptor has no {KEY_BUNDLE_ID}")

    short_version = _opt_str(info.get(KEY_SHORT_VERSION))
    build_id = _opt_str(info.get(KEY_BUNDLE_VERSION))
    if not (short_version or build_id):
        raise MissingDescriptor(
            f"descriptor has neither {KEY_SHORT_VERSION} nor {KEY_BUNDLE_VERSION}",
            details={"bundle_id": bundle_id},
        )

    return Descriptor(
        bundle_id=bundle_id,
        display_name=(
            _opt_str(info.get(KEY_DISPLAY_NAME))
            or _opt_str(info.get(KEY_BUNDLE_NAME))
            or bundle_id
        ),
        short_version=short_version or build_id,  # type: ignore[arg-type]
        build_id=build_id or short_version,  # type: ignore[arg-type]
        minimum_os_version=(
            _opt_str(info.get(KEY_MINIMUM_OS)) or DEFAULT_MINIMUM_OS_VERSION
        ),
        supported_devices=map_device_family(info.get(KEY_DEVICE_FAMILY)),
    )


def parse_descriptor(archive: IPAArchiveReader) -> Descriptor:
    """Locate and parse the app bundle's Info.plist.

    Raises:
        MissingDescriptor if no `*.app/Info.plist` entry is found or it is unusable.
    """
    if (_entry := archive.find_descriptor_entry()) is None:
        raise MissingDescriptor("no *.app/Info.plist found in the archive")

    logger.debug(f"use descriptor at {_entry.filename}")
    try:
        _info = plistlib.loads(archive.read_entry(_entry))
    except Exception as e:
        raise MissingDescriptor(
            f"failed to parse descriptor: {e!r}",
            details={"entry": _entry.filename},
        ) from e

    if not isinstance(_info, dict):
        raise MissingDescriptor(
            "descriptor is not a plist dict", details={"entry": _entry.filename}
        )
    return descriptor_from_plist(_info)


#
# ------ trust artifact ------ #
#


def _unwrap_signed_container(raw: bytes) -> bytes:
    return extract_signed_content(raw)


def _unwrap_by_markers(raw: bytes) -> bytes:
    _start = raw.find(XML_START_MARKER)
    if _start < 0:
        raise ValueError(f"{XML_START_MARKER!r} marker not found")
    _end = raw.find(PLIST_END_MARKER, _start)
    if _end < 0:
        raise ValueError(f"{PLIST_END_MARKER!r} marker not found")
    return raw[_start : _end + len(PLIST_END_MARKER)]


UNWRAP_STRATEGIES: tuple[tuple[ExtractStrategy, Callable[[bytes], bytes]], ...] = (
    (ExtractStrategy.structured_container_parse, _unwrap_signed_container),
    (ExtractStrategy.raw_marker_substring, _unwrap_by_markers),
)


def unwrap_trust_artifact(raw: bytes) -> tuple[dict[str, Any], ExtractStrategy]:
    """Get the profile plist out of its signed container.

    Strategies are tried in order, the first one that yields a plist dict wins.

    Raises:
        CorruptTrustArtifact if no strategy works.
    """
    _failures: dict[str, str] = {}
    for _strategy, _unwrap in UNWRAP_STRATEGIES:
        try:
            _parsed = plistlib.loads(_unwrap(raw))
        except Exception as e:
            logger.debug(f"{_strategy.value} failed: {e!r}")
            _failures[_strategy.value] = repr(e)
            continue

        if isinstance(_parsed, dict):
            return _parsed, _strategy
        _failures[_strategy.value] = f"not a plist dict: {type(_parsed)}"
    raise CorruptTrustArtifact(
        "failed to extract the embedded profile plist", details=_failures
    )


def trust_artifact_from_plist(
    profile: dict[str, Any], *, raw: bytes, extracted_by: ExtractStrategy
) -> TrustArtifact:
    _team_ids = profile.get(KEY_TEAM_IDENTIFIER)
    _team_id = None
    if isinstance(_team_ids, (list, tuple)) and _team_ids:
        _team_id = _opt_str(_team_ids[0])

    _entitlements = profile.get(KEY_ENTITLEMENTS)
    if not isinstance(_entitlements, dict):
        _entitlements = {}

    _devices = profile.get(KEY_PROVISIONED_DEVICES)
    if not isinstance(_devices, (list, tuple)):
        _devices = []

    _certs = profile.get(KEY_DEVELOPER_CERTIFICATES)
    if not isinstance(_certs, (list, tuple)):
        _certs = []

    try:
        return TrustArtifact(
            uuid=_opt_str(profile.get(KEY_PROFILE_UUID)),
            name=_opt_str(profile.get(KEY_PROFILE_NAME)),
            team_id=_team_id,
            expiration_date=profile.get(KEY_EXPIRATION_DATE),
            provisioned_devices=[str(_device) for _device in _devices],
            provisions_all_devices=profile.get(KEY_PROVISIONS_ALL_DEVICES) is True,
            allow_debug_attach=_entitlements.get(KEY_GET_TASK_ALLOW) is True,
            developer_certificates=[
                _cert for _cert in _certs if isinstance(_cert, bytes)
            ],
            raw_b64=base64.b64encode(raw).decode("ascii"),
            extracted_by=extracted_by,
        )
    except ValueError as e:
        raise CorruptTrustArtifact(f"invalid profile content: {e}") from e


def extract_trust_artifact(archive: IPAArchiveReader) -> TrustArtifact | None:
    """Locate and parse the embedded provisioning profile.

    Returns:
        None if the archive has no embedded profile(App Store only binary).

    Raises:
        CorruptTrustArtifact if the profile is present but cannot be parsed.
    """
    if (_entry := archive.find_trust_artifact_entry()) is None:
        return None

    try:
        _raw = archive.read_entry(_entry)
    except (
        BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError, OSError
    ) as e:
        raise CorruptTrustArtifact(
            f"failed to read profile entry: {e!r}",
            details={"entry": _entry.filename},
        ) from e
    _profile, _strategy = unwrap_trust_artifact(_raw)
    logger.debug(f"profile at {_entry.filename} extracted with {_strategy.value}")
    return trust_artifact_from_plist(_profile, raw=_raw, extracted_by=_strategy)


#
# ------ classification ------ #
#


def classify(trust_artifact: TrustArtifact | None) -> DistributionClass:
    """Classify the distribution channel from the embedded profile.

    The checks are applied in the following order, first match wins:
    1. no profile -> appStore
    2. get-task-allow entitlement -> developmentBuild
    3. ProvisionsAllDevices -> enterprise
    4. non-empty ProvisionedDevices -> adHoc
    5. otherwise -> appStore
    """
    if trust_artifact is None:
        return DistributionClass.app_store
    if trust_artifact.allow_debug_attach:
        return DistributionClass.development_build
    if trust_artifact.provisions_all_devices:
        return DistributionClass.enterprise
    if trust_artifact.provisioned_devices:
        return DistributionClass.ad_hoc
    return DistributionClass.app_store


#
# ------ entry points ------ #
#


def inspect_archive_detailed(
    archive: IPAArchiveReader,
) -> tuple[DistributionMetadata, TrustArtifact | None]:
    """Inspect <archive>, also return the parsed profile for callers showing its details."""
    descriptor = parse_descriptor(archive)
    trust_artifact = extract_trust_artifact(archive)
    metadata = DistributionMetadata.from_inspection(
        descriptor, trust_artifact, classify(trust_artifact)
    )
    return metadata, trust_artifact


def inspect_archive(archive: IPAArchiveReader) -> DistributionMetadata:
    return inspect_archive_detailed(archive)[0]


def inspect_archive_file(_fpath: PathLike | str) -> DistributionMetadata:
    try:
        _reader = IPAArchiveReader(_fpath)
    except BadZipFile as e:
        raise MissingDescriptor(
            f"not a ZIP archive: {e}", details={"path": str(_fpath)}
        ) from e

    with _reader:
        res = inspect_archive(_reader)
    logger.info(
        f"inspected {_fpath}: {res.bundle_id} {res.short_version}({res.build_id}), "
        f"{res.distribution_class.value}"
    )
    return res


def inspect_stream(
    stream: IO[bytes], *, tmp_dir: Path, size_limit: int | None = None
) -> DistributionMetadata:
    """Inspect an archive from a (possibly non-seekable) byte stream.

    The stream is spooled into a temporary file under <tmp_dir>, which is
        always removed before return.
    """
    _tmp_f = Path(tmp_dir) / tmp_fname("ipa", suffix=".ipa")
    try:
        spool_stream_to_file(stream, _tmp_f, size_limit=size_limit)
        return inspect_archive_file(_tmp_f)
    finally:
        remove_file(_tmp_f)


def inspect_in_worker(
    executor: Executor, _fpath: PathLike | str
) -> Future[DistributionMetadata]:
    """Inspect the archive on <executor>, cancelling the future drops the result."""
    return executor.submit(inspect_archive_file, _fpath)


async def inspect_async(_fpath: PathLike | str) -> DistributionMetadata:
    """Inspect the archive on a worker thread without blocking the event loop."""
    return await asyncio.to_thread(inspect_archive_file, _fpath)
