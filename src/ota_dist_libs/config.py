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
"""Runtime settings for the distribution service, loaded from a YAML file."""

from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ota_dist_libs.ipa.consts import MAX_UPLOAD_SIZE
from ota_dist_libs.token import DEFAULT_TOKEN_TTL

logger = logging.getLogger(__name__)

DEFAULT_SIGNED_URL_TTL = 60 * 60  # 1 hour
STORAGE_SECRET_NBYTES = 32


class DistSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    db_path: Path = Path("ota_dist.sqlite3")
    storage_root: Path = Path("storage")
    public_base_url: str = "http://localhost:8000"
    # NOTE: None means a random secret per process, see `ensure_storage_secret`.
    storage_secret: Union[str, None] = Field(default=None, min_length=1, repr=False)

    token_ttl_seconds: int = Field(default=DEFAULT_TOKEN_TTL, gt=0)
    signed_url_ttl_seconds: int = Field(default=DEFAULT_SIGNED_URL_TTL, gt=0)
    organization_name: str = "OTA Distribution"
    max_upload_size: int = Field(default=MAX_UPLOAD_SIZE, gt=0)
    tmp_dir: Union[Path, None] = None

    @property
    def base_url(self) -> str:
        return self.public_base_url.rstrip("/")


def ensure_storage_secret(settings: DistSettings) -> DistSettings:
    """Return <settings> with a storage secret, generate a random one if unset.

    A generated secret lives only in this process, signed URLs issued by it
        stop working after a restart.
    """
    if settings.storage_secret:
        return settings
    logger.warning(
        "storage_secret is not configured, use a random secret for this process"
    )
    return settings.model_copy(
        update={"storage_secret": secrets.token_urlsafe(STORAGE_SECRET_NBYTES)}
    )


def load_settings(_fpath: Union[str, Path, None] = None) -> DistSettings:
    """Load settings from YAML file at <_fpath>.

    Defaults are used when <_fpath> is not given or doesn't exist.

    Raises:
        ValueError on malformed YAML or invalid setting values.
    """
    if _fpath is None or not Path(_fpath).is_file():
        if _fpath is not None:
            logger.warning(f"{_fpath} not found, use default settings")
        return DistSettings()

    try:
        _raw = yaml.safe_load(Path(_fpath).read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"invalid settings file {_fpath}: {e}") from e

    if _raw is None:
        _raw = {}
    if not isinstance(_raw, dict):
        raise ValueError(f"settings file {_fpath} must be a mapping, get {type(_raw)}")

    try:
        return DistSettings.model_validate(_raw)
    except ValidationError as e:
        raise ValueError(f"invalid settings in {_fpath}: {e}") from e
