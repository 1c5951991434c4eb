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
"""HTTP surface of the distribution core.

The app is assembled by `create_app` from explicitly injected collaborators,
    nothing is held in module level state.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, Header, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response

from ota_dist_libs import version
from ota_dist_libs.config import DistSettings, ensure_storage_secret
from ota_dist_libs.errors import ArtifactNotFound, DistError, ErrorKind, NotInspected
from ota_dist_libs.ingest import ArtifactIngestor
from ota_dist_libs.ipa.schema import DistributionMetadata, Platform
from ota_dist_libs.manifest.ota_manifest import ota_manifest_headers, render_ota_manifest
from ota_dist_libs.manifest.profile import (
    ProfileConfig,
    ensure_sideloadable,
    profile_headers,
    render_install_page,
    render_trusted_install_profile,
)
from ota_dist_libs.registry.db import DistributionDBHelper
from ota_dist_libs.registry.schema import BinaryArtifactRecord
from ota_dist_libs.storage import InvalidSignature, LocalStorageGateway, StorageGateway
from ota_dist_libs.token.service import DownloadTokenService

logger = logging.getLogger(__name__)

IOS_USER_AGENT_PATTERN = re.compile(r"iPhone|iPad|iPod", re.IGNORECASE)
DEFAULT_ISSUER_ID = "anonymous"

ERROR_STATUS = {
    ErrorKind.TokenNotFound: 404,
    ErrorKind.ArtifactNotFound: 404,
    ErrorKind.TokenExpired: 410,
    ErrorKind.PolicyViolation: 403,
    ErrorKind.MissingDescriptor: 422,
    ErrorKind.CorruptTrustArtifact: 422,
    ErrorKind.InvalidUpload: 422,
    ErrorKind.NotInspected: 400,
    ErrorKind.TokenCollision: 409,
    ErrorKind.StorageUnavailable: 503,
    ErrorKind.UpstreamFetchFailure: 502,
}


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": error, "message": message}
    )


def _metadata_summary(metadata: DistributionMetadata) -> dict:
    return metadata.model_dump(mode="json", exclude={"provisioning_profile_b64"})


def _artifact_summary(record: BinaryArtifactRecord) -> dict:
    return {
        "artifact_id": record.artifact_id,
        "slug": record.slug,
        "app_name": record.app_name,
        "version": record.version,
        "platform": record.platform,
        "file_size": record.file_size,
        "sha256": record.sha256,
        "download_count": record.download_count,
    }


def create_app(
    settings: DistSettings,
    db: DistributionDBHelper,
    gateway: StorageGateway,
) -> FastAPI:
    app = FastAPI(
        title="OTA Distribution API",
        description="Mobile binary ingestion and over-the-air installation",
        version=version,
    )
    tokens = DownloadTokenService(db)
    ingestor = ArtifactIngestor(
        db, gateway, tmp_dir=settings.tmp_dir, size_limit=settings.max_upload_size
    )
    base_url = settings.base_url

    def _download_url(token: str) -> str:
        return f"{base_url}/api/download/{token}"

    def _manifest_url(token: str) -> str:
        return f"{base_url}/api/download/{token}/manifest"

    def _binary_url(token: str) -> str:
        return f"{base_url}/api/download/{token}/binary"

    def _require_metadata(artifact_id: str) -> DistributionMetadata:
        if (metadata := db.get_metadata(artifact_id)) is None:
            raise NotInspected(
                "artifact is not inspected yet", details={"artifact_id": artifact_id}
            )
        return metadata

    def _redirect_to_binary(token: str) -> RedirectResponse:
        record = db.get_artifact(tokens.peek(token).artifact_id)
        signed_url = gateway.sign(record.storage_key, settings.signed_url_ttl_seconds)
        # count the download only once the redirect target is ready
        tokens.resolve(token)
        return RedirectResponse(signed_url, status_code=307)

    def _inspect_in_background(artifact_id: str) -> None:
        try:
            ingestor.inspect_artifact(artifact_id)
        except DistError as e:
            logger.warning(f"background inspection of {artifact_id} failed: {e!r}")

    @app.exception_handler(DistError)
    async def dist_error_handler(request: Request, exc: DistError) -> JSONResponse:
        _status = ERROR_STATUS.get(exc.kind, 500)
        if _status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc!r}")
        return JSONResponse(status_code=_status, content=jsonable_encoder(exc.to_dict()))

    # ------ artifacts ------ #

    @app.post("/api/artifacts", status_code=201)
    async def upload_artifact(
        background_tasks: BackgroundTasks,
        file: UploadFile = File(...),
        slug: str = Form(...),
        app_name: str = Form(...),
        version: str = Form(...),
        platform: Platform = Form(...),
    ) -> dict:
        record = await run_in_threadpool(
            ingestor.ingest,
            file.file,
            filename=file.filename or "",
            slug=slug,
            app_name=app_name,
            version=version,
            platform=platform,
        )
        if record.platform_tag is Platform.ios:
            background_tasks.add_task(_inspect_in_background, record.artifact_id)
        return _artifact_summary(record)

    @app.get("/api/artifacts/{artifact_id}")
    def get_artifact(artifact_id: str) -> dict:
        record = db.get_artifact(artifact_id)
        metadata = db.get_metadata(artifact_id)
        return {
            **_artifact_summary(record),
            "metadata": _metadata_summary(metadata) if metadata else None,
        }

    @app.post("/api/artifacts/{artifact_id}/inspect")
    async def inspect_artifact(artifact_id: str) -> dict:
        metadata = await run_in_threadpool(ingestor.inspect_artifact, artifact_id)
        return _metadata_summary(metadata)

    @app.post("/api/artifacts/{artifact_id}/download-links", status_code=201)
    def issue_download_link(
        artifact_id: str,
        ttl_seconds: Optional[int] = Query(default=None, gt=0),
        x_issuer_id: Optional[str] = Header(default=None),
    ) -> dict:
        token = tokens.issue(
            artifact_id,
            x_issuer_id or DEFAULT_ISSUER_ID,
            ttl_seconds or settings.token_ttl_seconds,
        )
        return {
            "token": token.token,
            "download_url": _download_url(token.token),
            "manifest_url": _manifest_url(token.token),
            "expires_at": token.expires_at.isoformat(),
        }

    @app.get("/api/artifacts/{artifact_id}/auto-profile")
    def get_auto_profile(
        artifact_id: str,
        x_issuer_id: Optional[str] = Header(default=None),
    ) -> Response:
        record = db.get_artifact(artifact_id)
        if record.platform_tag is not Platform.ios:
            raise ArtifactNotFound(f"no iOS artifact {artifact_id}")
        metadata = _require_metadata(artifact_id)
        ensure_sideloadable(metadata.distribution_class, artifact_id=artifact_id)

        token = tokens.issue(
            artifact_id, x_issuer_id or DEFAULT_ISSUER_ID, settings.token_ttl_seconds
        )
        profile = render_trusted_install_profile(
            ProfileConfig.from_metadata(
                metadata,
                app_name=record.app_name,
                manifest_url=_manifest_url(token.token),
                organization_name=settings.organization_name,
            )
        )
        return Response(
            content=profile.export_plist(),
            headers=profile_headers(record.slug, record.version),
        )

    # ------ downloads ------ #

    @app.get("/api/download/{token}")
    def download(token: str, user_agent: Optional[str] = Header(default=None)) -> Response:
        resolved = tokens.peek(token)
        record = db.get_artifact(resolved.artifact_id)
        if record.platform_tag is Platform.ios and IOS_USER_AGENT_PATTERN.search(
            user_agent or ""
        ):
            return HTMLResponse(
                render_install_page(record.app_name, record.version, _manifest_url(token))
            )
        return _redirect_to_binary(token)

    @app.get("/api/download/{token}/binary")
    def download_binary(token: str) -> Response:
        return _redirect_to_binary(token)

    @app.get("/api/download/{token}/manifest")
    def download_manifest(token: str) -> Response:
        resolved = tokens.peek(token)
        record = db.get_artifact(resolved.artifact_id)
        if record.platform_tag is not Platform.ios:
            return error_response(
                400, "UnsupportedPlatform", "manifest is only available for iOS apps"
            )
        manifest = render_ota_manifest(
            _require_metadata(record.artifact_id),
            _binary_url(token),
            title=record.app_name,
        )
        return Response(content=manifest.export_plist(), headers=ota_manifest_headers())

    # ------ storage ------ #

    if isinstance(gateway, LocalStorageGateway):
        local_gateway = gateway

        @app.get("/api/storage/{key:path}")
        def get_object(key: str, sig: str = Query(...)) -> Response:
            try:
                local_gateway.verify(key, sig)
            except InvalidSignature as e:
                return error_response(401, "InvalidSignature", str(e))
            return FileResponse(
                local_gateway.object_path(key),
                media_type=local_gateway.content_type(key),
                filename=key.rsplit("/", 1)[-1],
            )

    # ------ misc ------ #

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "version": version}

    return app


def create_app_from_settings(settings: DistSettings) -> FastAPI:
    """Assemble the app with the bundled sqlite registry and local storage."""
    settings = ensure_storage_secret(settings)
    settings.storage_root.mkdir(parents=True, exist_ok=True)
    if settings.tmp_dir:
        settings.tmp_dir.mkdir(parents=True, exist_ok=True)

    _new_db = not settings.db_path.is_file()
    db = DistributionDBHelper(settings.db_path, enable_wal=True)
    if _new_db:
        db.bootstrap_db()
        logger.info(f"bootstrapped new database at {settings.db_path}")

    gateway = LocalStorageGateway(
        settings.storage_root,
        base_url=settings.base_url,
        secret=settings.storage_secret,
    )
    return create_app(settings, db, gateway)
