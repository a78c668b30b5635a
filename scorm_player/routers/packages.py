"""
SCORM Package Router

Upload, catalog, play-list and content endpoints for stored SCORM packages.
Content files are served with path-variant lookup; HTML documents get the
API discovery bootstrap injected before they are returned.
"""

import logging
import mimetypes
from typing import List

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import Response

from scorm_player.models.package import (
    PackageMetadata,
    PackageOut,
    PackageUploadResponse,
    PlaylistResponse,
)
from scorm_player.services.api_bridge import ApiBridge, is_html_path
from scorm_player.services.manifest_parser import build_playlist
from scorm_player.services.package_store import (
    PackageStore,
    get_package_store,
)
from scorm_player.utils.validation import (
    MAX_PACKAGE_SIZE,
    PackageValidationError,
    format_file_size,
)

router = APIRouter(prefix="/packages", tags=["Packages"])
logger = logging.getLogger(__name__)


def _package_out(package: PackageMetadata) -> PackageOut:
    return PackageOut(
        id=package.id,
        name=package.name,
        uploadTimestamp=package.uploadTimestamp,
        size=package.size,
        sizeLabel=format_file_size(package.size),
        title=package.manifest.title,
        organizationCount=len(package.manifest.organizations),
        resourceCount=len(package.manifest.resources),
    )


async def _require_package(
    package_id: str, store: PackageStore
) -> PackageMetadata:
    package = await store.get_package(package_id)
    if package is None:
        raise HTTPException(status_code=404, detail="Package not found")
    return package


@router.post(
    "",
    response_model=PackageUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload SCORM Package",
)
async def upload_package(
    request: Request,
    file: UploadFile = File(..., description="SCORM package (.zip)"),
    store: PackageStore = Depends(get_package_store),
):
    """Validate, extract and store an uploaded SCORM ZIP package."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename is required")

    # Pre-flight size check using Content-Length header if available
    cl = request.headers.get("content-length")
    if cl and cl.isdigit() and int(cl) > MAX_PACKAGE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Package size ({cl} bytes) exceeds "
                f"{MAX_PACKAGE_SIZE // (1024 * 1024)}MB limit"
            ),
        )

    try:
        content = await file.read()
    except Exception as e:
        logger.error(f"Failed to read uploaded file: {e}")
        raise HTTPException(
            status_code=400, detail="Failed to read uploaded file"
        )

    try:
        package, tier = await store.upload(file.filename, content)
    except PackageValidationError as e:
        logger.warning(
            f"Package rejected ({e.code}) for {file.filename}: {e}"
        )
        raise HTTPException(status_code=400, detail=str(e))

    return PackageUploadResponse(
        package=_package_out(package),
        storageTier=tier,
        fileCount=len(package.files),
    )


@router.get("", response_model=List[PackageOut])
async def list_packages(store: PackageStore = Depends(get_package_store)):
    return [_package_out(p) for p in await store.list_packages()]


@router.get("/{package_id}", response_model=PackageMetadata)
async def get_package(
    package_id: str, store: PackageStore = Depends(get_package_store)
):
    return await _require_package(package_id, store)


@router.get("/{package_id}/playlist", response_model=PlaylistResponse)
async def get_playlist(
    package_id: str, store: PackageStore = Depends(get_package_store)
):
    """Resolved, flattened list of playable items in navigation order."""
    package = await _require_package(package_id, store)
    return PlaylistResponse(
        packageId=package.id,
        defaultOrganization=package.manifest.defaultOrganization,
        items=build_playlist(package.manifest),
    )


@router.get("/{package_id}/files", response_model=List[str])
async def list_package_files(
    package_id: str, store: PackageStore = Depends(get_package_store)
):
    await _require_package(package_id, store)
    return await store.list_files(package_id)


@router.get("/{package_id}/files/{file_path:path}")
async def get_package_file(
    package_id: str,
    file_path: str,
    store: PackageStore = Depends(get_package_store),
):
    """Serve a member file, trying common path variants of ``file_path``."""
    found = await store.find_file(package_id, file_path)
    if found is None:
        raise HTTPException(
            status_code=404,
            detail=f"Content file {file_path} not found in package",
        )
    path, payload = found

    if is_html_path(path):
        return Response(
            content=ApiBridge.inject_bootstrap(payload),
            media_type="text/html; charset=utf-8",
        )

    media_type, _ = mimetypes.guess_type(path)
    return Response(
        content=payload,
        media_type=media_type or "application/octet-stream",
    )


@router.delete("/{package_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_package(
    package_id: str, store: PackageStore = Depends(get_package_store)
):
    if not await store.delete(package_id):
        raise HTTPException(status_code=404, detail="Package not found")
    return None
