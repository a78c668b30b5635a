"""
Pydantic Models for Stored Packages

``PackageMetadata`` mirrors the persisted package record. ``ScormPackage``
additionally carries the extracted member files between ingest and store;
payloads are never serialized and never loaded back eagerly.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from scorm_player.models.manifest import Manifest, PlayableItem


class StorageTier(str, Enum):
    PRIMARY = "primary"
    DEGRADED = "degraded"


class PackageMetadata(BaseModel):
    """Catalog entry for one uploaded package"""
    id: str = Field(..., min_length=1, description="Package identifier")
    name: str = Field(..., description="Sanitized display name")
    uploadTimestamp: datetime = Field(..., description="Upload time (UTC)")
    manifest: Manifest
    size: int = Field(..., ge=0, description="Archive size in bytes")


class ScormPackage(PackageMetadata):
    """Package plus its extracted member files"""
    files: Dict[str, bytes] = Field(default_factory=dict, exclude=True)

    def metadata(self) -> PackageMetadata:
        return PackageMetadata(**self.model_dump())


class PackageOut(BaseModel):
    id: str
    name: str
    uploadTimestamp: datetime
    size: int
    sizeLabel: str
    title: Optional[str] = None
    organizationCount: int = 0
    resourceCount: int = 0


class PackageUploadResponse(BaseModel):
    success: bool = True
    package: PackageOut
    storageTier: StorageTier
    fileCount: int


class PlaylistResponse(BaseModel):
    packageId: str
    defaultOrganization: str
    items: List[PlayableItem]
