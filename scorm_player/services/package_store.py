"""
SCORM Package Store Service

Ingests uploaded SCORM ZIP packages and keeps them in durable storage:

* primary tier - SQL database via SQLAlchemy; the package row and every
  member file row are written in one transaction
* degraded tier - JSON catalog of package metadata only, used whenever the
  primary tier cannot be reached or a write to it fails

File payloads are fetched one at a time on demand and never loaded together
with the package metadata.
"""

import asyncio
import logging
import time
import uuid
import zipfile
from datetime import datetime
from io import BytesIO
from typing import Callable, Dict, List, Optional, Tuple

from scorm_player.db.config import FALLBACK_CATALOG_PATH, SessionLocal
from scorm_player.models.package import (
    PackageMetadata,
    ScormPackage,
    StorageTier,
)
from scorm_player.models.persisted_package import PackageRecord
from scorm_player.repositories.fallback_catalog import FallbackCatalog
from scorm_player.repositories.package_repo import (
    PackageNotFoundError,
    PackageRepository,
)
from scorm_player.services.manifest_parser import (
    ManifestParseError,
    parse_manifest,
)
from scorm_player.utils.validation import (
    PackageValidationError,
    sanitize_package_name,
    validate_package_upload,
)

logger = logging.getLogger(__name__)

MANIFEST_PATH = "imsmanifest.xml"

INVALID_ARCHIVE = "INVALID_ARCHIVE"
MISSING_MANIFEST = "MISSING_MANIFEST"
INVALID_MANIFEST = "INVALID_MANIFEST"
NO_ORGANIZATIONS = "NO_ORGANIZATIONS"


def generate_package_id() -> str:
    return f"scorm_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def path_variants(href: str) -> List[str]:
    """Candidate archive paths for a manifest href, most exact first.

    Covers the usual mismatches between declared paths and archive entries:
    leading slashes, letter case and the .htm/.html extension.
    """
    candidates = [
        href,
        href.lstrip("/"),
        f"/{href}",
        href.lower(),
    ]
    lower = href.lower()
    if lower.endswith(".html"):
        candidates.append(href[:-5] + ".htm")
    elif lower.endswith(".htm"):
        candidates.append(href + "l")

    variants: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


class PackageStore:
    """Service for ingesting, storing and retrieving SCORM packages"""

    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        catalog: Optional[FallbackCatalog] = None,
    ):
        self.session_factory = session_factory or SessionLocal
        self.catalog = catalog or FallbackCatalog(FALLBACK_CATALOG_PATH)

    # INGEST -----------------------------------------------------------------
    async def ingest(self, filename: str, content: bytes) -> ScormPackage:
        """
        Validate and unpack an uploaded archive into a ``ScormPackage``.

        Args:
            filename: Original upload filename
            content: Raw archive bytes

        Returns:
            ScormPackage with manifest and extracted member files

        Raises:
            PackageValidationError: archive type/size, missing or invalid
                manifest, or a manifest without organizations
        """
        validate_package_upload(filename, len(content))
        logger.info(f"Ingesting package {filename} ({len(content)} bytes)")

        try:
            archive = zipfile.ZipFile(BytesIO(content))
        except zipfile.BadZipFile as e:
            raise PackageValidationError(
                f"Invalid ZIP archive: {e}", INVALID_ARCHIVE
            )

        with archive:
            try:
                manifest_xml = archive.read(MANIFEST_PATH)
            except KeyError:
                raise PackageValidationError(
                    f"Invalid SCORM package: {MANIFEST_PATH} not found",
                    MISSING_MANIFEST,
                )

            try:
                manifest = parse_manifest(manifest_xml)
            except ManifestParseError as e:
                raise PackageValidationError(
                    f"Invalid SCORM manifest: {e}", INVALID_MANIFEST
                )

            if not manifest.organizations:
                raise PackageValidationError(
                    "Invalid SCORM manifest: No organizations found",
                    NO_ORGANIZATIONS,
                )

            files = await self._extract_files(archive)

        package = ScormPackage(
            id=generate_package_id(),
            name=sanitize_package_name(filename),
            uploadTimestamp=datetime.utcnow(),
            manifest=manifest,
            size=len(content),
            files=files,
        )
        logger.info(
            f"Package {package.id} extracted: {len(files)} file(s)"
        )
        return package

    async def _extract_files(
        self, archive: zipfile.ZipFile
    ) -> Dict[str, bytes]:
        """Read every non-directory entry, one task per entry."""
        entries = [info for info in archive.infolist() if not info.is_dir()]
        results = await asyncio.gather(
            *(asyncio.to_thread(archive.read, info) for info in entries),
            return_exceptions=True,
        )
        files: Dict[str, bytes] = {}
        for info, result in zip(entries, results):
            if isinstance(result, BaseException):
                raise PackageValidationError(
                    f"Failed to extract {info.filename}: {result}",
                    INVALID_ARCHIVE,
                )
            files[info.filename] = result
        return files

    # STORE ------------------------------------------------------------------
    async def store(self, package: ScormPackage) -> StorageTier:
        """Persist a package, degrading to the catalog tier on any failure."""
        record = PackageRecord(
            id=package.id,
            name=package.name,
            upload_timestamp=package.uploadTimestamp,
            manifest=package.manifest.model_dump(mode="json"),
            size=package.size,
        )
        try:
            async with self.session_factory() as session:
                await PackageRepository(session).create(record, package.files)
            logger.info(f"Package {package.id} stored in primary tier")
            return StorageTier.PRIMARY
        except Exception as e:
            logger.warning(
                f"Primary storage failed for package {package.id}, "
                f"falling back to catalog (files not retained): {e}"
            )

        await self.catalog.add(package.metadata().model_dump(mode="json"))
        return StorageTier.DEGRADED

    async def upload(
        self, filename: str, content: bytes
    ) -> Tuple[ScormPackage, StorageTier]:
        package = await self.ingest(filename, content)
        tier = await self.store(package)
        return package, tier

    # READ -------------------------------------------------------------------
    async def list_packages(self) -> List[PackageMetadata]:
        packages: List[PackageMetadata] = []
        try:
            async with self.session_factory() as session:
                records = await PackageRepository(session).list()
                packages = [self._from_record(r) for r in records]
        except Exception as e:
            logger.warning(f"Primary tier unavailable for listing: {e}")

        known = {p.id for p in packages}
        for entry in await self.catalog.load():
            if entry.get("id") not in known:
                packages.append(PackageMetadata.model_validate(entry))
        return packages

    async def get_package(self, package_id: str) -> Optional[PackageMetadata]:
        """Package metadata without file payloads, or None."""
        try:
            async with self.session_factory() as session:
                record = await PackageRepository(session).get(package_id)
                return self._from_record(record)
        except PackageNotFoundError:
            pass
        except Exception as e:
            logger.warning(
                f"Primary tier lookup failed for {package_id}: {e}"
            )

        entry = await self.catalog.get(package_id)
        return PackageMetadata.model_validate(entry) if entry else None

    async def get_file(self, package_id: str, path: str) -> Optional[bytes]:
        """Payload of one member file; None when absent."""
        try:
            async with self.session_factory() as session:
                return await PackageRepository(session).get_file(
                    package_id, path
                )
        except Exception as e:
            logger.error(f"Failed to retrieve file {path}: {e}")
            return None

    async def find_file(
        self, package_id: str, href: str
    ) -> Optional[Tuple[str, bytes]]:
        """First path variant of ``href`` present in the package."""
        for path in path_variants(href):
            payload = await self.get_file(package_id, path)
            if payload is not None:
                logger.debug(f"Resolved {href} to {path}")
                return path, payload
        return None

    async def list_files(self, package_id: str) -> List[str]:
        try:
            async with self.session_factory() as session:
                return list(
                    await PackageRepository(session).list_paths(package_id)
                )
        except Exception as e:
            logger.error(f"Failed to list files for {package_id}: {e}")
            return []

    # DELETE -----------------------------------------------------------------
    async def delete(self, package_id: str) -> bool:
        """Remove a package and all of its files; True if anything existed."""
        deleted = False
        try:
            async with self.session_factory() as session:
                await PackageRepository(session).delete_record(package_id)
            deleted = True
        except PackageNotFoundError:
            pass
        except Exception as e:
            logger.warning(
                f"Primary delete failed for {package_id}, "
                f"removing catalog entry only: {e}"
            )

        if await self.catalog.remove(package_id):
            deleted = True
        if deleted:
            logger.info(f"Package {package_id} deleted")
        return deleted

    @staticmethod
    def _from_record(record: PackageRecord) -> PackageMetadata:
        return PackageMetadata.model_validate(record.to_dict())


_default_store: Optional[PackageStore] = None


def get_package_store() -> PackageStore:
    """FastAPI dependency returning the process-wide package store."""
    global _default_store
    if _default_store is None:
        _default_store = PackageStore()
    return _default_store
