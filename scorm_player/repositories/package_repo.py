"""Repository layer for package persistence on the primary tier.

Provides an abstraction over direct SQLAlchemy session usage so that the
package store and routers remain thin and testable. A package row and all of
its file rows are written and removed in a single transaction.
"""
from __future__ import annotations
from typing import Dict, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from scorm_player.models.persisted_package import (
    PackageRecord,
    PackageFileRecord,
)


class PackageNotFoundError(Exception):
    """Raised when a package record could not be located."""


class PackageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # CREATE -----------------------------------------------------------------
    async def create(
        self,
        record: PackageRecord,
        files: Dict[str, bytes],
    ) -> PackageRecord:
        try:
            self.session.add(record)
            self.session.add_all(
                PackageFileRecord(
                    package_id=record.id, path=path, payload=payload
                )
                for path, payload in files.items()
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return record

    # READ -------------------------------------------------------------------
    async def list(self) -> Sequence[PackageRecord]:
        result = await self.session.execute(
            select(PackageRecord).order_by(PackageRecord.upload_timestamp)
        )
        return result.scalars().all()

    async def get(self, package_id: str) -> PackageRecord:
        result = await self.session.execute(
            select(PackageRecord).where(PackageRecord.id == package_id)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise PackageNotFoundError
        return record

    async def get_file(self, package_id: str, path: str) -> Optional[bytes]:
        result = await self.session.execute(
            select(PackageFileRecord.payload).where(
                PackageFileRecord.package_id == package_id,
                PackageFileRecord.path == path,
            )
        )
        return result.scalar_one_or_none()

    async def list_paths(self, package_id: str) -> Sequence[str]:
        result = await self.session.execute(
            select(PackageFileRecord.path)
            .where(PackageFileRecord.package_id == package_id)
            .order_by(PackageFileRecord.path)
        )
        return result.scalars().all()

    # DELETE -----------------------------------------------------------------
    async def delete_record(self, package_id: str) -> None:
        try:
            record = await self.get(package_id)
            await self.session.execute(
                delete(PackageFileRecord).where(
                    PackageFileRecord.package_id == package_id
                )
            )
            await self.session.delete(record)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
