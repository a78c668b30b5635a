"""SQLAlchemy ORM models for the primary package storage tier.

Separate from the Pydantic models in package.py / manifest.py which describe
the in-memory shape returned to callers. This layer manages persistence
concerns only: one row per package and one row per archive member file.
"""
from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, declarative_base
from sqlalchemy import (
    String,
    DateTime,
    JSON,
    Text,
    Integer,
    LargeBinary,
    ForeignKey,
    UniqueConstraint,
)

Base = declarative_base()


class PackageRecord(Base):
    __tablename__ = "scorm_packages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    upload_timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    manifest: Mapped[dict] = mapped_column(JSON, nullable=False)
    size: Mapped[int] = mapped_column(Integer, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "uploadTimestamp": self.upload_timestamp.isoformat(),
            "manifest": self.manifest,
            "size": self.size,
        }


class PackageFileRecord(Base):
    """One member file of a stored package.

    Payloads are content-immutable; a package's files are only ever written
    together with the package row and removed together with it.
    """

    __tablename__ = "scorm_package_files"
    __table_args__ = (
        UniqueConstraint("package_id", "path", name="uq_package_file_path"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    package_id: Mapped[str] = mapped_column(
        ForeignKey("scorm_packages.id", ondelete="CASCADE"), index=True
    )
    path: Mapped[str] = mapped_column(Text)
    payload: Mapped[bytes] = mapped_column(LargeBinary)
