"""
Pytest configuration and fixtures for backend testing
"""

import io
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

# Set test environment before the application modules read it
_TEST_DIR = Path(tempfile.mkdtemp(prefix="scorm-player-tests-"))
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'test.db'}"
os.environ["SCORM_FALLBACK_CATALOG"] = str(_TEST_DIR / "catalog.json")

from scorm_player.db.config import init_db  # noqa: E402
from scorm_player.main import app  # noqa: E402
from scorm_player.repositories.fallback_catalog import FallbackCatalog  # noqa: E402
from scorm_player.services.package_store import PackageStore  # noqa: E402


SAMPLE_MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<manifest identifier="com.example.course" version="1.2"
          xmlns="http://www.imsproject.org/xsd/imscp_rootv1p1p2"
          xmlns:adlcp="http://www.adlnet.org/xsd/adlcp_rootv1p2">
  <metadata>
    <schema>ADL SCORM</schema>
    <schemaversion>1.2</schemaversion>
    <lom><general><title><langstring>Example Course</langstring></title></general></lom>
  </metadata>
  <organizations default="ORG-1">
    <organization identifier="ORG-1">
      <title>Example Organization</title>
      <item identifier="A" identifierref="RES-A">
        <title>Lesson A</title>
        <adlcp:masteryscore>80</adlcp:masteryscore>
      </item>
      <item identifier="B" isvisible="false">
        <title>Module B</title>
        <item identifier="C" identifierref="RES-C">
          <title>Lesson C</title>
        </item>
        <item identifier="D" identifierref="d.html">
          <title>Lesson D</title>
        </item>
      </item>
      <item identifier="E" identifierref="RES-E">
        <title>Lesson E</title>
      </item>
    </organization>
  </organizations>
  <resources>
    <resource identifier="RES-A" type="webcontent" adlcp:scormtype="sco" href="a.html">
      <file href="a.html"/>
    </resource>
    <resource identifier="RES-C" type="webcontent" adlcp:scormtype="sco" href="Content/C.HTML">
      <file href="Content/C.HTML"/>
    </resource>
    <resource identifier="RES-E" type="webcontent" adlcp:scormtype="asset" href="e.htm">
      <file href="e.htm"/>
      <file href="shared/style.css"/>
    </resource>
  </resources>
</manifest>
"""

NO_ORGANIZATIONS_MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<manifest identifier="empty" version="1.0">
  <organizations/>
  <resources/>
</manifest>
"""

SAMPLE_HTML = (
    "<html><head><title>Lesson</title></head>"
    "<body><p>Lesson content</p></body></html>"
)


def make_package_zip(
    files: Optional[Dict[str, object]] = None,
    manifest: Optional[str] = SAMPLE_MANIFEST,
) -> bytes:
    """Build a SCORM ZIP in memory. ``manifest=None`` omits imsmanifest.xml."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        if manifest is not None:
            zf.writestr("imsmanifest.xml", manifest)
        zf.writestr("Content/", "")
        for path, content in (files or {}).items():
            zf.writestr(path, content)
    return buffer.getvalue()


@pytest.fixture
def sample_package_files() -> Dict[str, object]:
    return {
        "a.html": SAMPLE_HTML,
        "content/c.html": SAMPLE_HTML,
        "d.htm": SAMPLE_HTML,
        "e.htm": SAMPLE_HTML,
        "shared/style.css": "body { color: black; }",
        "images/logo.png": b"\x89PNG\r\n\x1a\nxxxx",
    }


@pytest.fixture
def sample_package_zip(sample_package_files) -> bytes:
    return make_package_zip(sample_package_files)


@pytest.fixture(scope="session")
def test_client():
    """Create a test client for FastAPI application"""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def uploaded_package(test_client: TestClient, sample_package_zip: bytes):
    """Upload the sample package and return the response payload."""
    resp = test_client.post(
        "/api/v1/packages",
        files={"file": ("course.zip", sample_package_zip, "application/zip")},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest_asyncio.fixture
async def package_store(tmp_path):
    """Package store over a fresh SQLite database and catalog per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_db(engine)
    factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    store = PackageStore(
        session_factory=factory,
        catalog=FallbackCatalog(tmp_path / "catalog.json"),
    )
    yield store
    await engine.dispose()


class _UnavailableSession:
    async def __aenter__(self):
        raise OSError("database unavailable")

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def degraded_store(tmp_path) -> PackageStore:
    """Package store whose primary tier cannot be reached."""
    return PackageStore(
        session_factory=_UnavailableSession,
        catalog=FallbackCatalog(tmp_path / "catalog.json"),
    )


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers to tests based on their location"""
    for item in items:
        if "api" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
