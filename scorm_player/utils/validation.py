"""
Package upload validation utilities

Checks that run on an upload before any archive extraction work begins, plus
display-name sanitization for the package catalog.
"""

import math
from pathlib import Path

from bs4 import BeautifulSoup

MAX_PACKAGE_SIZE = 100 * 1024 * 1024  # 100MB
ARCHIVE_SUFFIX = ".zip"

INVALID_ARCHIVE_TYPE = "INVALID_ARCHIVE_TYPE"
PACKAGE_TOO_LARGE = "PACKAGE_TOO_LARGE"


class PackageValidationError(ValueError):
    """Upload rejected before storage; ``code`` names the failed check."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


def validate_package_upload(filename: str, size: int) -> None:
    """
    Reject uploads that are not ZIP archives or exceed the size ceiling.

    Args:
        filename: Original upload filename
        size: Upload size in bytes

    Raises:
        PackageValidationError: on the first failed check
    """
    if not filename or not filename.lower().endswith(ARCHIVE_SUFFIX):
        raise PackageValidationError(
            "SCORM packages must be ZIP files", INVALID_ARCHIVE_TYPE
        )

    if size > MAX_PACKAGE_SIZE:
        raise PackageValidationError(
            f"Package size ({size} bytes) exceeds "
            f"{MAX_PACKAGE_SIZE // (1024 * 1024)}MB limit",
            PACKAGE_TOO_LARGE,
        )


def sanitize_package_name(filename: str) -> str:
    """Display name from an upload filename: no directories, suffix or tags."""
    name = Path(filename.replace("\\", "/")).name
    if name.lower().endswith(ARCHIVE_SUFFIX):
        name = name[: -len(ARCHIVE_SUFFIX)]

    soup = BeautifulSoup(name, "html.parser")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    cleaned = soup.get_text().strip()
    return cleaned or "package"


def format_file_size(size: int) -> str:
    """Human readable byte count, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / math.pow(1024, i), 2)
    return f"{value:g} {units[i]}"
