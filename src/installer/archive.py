"""Archive extraction into the deterministic version folder."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path

from common.errors import ArchiveCorrupt
from common.logging_utils import extra_context, is_debug_enabled

from .cache import remove_extension

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755

# zipfile surfaces damaged or unsupported members through all of these
_UNREADABLE_ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    EOFError,
    RuntimeError,
    NotImplementedError,
)


def _check_members(zf: zipfile.ZipFile, archive_path: str, dest_dir: Path) -> None:
    resolved_dest = dest_dir.resolve()
    for member in zf.namelist():
        member_path = (dest_dir / member).resolve()
        if member_path != resolved_dest and resolved_dest not in member_path.parents:
            raise ArchiveCorrupt(archive_path, f"path traversal detected: {member}")


def _swap_into_place(staging_dir: str, package_folder: str) -> None:
    """Replace ``package_folder`` with the fully extracted ``staging_dir``."""
    if os.path.isdir(package_folder):
        shutil.rmtree(package_folder)
    try:
        os.replace(staging_dir, package_folder)
    except OSError:
        # A concurrent extractor moved its own complete copy in first
        if not os.path.isdir(package_folder):
            raise
        logger.debug("Package folder appeared during extraction, keeping it: %s", package_folder)


def extract_package(archive_path: str) -> str:
    """Extract ``archive_path`` into a sibling folder named without the extension.

    Members are extracted into a private staging folder next to the target,
    which then replaces any existing folder. The target folder therefore
    never holds a partial extraction, and a failed extraction leaves nothing
    behind that the cache check could mistake for an install.

    Returns:
        The extracted folder path

    Raises:
        ArchiveCorrupt: if the archive is unreadable or a member escapes the folder
    """
    package_folder = remove_extension(archive_path)
    parent_dir, folder_name = os.path.split(package_folder)
    staging_dir = tempfile.mkdtemp(prefix=f".{folder_name}.", suffix=".extract", dir=parent_dir or None)

    try:
        try:
            with zipfile.ZipFile(archive_path, "r") as zf:
                _check_members(zf, archive_path, Path(staging_dir))
                zf.extractall(staging_dir)
        except _UNREADABLE_ARCHIVE_ERRORS as exc:
            raise ArchiveCorrupt(archive_path, str(exc) or type(exc).__name__) from exc

        if os.name != "nt":
            enable_executables(staging_dir)
            # mkdtemp creates the folder 0700
            os.chmod(staging_dir, EXECUTABLE_MODE)

        _swap_into_place(staging_dir, package_folder)
    finally:
        if os.path.isdir(staging_dir):
            shutil.rmtree(staging_dir, ignore_errors=True)

    logger.debug(
        "Extracted package",
        extra=extra_context(
            event="function_exit",
            component="archive",
            action="extract_package",
            outcome="success",
            target=package_folder,
        ),
    )
    return package_folder


def enable_executables(folder_path: str) -> int:
    """Set mode 0755 on every regular file below ``folder_path``.

    Executable bits do not survive zip packaging reliably. Failures are
    logged per file and skipped; the affected file may not be the tool.

    Returns:
        Number of files updated
    """
    updated = 0
    for root, _dirs, files in os.walk(folder_path):
        for name in files:
            file_path = os.path.join(root, name)
            if os.path.islink(file_path) or not os.path.isfile(file_path):
                continue
            try:
                os.chmod(file_path, EXECUTABLE_MODE)
                updated += 1
            except OSError as exc:
                logger.warning(
                    "Error setting executable permission on %s: %s",
                    file_path,
                    exc,
                    extra=extra_context(
                        event="chmod", component="archive", action="enable_executables", outcome="failed"
                    ),
                )
    if is_debug_enabled(logger):
        logger.debug(
            "0o755 permission set",
            extra=extra_context(
                event="chmod", component="archive", action="enable_executables", count=updated, target=folder_path
            ),
        )
    return updated
