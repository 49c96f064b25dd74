"""Version request parsing and lightweight version comparison."""

from typing import List, Optional

from constants import Constants

from .models import VersionRequest


def classify(version: Optional[str]) -> VersionRequest:
    """Turn raw user input into a VersionRequest.

    None, blank input and wildcard specs such as ``"1.*"`` all mean Latest;
    the keywords are matched case-insensitively.
    """
    if version is None:
        return VersionRequest.latest()
    spec = version.strip()
    if not spec or "*" in spec:
        return VersionRequest.latest()
    lowered = spec.lower()
    if lowered == Constants.VERSION_LATEST.lower():
        return VersionRequest.latest()
    if lowered == Constants.VERSION_LATEST_PRERELEASE.lower():
        return VersionRequest.latest_prerelease()
    return VersionRequest.exact(spec)


def is_prerelease(version: Optional[str]) -> bool:
    """Return True when a ``-`` appears anywhere after the first character."""
    return version is not None and version.find("-") > 0


def _to_int_parts(version: str) -> Optional[List[int]]:
    parts = []
    for piece in version.strip().split("."):
        try:
            parts.append(int(piece))
        except ValueError:
            return None
    return parts


def compare_at_least(version1: Optional[str], version2: Optional[str]) -> bool:
    """Lazily check that ``version1`` is not older than ``version2``.

    Components are compared as integers, missing trailing components count
    as 0. Any input that cannot be compared yields True.
    """
    if version1 is None or version2 is None:
        return True

    parts1 = _to_int_parts(version1)
    parts2 = _to_int_parts(version2)
    if parts1 is None or parts2 is None:
        return True

    for i in range(max(len(parts1), len(parts2))):
        left = parts1[i] if i < len(parts1) else 0
        right = parts2[i] if i < len(parts2) else 0
        if left > right:
            return True
        if left < right:
            return False

    return True
