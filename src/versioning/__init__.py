"""Version requests, install results and version comparison helpers."""

from .models import InstallResult, PackageSpecifier, VersionKind, VersionRequest
from .parser import classify, compare_at_least, is_prerelease

__all__ = [
    "InstallResult",
    "PackageSpecifier",
    "VersionKind",
    "VersionRequest",
    "classify",
    "compare_at_least",
    "is_prerelease",
]
