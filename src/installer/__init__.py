"""Package installer: cache probing, archive extraction and install orchestration."""

from .cache import LATEST_VERSIONS, CacheProbe, LatestVersionMemo
from .archive import enable_executables, extract_package
from .platform import resolve_package_name
from .orchestrator import PackageInstaller, install

__all__ = [
    "LATEST_VERSIONS",
    "CacheProbe",
    "LatestVersionMemo",
    "enable_executables",
    "extract_package",
    "resolve_package_name",
    "PackageInstaller",
    "install",
]
