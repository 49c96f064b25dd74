"""Data models for version requests and install results."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from constants import Constants


class VersionKind(Enum):
    """How a version request is to be resolved."""
    EXACT = "exact"
    LATEST = "latest"
    LATEST_PRERELEASE = "latest_prerelease"


@dataclass(frozen=True)
class VersionRequest:
    """Either an exact version string or a dynamic "latest" variant.

    Use ``parser.classify`` to build one from user input; the constructors
    below assume the input is already normalized.
    """
    kind: VersionKind
    value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind is VersionKind.EXACT:
            if not self.value or not self.value.strip():
                raise ValueError("An exact version request needs a non-empty version")
            if "*" in self.value:
                raise ValueError(f"Wildcard versions are not exact: {self.value!r}")
        elif self.value is not None:
            raise ValueError(f"{self.kind.value} requests carry no version value")

    @classmethod
    def exact(cls, version: str) -> "VersionRequest":
        return cls(VersionKind.EXACT, version)

    @classmethod
    def latest(cls) -> "VersionRequest":
        return cls(VersionKind.LATEST)

    @classmethod
    def latest_prerelease(cls) -> "VersionRequest":
        return cls(VersionKind.LATEST_PRERELEASE)

    @property
    def is_latest(self) -> bool:
        return self.kind is not VersionKind.EXACT

    @property
    def include_prerelease(self) -> bool:
        return self.kind is VersionKind.LATEST_PRERELEASE

    def __str__(self) -> str:
        if self.kind is VersionKind.LATEST:
            return Constants.VERSION_LATEST
        if self.kind is VersionKind.LATEST_PRERELEASE:
            return Constants.VERSION_LATEST_PRERELEASE
        return str(self.value)


@dataclass(frozen=True)
class PackageSpecifier:
    """A package name together with the version requested for it.

    ``entry_point`` is an optional path, relative to the package folder, of
    the file that must exist once the package is installed.
    """
    name: str
    version_request: VersionRequest
    entry_point: Optional[str] = None


@dataclass
class InstallResult:
    """Outcome of an install call.

    ``resolved_version`` is set whenever ``success`` is true, and
    ``package_folder`` / ``package_path`` are always set together.
    """
    success: bool
    in_cache: bool
    package_name: str
    requested_version: str
    resolved_version: Optional[str] = None
    package_folder: Optional[str] = None
    package_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        return asdict(self)
