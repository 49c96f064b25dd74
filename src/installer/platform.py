"""Platform detection for platform-specific tool packages.

Tool packages are published once per runtime identifier, e.g.
``Contoso.Scanner.Cli.linux-x64``, plus a portable package without a suffix.
"""

from __future__ import annotations

import platform
from typing import Optional

# Architecture normalization map
_ARCH_MAP = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


def normalize_arch(machine: str) -> Optional[str]:
    """Normalize an architecture string from platform.machine()."""
    return _ARCH_MAP.get(machine.lower())


def runtime_identifier(system: Optional[str] = None, machine: Optional[str] = None) -> Optional[str]:
    """Return the runtime identifier suffix for a platform, or None if none is published.

    Windows always maps to ``win-x64``; Linux to ``linux-arm64`` or ``linux-x64``.
    """
    system = (system if system is not None else platform.system()).lower()
    machine = machine if machine is not None else platform.machine()

    if system == "windows":
        return "win-x64"
    if system == "linux":
        if normalize_arch(machine) == "arm64":
            return "linux-arm64"
        return "linux-x64"
    return None


def resolve_package_name(
    base_name: str,
    portable: bool = False,
    system: Optional[str] = None,
    machine: Optional[str] = None,
) -> str:
    """Pick the package to install for the current (or given) platform.

    Args:
        base_name: Portable package name
        portable: Force the portable package
        system: Override for platform.system()
        machine: Override for platform.machine()
    """
    if portable:
        return base_name
    rid = runtime_identifier(system, machine)
    if rid is None:
        return base_name
    return f"{base_name}.{rid}"
