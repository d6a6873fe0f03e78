"""Platform tags and Nix-style system triples."""

from __future__ import annotations

import platform as _host
import sys
from typing import cast

from emuplan.errors import UnsupportedPlatformError
from emuplan.models import Platform

PLATFORMS: tuple[Platform, ...] = ("linux", "macos")

DEFAULT_SYSTEMS: tuple[str, ...] = (
    "x86_64-linux",
    "aarch64-linux",
    "x86_64-darwin",
    "aarch64-darwin",
)

_KERNEL_TO_PLATFORM: dict[str, Platform] = {
    "linux": "linux",
    "darwin": "macos",
}

_MACHINE_ALIASES: dict[str, str] = {
    "amd64": "x86_64",
    "arm64": "aarch64",
}


def ensure_platform(tag: str) -> Platform:
    if tag not in PLATFORMS:
        raise UnsupportedPlatformError(
            "No dependency catalog entry exists for this platform.",
            hint=f"Supported platforms: {', '.join(PLATFORMS)}.",
            context={"operation": "resolve_platform", "platform": tag or "<empty>"},
        )
    return cast(Platform, tag)


def platform_from_system(system: str) -> Platform:
    """Map a ``<arch>-<kernel>`` system triple onto a platform tag."""
    arch, sep, kernel = system.partition("-")
    platform = _KERNEL_TO_PLATFORM.get(kernel) if sep and arch else None
    if platform is None or system not in DEFAULT_SYSTEMS:
        raise UnsupportedPlatformError(
            "System is not one of the supported build systems.",
            hint=f"Supported systems: {', '.join(DEFAULT_SYSTEMS)}.",
            context={"operation": "platform_from_system", "system": system or "<empty>"},
        )
    return platform


def rust_host_target(system: str) -> str:
    platform = platform_from_system(system)
    arch = system.partition("-")[0]
    if platform == "linux":
        return f"{arch}-unknown-linux-gnu"
    return f"{arch}-apple-darwin"


def host_system() -> str:
    """Describe the running interpreter's host as a system triple.

    Only the CLI calls this; library code takes the platform as an argument.
    """
    machine = _host.machine().lower()
    arch = _MACHINE_ALIASES.get(machine, machine)
    kernel = "darwin" if sys.platform == "darwin" else sys.platform.rstrip("0123456789")
    return f"{arch}-{kernel}"

