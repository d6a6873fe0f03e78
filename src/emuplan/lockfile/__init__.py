"""Lock file reference and package listing."""

from emuplan.lockfile.io import locked_packages, parse_cargo_lock, read_lock_ref
from emuplan.lockfile.model import LockedPackage

__all__ = [
    "LockedPackage",
    "locked_packages",
    "parse_cargo_lock",
    "read_lock_ref",
]
