"""Toolchain backends."""

from emuplan.backends.base import ToolchainBackend, run_toolchain, stage_source
from emuplan.backends.cargo import CargoBackend
from emuplan.backends.inprocess import InProcessBackend

__all__ = [
    "CargoBackend",
    "InProcessBackend",
    "ToolchainBackend",
    "run_toolchain",
    "stage_source",
]
