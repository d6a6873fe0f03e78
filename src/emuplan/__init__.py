"""Public package entrypoint for the emuplan build-plan composer."""

from .catalog import resolve_dependencies
from .derivation import compose
from .devshell import provision
from .environment import DependencyStore, compose_environment
from .errors import (
    BuildFailure,
    BuildInterrupted,
    EmuplanError,
    LockfileError,
    MalformedTimestampError,
    MissingLockFileError,
    ReproducibilityError,
    UnsupportedPlatformError,
    ValidationError,
)
from .models import (
    Dependency,
    DependencySet,
    Derivation,
    DerivationMeta,
    DevEnvironment,
    LockRef,
    SourceTree,
    VersionInfo,
)
from .policy import ComposePolicy
from .source import ExcludeRule, filter_source
from .version import derive_version, version_info

__all__ = [
    "BuildFailure",
    "BuildInterrupted",
    "ComposePolicy",
    "Dependency",
    "DependencySet",
    "DependencyStore",
    "Derivation",
    "DerivationMeta",
    "DevEnvironment",
    "EmuplanError",
    "ExcludeRule",
    "LockRef",
    "LockfileError",
    "MalformedTimestampError",
    "MissingLockFileError",
    "ReproducibilityError",
    "SourceTree",
    "UnsupportedPlatformError",
    "ValidationError",
    "VersionInfo",
    "compose",
    "compose_environment",
    "derive_version",
    "filter_source",
    "provision",
    "resolve_dependencies",
    "version_info",
]
