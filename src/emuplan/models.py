"""Core typed dataclasses for resolved dependencies, build plans and environments."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import cbor2

Platform = Literal["linux", "macos"]
DependencyKind = Literal["package", "framework", "hook", "tool"]
BuildMode = Literal["check", "build"]
PlanVariant = Literal["build", "dev"]

EnvMap = dict[str, str]

PLAN_SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True)
class Dependency:
    """A named native dependency as listed in the platform catalog."""

    name: str
    kind: DependencyKind = "package"
    provides_schemas: bool = False

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class DependencySet:
    platform: Platform
    features: tuple[str, ...] = ()
    native_build_inputs: tuple[Dependency, ...] = ()
    build_inputs: tuple[Dependency, ...] = ()
    extra_targets: tuple[str, ...] = ()
    post_build_hooks: tuple[str, ...] = ()

    def names(self) -> tuple[str, ...]:
        return tuple(dep.name for dep in (*self.native_build_inputs, *self.build_inputs))

    def __contains__(self, name: object) -> bool:
        return name in self.names()

    def payload(self) -> dict[str, object]:
        return {
            "platform": self.platform,
            "features": list(self.features),
            "native_build_inputs": [dep.name for dep in self.native_build_inputs],
            "build_inputs": [dep.name for dep in self.build_inputs],
            "extra_targets": list(self.extra_targets),
            "post_build_hooks": list(self.post_build_hooks),
        }


@dataclass(frozen=True, slots=True)
class VersionInfo:
    year: str
    month: str
    day: str

    @property
    def date(self) -> str:
        return f"{self.year}-{self.month}-{self.day}"

    def __str__(self) -> str:
        return f"0.pre+date={self.date}"


@dataclass(frozen=True, slots=True)
class SourceTree:
    """Filtered, ordered file set handed to the compiler."""

    root: Path
    files: tuple[str, ...]
    fingerprint: str

    def __len__(self) -> int:
        return len(self.files)

    def paths(self) -> tuple[Path, ...]:
        return tuple(self.root / rel for rel in self.files)


@dataclass(frozen=True, slots=True)
class LockRef:
    path: Path
    digest: str


@dataclass(frozen=True, slots=True)
class DerivationMeta:
    license: str = "Apache-2.0"
    platforms: tuple[Platform, ...] = ("linux", "macos")


@dataclass(frozen=True, slots=True)
class Derivation:
    """Immutable build plan consumed by the toolchain backend."""

    pname: str
    version: VersionInfo
    source: SourceTree
    deps: DependencySet
    lock: LockRef
    meta: DerivationMeta = field(default_factory=DerivationMeta)
    run_tests: bool = True
    test_relaxation_reason: str | None = None
    schema_version: int = PLAN_SCHEMA_VERSION

    @property
    def name(self) -> str:
        return f"{self.pname}-{self.version}"

    @property
    def platform(self) -> Platform:
        return self.deps.platform

    @property
    def fingerprint(self) -> str:
        canonical = json.dumps(self.payload(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self.payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self.payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def payload(self) -> dict[str, object]:
        # The source root is host-specific; only its content fingerprint is hashed.
        return {
            "schema_version": self.schema_version,
            "pname": self.pname,
            "version": str(self.version),
            "source": {
                "fingerprint": self.source.fingerprint,
                "files": list(self.source.files),
            },
            "deps": self.deps.payload(),
            "lock": {"name": self.lock.path.name, "digest": self.lock.digest},
            "meta": {"license": self.meta.license, "platforms": list(self.meta.platforms)},
            "run_tests": self.run_tests,
            "test_relaxation_reason": self.test_relaxation_reason,
        }


@dataclass(frozen=True, slots=True)
class DevEnvironment:
    derivation: str
    deps: DependencySet
    tools: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    shell_hook: str | None = None

    @property
    def packages(self) -> tuple[str, ...]:
        return (*self.deps.names(), *self.tools)


@dataclass(frozen=True, slots=True)
class BuildRequest:
    derivation: Derivation
    mode: BuildMode
    output_dir: Path
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ArtifactRef:
    path: Path
    digest: str | None = None


@dataclass(slots=True)
class BuildResult:
    fingerprint: str
    mode: BuildMode
    artifact: ArtifactRef | None = None
    cached: bool = False
    wrapper: Path | None = None
    diagnostics: str = ""


@dataclass(frozen=True, slots=True)
class HookOutcome:
    ran: bool
    ok: bool
    returncode: int | None = None
    detail: str = ""


__all__ = [
    "ArtifactRef",
    "BuildMode",
    "BuildRequest",
    "BuildResult",
    "Dependency",
    "DependencyKind",
    "DependencySet",
    "Derivation",
    "DerivationMeta",
    "DevEnvironment",
    "EnvMap",
    "HookOutcome",
    "LockRef",
    "PLAN_SCHEMA_VERSION",
    "Platform",
    "PlanVariant",
    "SourceTree",
    "VersionInfo",
]
