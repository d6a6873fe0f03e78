"""Cargo toolchain backend.

Stages the filtered source into ``<output_dir>/src`` and runs cargo there
with ``--locked`` so the lock file is consumed, never rewritten.  Build
outputs go to ``<output_dir>/cargo-target``; the finished binary is
copied to ``<output_dir>/bin/<pname>``.
"""

from __future__ import annotations

import hashlib
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from emuplan.backends.base import run_toolchain, stage_source
from emuplan.errors import BuildFailure
from emuplan.models import ArtifactRef, BuildRequest, BuildResult


@dataclass(slots=True)
class CargoBackend:
    name: str = "cargo"
    tool: str = "cargo"
    cargo_args: list[str] = field(default_factory=list)

    def check(self, request: BuildRequest) -> BuildResult:
        work_dir = self._stage(request)
        env = self._env(request)
        self._run(request, work_dir, env, "check", "--all-targets")
        if request.derivation.run_tests:
            self._run(request, work_dir, env, "test")
        return BuildResult(fingerprint=request.derivation.fingerprint, mode="check")

    def build(self, request: BuildRequest) -> BuildResult:
        derivation = request.derivation
        work_dir = self._stage(request)
        env = self._env(request)
        self._run(request, work_dir, env, "build", "--release")
        for target in derivation.deps.extra_targets:
            self._run(request, work_dir, env, "build", "--release", "--target", target)
        if derivation.run_tests:
            self._run(request, work_dir, env, "test", "--release")

        built = self._target_dir(request) / "release" / derivation.pname
        if not built.is_file():
            raise BuildFailure(
                "Toolchain reported success but produced no binary.",
                hint="Check that the crate defines a binary named after the package.",
                context={
                    "backend": self.name,
                    "operation": "build",
                    "expected": str(built),
                },
            )
        artifact_path = request.output_dir / "bin" / derivation.pname
        artifact_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(built, artifact_path)
        digest = hashlib.sha256(artifact_path.read_bytes()).hexdigest()
        return BuildResult(
            fingerprint=derivation.fingerprint,
            mode="build",
            artifact=ArtifactRef(path=artifact_path, digest=digest),
        )

    def _stage(self, request: BuildRequest) -> Path:
        derivation = request.derivation
        return stage_source(
            derivation.source,
            request.output_dir / "src",
            lock_file=derivation.lock.path,
        )

    def _target_dir(self, request: BuildRequest) -> Path:
        return request.output_dir / "cargo-target"

    def _env(self, request: BuildRequest) -> dict[str, str]:
        env = dict(request.env)
        env["CARGO_TARGET_DIR"] = str(self._target_dir(request))
        return env

    def _run(
        self,
        request: BuildRequest,
        work_dir: Path,
        env: dict[str, str],
        subcommand: str,
        *args: str,
    ) -> None:
        cmd = [self.tool, subcommand, "--locked", *args, *self.cargo_args]
        run_toolchain(cmd, cwd=work_dir, env=env, backend=self.name, operation=subcommand)
