"""In-process toolchain backend for testing and development.

Produces deterministic placeholder artifacts without invoking cargo,
which makes it suitable for unit tests and for hosts without a Rust
toolchain.  Every call is recorded in ``invocations``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from emuplan.errors import BuildFailure, BuildInterrupted
from emuplan.models import ArtifactRef, BuildMode, BuildRequest, BuildResult


@dataclass(slots=True)
class InProcessBackend:
    """Backend that produces deterministic placeholder artifacts in-process."""

    name: str = "inprocess"
    fail_with: str | None = None
    interrupt: bool = False
    invocations: list[tuple[BuildMode, str]] = field(default_factory=list)

    def check(self, request: BuildRequest) -> BuildResult:
        self._record(request, "check")
        return BuildResult(fingerprint=request.derivation.fingerprint, mode="check")

    def build(self, request: BuildRequest) -> BuildResult:
        self._record(request, "build")
        derivation = request.derivation
        artifact_path = request.output_dir / "bin" / derivation.pname
        artifact_path.parent.mkdir(parents=True, exist_ok=True)
        content = (
            "#!/bin/sh\n"
            f"# {derivation.name}\n"
            f"# fingerprint={derivation.fingerprint}\n"
            f"# platform={derivation.platform}\n"
            "exit 0\n"
        )
        artifact_path.write_text(content, encoding="utf-8")
        artifact_path.chmod(0o755)
        return BuildResult(
            fingerprint=derivation.fingerprint,
            mode="build",
            artifact=ArtifactRef(
                path=artifact_path,
                digest=hashlib.sha256(content.encode("utf-8")).hexdigest(),
            ),
        )

    def _record(self, request: BuildRequest, mode: BuildMode) -> None:
        self.invocations.append((mode, request.derivation.fingerprint))
        context = {"backend": self.name, "operation": mode}
        if self.interrupt:
            raise BuildInterrupted(context=context)
        if self.fail_with is not None:
            raise BuildFailure(
                "Toolchain invocation failed.",
                diagnostics=self.fail_with,
                returncode=101,
                context=context,
            )
