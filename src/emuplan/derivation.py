"""Derivation composer: binds identity, version, source, deps and lock into one plan."""

from __future__ import annotations

import warnings
from pathlib import Path

from emuplan.errors import LockfileError, UnsupportedPlatformError, ValidationError
from emuplan.lockfile import read_lock_ref
from emuplan.models import (
    DependencySet,
    Derivation,
    DerivationMeta,
    LockRef,
    SourceTree,
    VersionInfo,
)
from emuplan.observability import StructuredLogger
from emuplan.policy import ComposePolicy, ensure_test_policy


def compose(
    name: str,
    version: VersionInfo,
    source: SourceTree,
    deps: DependencySet,
    lock_ref: str | Path | LockRef,
    meta: DerivationMeta | None = None,
    *,
    policy: ComposePolicy | None = None,
    logger: StructuredLogger | None = None,
) -> Derivation:
    """Validate the inputs and return an immutable :class:`Derivation`.

    The lock file is re-read even when a :class:`LockRef` is passed, so a
    plan can never point at a lock that vanished after it was referenced.
    Building the plan is left to a toolchain backend.
    """
    selected_meta = meta or DerivationMeta()
    selected_policy = policy or ComposePolicy()

    if not name:
        raise ValidationError(
            "compose() requires a non-empty package name.",
            context={"operation": "compose"},
        )
    ensure_source(source, name=name)
    if deps.platform not in selected_meta.platforms:
        raise UnsupportedPlatformError(
            "Package metadata does not list this platform.",
            hint=f"Supported by this package: {', '.join(selected_meta.platforms)}.",
            context={"operation": "compose", "package": name, "platform": deps.platform},
        )
    ensure_test_policy(selected_policy)

    lock_path = lock_ref.path if isinstance(lock_ref, LockRef) else Path(lock_ref)
    lock = read_lock_ref(lock_path)
    if isinstance(lock_ref, LockRef) and lock.digest != lock_ref.digest:
        raise LockfileError(
            "Lock file changed after it was referenced.",
            hint="Re-read the lock file and compose again.",
            context={
                "operation": "compose",
                "path": str(lock_path),
                "expected": lock_ref.digest,
                "actual": lock.digest,
            },
        )

    derivation = Derivation(
        pname=name,
        version=version,
        source=source,
        deps=deps,
        lock=lock,
        meta=selected_meta,
        run_tests=selected_policy.run_tests,
        test_relaxation_reason=selected_policy.test_relaxation_reason,
    )

    if not derivation.run_tests:
        warnings.warn(
            f"Test phase disabled for {derivation.name}: {derivation.test_relaxation_reason}",
            RuntimeWarning,
            stacklevel=2,
        )
    if logger is not None:
        if not derivation.run_tests:
            logger.log(
                operation="compose",
                platform=deps.platform,
                component="derivation",
                message="Test phase disabled by policy.",
                level="warning",
                extra={"reason": derivation.test_relaxation_reason},
            )
        logger.log(
            operation="compose",
            platform=deps.platform,
            component="derivation",
            message="Composed derivation.",
            extra={"name": derivation.name, "fingerprint": derivation.fingerprint},
        )
    return derivation


def ensure_source(source: SourceTree, *, name: str) -> None:
    if len(source) == 0:
        raise ValidationError(
            "Filtered source tree is empty.",
            hint="Check the source root and the exclude rules.",
            context={"operation": "compose", "package": name, "root": str(source.root)},
        )

