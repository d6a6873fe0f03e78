"""Lock file reading.

The lock file is produced by the language toolchain and only ever read
here: its digest pins the derivation and its package list is reported,
but no dependency resolution happens on this side.
"""

from __future__ import annotations

import hashlib
import tomllib
from pathlib import Path
from typing import Any

from emuplan.errors import LockfileError, MissingLockFileError
from emuplan.lockfile.model import LockedPackage
from emuplan.models import LockRef


def read_lock_ref(path: str | Path) -> LockRef:
    lock_path = Path(path)
    try:
        raw = lock_path.read_bytes()
    except FileNotFoundError as exc:
        raise MissingLockFileError(
            "Lock file does not exist.",
            hint="Generate it with `cargo generate-lockfile` and commit it.",
            context={"operation": "read_lock_ref", "path": str(lock_path)},
        ) from exc
    except (IsADirectoryError, PermissionError) as exc:
        raise MissingLockFileError(
            "Lock file is not readable.",
            hint="Check the lock_file path and its permissions.",
            context={"operation": "read_lock_ref", "path": str(lock_path), "reason": str(exc)},
        ) from exc
    return LockRef(path=lock_path, digest=hashlib.sha256(raw).hexdigest())


def parse_cargo_lock(raw: str) -> list[LockedPackage]:
    try:
        payload = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileError("Invalid Cargo.lock TOML.", hint=str(exc)) from exc

    packages_raw = payload.get("package", [])
    if not isinstance(packages_raw, list):
        raise LockfileError("Invalid Cargo.lock `package` value.")
    packages = [_parse_package(item) for item in packages_raw]
    return sorted(packages, key=lambda item: (item.name, item.version))


def locked_packages(lock: LockRef) -> list[LockedPackage]:
    raw = lock.path.read_bytes()
    digest = hashlib.sha256(raw).hexdigest()
    if digest != lock.digest:
        raise LockfileError(
            "Lock file changed after it was referenced.",
            hint="Recompose the build plan.",
            context={
                "operation": "locked_packages",
                "path": str(lock.path),
                "expected": lock.digest,
                "actual": digest,
            },
        )
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise LockfileError(
            "Lock file is not valid UTF-8.",
            hint="Regenerate it with `cargo generate-lockfile`.",
            context={"operation": "locked_packages", "path": str(lock.path), "reason": str(exc)},
        ) from exc
    return parse_cargo_lock(text)


def _parse_package(item: Any) -> LockedPackage:
    if not isinstance(item, dict):
        raise LockfileError("Invalid package entry in Cargo.lock.")
    return LockedPackage(
        name=_required_str(item, "name"),
        version=_required_str(item, "version"),
        source=_optional_str(item, "source"),
        checksum=_optional_str(item, "checksum"),
    )


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise LockfileError(f"Invalid Cargo.lock package `{key}` value.")
    return value


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise LockfileError(f"Invalid Cargo.lock package `{key}` value.")
    return value
