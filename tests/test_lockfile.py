import hashlib
from pathlib import Path

import pytest

from emuplan.errors import LockfileError, MissingLockFileError
from emuplan.lockfile import LockedPackage, locked_packages, parse_cargo_lock, read_lock_ref


def test_read_lock_ref_pins_content_digest(project_root: Path) -> None:
    lock_path = project_root / "Cargo.lock"

    lock = read_lock_ref(lock_path)

    assert lock.path == lock_path
    assert lock.digest == hashlib.sha256(lock_path.read_bytes()).hexdigest()


def test_missing_lock_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(MissingLockFileError) as excinfo:
        read_lock_ref(tmp_path / "Cargo.lock")

    assert excinfo.value.code == "E_MISSING_LOCK_FILE"
    assert excinfo.value.hint is not None


def test_directory_in_place_of_lock_file_is_reported(tmp_path: Path) -> None:
    (tmp_path / "Cargo.lock").mkdir()

    with pytest.raises(MissingLockFileError):
        read_lock_ref(tmp_path / "Cargo.lock")


def test_locked_packages_are_sorted(project_root: Path) -> None:
    packages = locked_packages(read_lock_ref(project_root / "Cargo.lock"))

    assert [package.name for package in packages] == ["egui", "emu"]
    assert packages[0].source == "registry+https://github.com/rust-lang/crates.io-index"
    assert packages[1] == LockedPackage(name="emu", version="0.1.0")


def test_locked_packages_rejects_changed_lock(project_root: Path) -> None:
    lock_path = project_root / "Cargo.lock"
    lock = read_lock_ref(lock_path)
    lock_path.write_text(lock_path.read_text(encoding="utf-8") + "\n# edited\n", encoding="utf-8")

    with pytest.raises(LockfileError):
        locked_packages(lock)


def test_locked_packages_rejects_non_utf8_lock(tmp_path: Path) -> None:
    lock_path = tmp_path / "Cargo.lock"
    lock_path.write_bytes(b"version = 3\n# \xff\xfe\n")

    with pytest.raises(LockfileError) as excinfo:
        locked_packages(read_lock_ref(lock_path))

    assert excinfo.value.context["path"] == str(lock_path)


def test_parse_cargo_lock_rejects_invalid_toml() -> None:
    with pytest.raises(LockfileError):
        parse_cargo_lock("[[package]\nname = ")


def test_parse_cargo_lock_requires_package_version() -> None:
    with pytest.raises(LockfileError):
        parse_cargo_lock('[[package]]\nname = "emu"\n')


def test_parse_cargo_lock_without_packages_is_empty() -> None:
    assert parse_cargo_lock("version = 3\n") == []
