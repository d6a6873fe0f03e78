"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from emuplan.backends import InProcessBackend
from emuplan.models import Derivation
from emuplan.project import compose_project

TIMESTAMP = "20240115120000"

CARGO_TOML = """\
[package]
name = "emu"
version = "0.1.0"
edition = "2021"

[dependencies]
egui = "0.27"
"""

CARGO_LOCK = """\
version = 3

[[package]]
name = "emu"
version = "0.1.0"
dependencies = ["egui"]

[[package]]
name = "egui"
version = "0.27.2"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "584c5d1bf9a67b25778a3323af222dbe1a1feb532190e103901187f92c7fe29a"
"""


def _write_project(root: Path) -> Path:
    (root / "src" / "cpu").mkdir(parents=True)
    (root / "Cargo.toml").write_text(CARGO_TOML, encoding="utf-8")
    (root / "Cargo.lock").write_text(CARGO_LOCK, encoding="utf-8")
    (root / "src" / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
    (root / "src" / "cpu" / "mod.rs").write_text("pub struct Cpu;\n", encoding="utf-8")
    (root / "README.md").write_text("# emu\n", encoding="utf-8")
    (root / "flake.nix").write_text("{ outputs = _: { }; }\n", encoding="utf-8")
    (root / "target" / "debug").mkdir(parents=True)
    (root / "target" / "debug" / "emu").write_bytes(b"\x7fELF stale build output")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return root


@pytest.fixture
def inprocess_backend() -> InProcessBackend:
    """Provide an in-process backend for tests that invoke the toolchain."""
    return InProcessBackend()


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[[str], Path]:
    """Factory writing a small cargo project under ``tmp_path/<name>``."""

    def factory(name: str = "emu") -> Path:
        return _write_project(tmp_path / name)

    return factory


@pytest.fixture
def project_root(make_project: Callable[[str], Path]) -> Path:
    return make_project("emu")


@pytest.fixture
def linux_plan(project_root: Path) -> Derivation:
    return compose_project(project_root, platform="linux", timestamp=TIMESTAMP)


@pytest.fixture
def macos_plan(project_root: Path) -> Derivation:
    return compose_project(project_root, platform="macos", timestamp=TIMESTAMP)
