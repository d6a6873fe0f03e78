import os
from pathlib import Path

import pytest

from emuplan.errors import ValidationError
from emuplan.source import ExcludeRule, cargo_source, filter_source


def test_filter_source_drops_build_outputs_and_descriptors(project_root: Path) -> None:
    source = filter_source(project_root)

    assert source.files == (
        "Cargo.lock",
        "Cargo.toml",
        "README.md",
        "src/cpu/mod.rs",
        "src/main.rs",
    )
    assert len(source) == 5
    assert source.paths()[0] == project_root / "Cargo.lock"


def test_nested_target_directory_is_excluded(project_root: Path) -> None:
    nested = project_root / "crates" / "core" / "target"
    nested.mkdir(parents=True)
    (nested / "junk.o").write_bytes(b"obj")
    (project_root / "crates" / "core" / "lib.rs").write_text("\n", encoding="utf-8")

    source = filter_source(project_root)

    assert "crates/core/lib.rs" in source.files
    assert not any("target" in rel.split("/") for rel in source.files)


def test_descriptor_files_are_only_excluded_at_top_level(project_root: Path) -> None:
    (project_root / "templates").mkdir()
    (project_root / "templates" / "flake.nix").write_text("{}\n", encoding="utf-8")
    (project_root / "emuplan.json").write_text("{}\n", encoding="utf-8")

    source = filter_source(project_root)

    assert "templates/flake.nix" in source.files
    assert "emuplan.json" not in source.files
    assert "flake.nix" not in source.files


def test_file_named_target_is_kept(project_root: Path) -> None:
    (project_root / "src" / "target").write_text("not a directory\n", encoding="utf-8")

    assert "src/target" in filter_source(project_root).files


def test_fingerprint_ignores_excluded_content(project_root: Path) -> None:
    before = filter_source(project_root).fingerprint

    (project_root / "flake.nix").write_text("{ changed = true; }\n", encoding="utf-8")
    (project_root / "target" / "debug" / "emu").write_bytes(b"fresh build")
    (project_root / ".git" / "HEAD").write_text("ref: refs/heads/dev\n", encoding="utf-8")

    assert filter_source(project_root).fingerprint == before


def test_fingerprint_tracks_source_content(project_root: Path) -> None:
    before = filter_source(project_root).fingerprint

    (project_root / "src" / "main.rs").write_text("fn main() { run(); }\n", encoding="utf-8")

    assert filter_source(project_root).fingerprint != before


def test_fingerprint_is_independent_of_root_location(make_project) -> None:
    first = filter_source(make_project("one"))
    second = filter_source(make_project("two"))

    assert first.root != second.root
    assert first.fingerprint == second.fingerprint


def test_keep_predicate_narrows_to_cargo_inputs(project_root: Path) -> None:
    source = filter_source(project_root, keep=cargo_source)

    assert "README.md" not in source.files
    assert "Cargo.lock" in source.files
    assert "src/main.rs" in source.files


def test_custom_exclude_rules_replace_defaults(project_root: Path) -> None:
    source = filter_source(project_root, [ExcludeRule("src", kind="directory")])

    assert "flake.nix" in source.files
    assert "target/debug/emu" in source.files
    assert not any(rel.startswith("src/") for rel in source.files)


def test_symlinks_are_recorded_but_not_followed(project_root: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.rs").write_text("// outside\n", encoding="utf-8")
    os.symlink(outside, project_root / "linked")

    source = filter_source(project_root)

    assert "linked" in source.files
    assert not any(rel.startswith("linked/") for rel in source.files)


def test_filter_source_requires_directory(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        filter_source(tmp_path / "missing")
