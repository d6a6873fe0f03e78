from pathlib import Path

from emuplan.errors import (
    BuildFailure,
    BuildInterrupted,
    ErrorCode,
    LockfileError,
    MalformedTimestampError,
    MissingLockFileError,
    ReproducibilityError,
    UnsupportedPlatformError,
    ValidationError,
)
from emuplan.models import Dependency, DependencySet, DevEnvironment, SourceTree, VersionInfo


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ValidationError("bad input"),
        MalformedTimestampError("bad timestamp"),
        UnsupportedPlatformError("no such platform"),
        MissingLockFileError("no lock"),
        LockfileError("lock drift"),
        ReproducibilityError("cache drift"),
        BuildFailure("cargo failed"),
        BuildInterrupted(),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.VALIDATION.value,
        ErrorCode.MALFORMED_TIMESTAMP.value,
        ErrorCode.UNSUPPORTED_PLATFORM.value,
        ErrorCode.MISSING_LOCK_FILE.value,
        ErrorCode.LOCKFILE.value,
        ErrorCode.REPRODUCIBILITY.value,
        ErrorCode.BUILD_FAILURE.value,
        ErrorCode.INTERRUPTED.value,
    ]


def test_error_rendering_includes_hint_and_context() -> None:
    error = UnsupportedPlatformError(
        "No dependency catalog entry exists for this platform.",
        hint="Supported platforms: linux, macos.",
        context={"platform": "solaris"},
    )

    rendered = str(error)

    assert "Hint: Supported platforms: linux, macos." in rendered
    assert "platform: solaris" in rendered
    assert error.to_dict() == {
        "code": "E_UNSUPPORTED_PLATFORM",
        "message": rendered,
        "context": {"platform": "solaris"},
        "hint": "Supported platforms: linux, macos.",
    }


def test_build_failure_carries_toolchain_diagnostics() -> None:
    error = BuildFailure(
        "Toolchain invocation failed.",
        diagnostics="error[E0308]: mismatched types",
        returncode=101,
    )

    assert "--- toolchain diagnostics ---\nerror[E0308]: mismatched types" in str(error)
    payload = error.to_dict()
    assert payload["diagnostics"] == "error[E0308]: mismatched types"
    assert payload["returncode"] == 101


def test_interruption_is_a_build_failure() -> None:
    error = BuildInterrupted(returncode=-2)

    assert isinstance(error, BuildFailure)
    assert str(error) == "Build was interrupted."


def test_dependency_set_membership_and_payload() -> None:
    deps = DependencySet(
        platform="linux",
        native_build_inputs=(Dependency("cmake"),),
        build_inputs=(Dependency("libGL"),),
    )

    assert "libGL" in deps
    assert "AppKit" not in deps
    assert deps.names() == ("cmake", "libGL")
    assert deps.payload()["build_inputs"] == ["libGL"]
    assert str(Dependency("gtk3", provides_schemas=True)) == "gtk3"


def test_source_tree_and_dev_environment_helpers(tmp_path: Path) -> None:
    source = SourceTree(root=tmp_path, files=("Cargo.toml", "src/main.rs"), fingerprint="f")
    dev_env = DevEnvironment(
        derivation="emu-0.pre+date=2024-01-15",
        deps=DependencySet(platform="macos", build_inputs=(Dependency("AppKit"),)),
        tools=("rust-analyzer",),
    )

    assert len(source) == 2
    assert source.paths()[1] == tmp_path / "src" / "main.rs"
    assert dev_env.packages == ("AppKit", "rust-analyzer")
    assert VersionInfo("2024", "01", "15").date == "2024-01-15"
