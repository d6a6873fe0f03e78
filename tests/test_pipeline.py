from pathlib import Path

import pytest

from emuplan.backends import InProcessBackend
from emuplan.cache import ArtifactStore
from emuplan.errors import BuildFailure, BuildInterrupted, ReproducibilityError
from emuplan.models import Derivation
from emuplan.observability import StructuredLogger
from emuplan.pipeline import build_plan, check_plan
from emuplan.wrap import wrapped_path

ENV = {"LD_LIBRARY_PATH": "/store/libX11/lib"}


def test_check_plan_invokes_backend_check(
    linux_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    result = check_plan(linux_plan, inprocess_backend, output_dir=tmp_path / "out", env=ENV)

    assert result.mode == "check"
    assert result.artifact is None
    assert inprocess_backend.invocations == [("check", linux_plan.fingerprint)]


def test_build_plan_wraps_linux_file_picker_binary(
    linux_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    env = {**ENV, "GSETTINGS_SCHEMAS_PATH": "/store/gtk3/share/gsettings-schemas/gtk3"}

    result = build_plan(linux_plan, inprocess_backend, output_dir=tmp_path / "out", env=env)

    assert result.artifact is not None
    assert result.artifact.path == tmp_path / "out" / "bin" / "emu"
    assert result.wrapper == result.artifact.path
    assert wrapped_path(result.artifact.path).exists()
    assert "GSETTINGS_SCHEMAS_PATH" in result.artifact.path.read_text(encoding="utf-8")


def test_build_plan_on_macos_has_no_wrapper(
    macos_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    result = build_plan(macos_plan, inprocess_backend, output_dir=tmp_path / "out", env={})

    assert result.wrapper is None
    assert result.artifact is not None
    assert not wrapped_path(result.artifact.path).exists()


def test_build_plan_reuses_cached_artifact(
    linux_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    store = ArtifactStore(tmp_path / "store")
    logger = StructuredLogger()

    first = build_plan(
        linux_plan,
        inprocess_backend,
        output_dir=tmp_path / "out",
        env=ENV,
        store=store,
    )
    second = build_plan(
        linux_plan,
        inprocess_backend,
        output_dir=tmp_path / "out",
        env=ENV,
        store=store,
        logger=logger,
    )

    assert first.cached is False
    assert second.cached is True
    assert inprocess_backend.invocations == [("build", linux_plan.fingerprint)]
    assert first.artifact is not None
    assert second.artifact is not None
    assert second.artifact.digest == first.artifact.digest
    assert second.wrapper is not None
    assert any(record.message == "Reused cached artifact." for record in logger.records)


def test_build_plan_cache_misses_on_environment_change(
    linux_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    store = ArtifactStore(tmp_path / "store")

    build_plan(linux_plan, inprocess_backend, output_dir=tmp_path / "out", env=ENV, store=store)
    result = build_plan(
        linux_plan,
        inprocess_backend,
        output_dir=tmp_path / "out",
        env={"LD_LIBRARY_PATH": "/other/lib"},
        store=store,
    )

    assert result.cached is False
    assert len(inprocess_backend.invocations) == 2


def test_base_environment_does_not_affect_cache_key(
    linux_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    store = ArtifactStore(tmp_path / "store")

    build_plan(
        linux_plan,
        inprocess_backend,
        output_dir=tmp_path / "out",
        env=ENV,
        base_env={"TERM": "xterm"},
        store=store,
    )
    result = build_plan(
        linux_plan,
        inprocess_backend,
        output_dir=tmp_path / "out",
        env=ENV,
        base_env={"TERM": "dumb"},
        store=store,
    )

    assert result.cached is True


def test_tampered_cache_entry_is_rejected(
    linux_plan: Derivation,
    inprocess_backend: InProcessBackend,
    tmp_path: Path,
) -> None:
    store = ArtifactStore(tmp_path / "store")
    build_plan(linux_plan, inprocess_backend, output_dir=tmp_path / "out", env=ENV, store=store)
    (artifact,) = (tmp_path / "store").glob("*/artifact.bin")
    artifact.write_bytes(b"tampered")

    with pytest.raises(ReproducibilityError):
        build_plan(
            linux_plan,
            inprocess_backend,
            output_dir=tmp_path / "out",
            env=ENV,
            store=store,
        )


def test_toolchain_failure_surfaces_diagnostics(linux_plan: Derivation, tmp_path: Path) -> None:
    backend = InProcessBackend(fail_with="error[E0425]: cannot find value `rom` in this scope")
    logger = StructuredLogger()

    with pytest.raises(BuildFailure) as excinfo:
        build_plan(linux_plan, backend, output_dir=tmp_path / "out", env=ENV, logger=logger)

    assert excinfo.value.returncode == 101
    assert "cannot find value `rom`" in str(excinfo.value)
    assert logger.records_at("error")[0].extra["code"] == "E_BUILD_FAILURE"


def test_interrupted_build_is_distinguished(linux_plan: Derivation, tmp_path: Path) -> None:
    backend = InProcessBackend(interrupt=True)

    with pytest.raises(BuildInterrupted) as excinfo:
        check_plan(linux_plan, backend, output_dir=tmp_path / "out", env=ENV)

    assert excinfo.value.code == "E_INTERRUPTED"
    assert isinstance(excinfo.value, BuildFailure)
