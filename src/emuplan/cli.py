"""Command line entry points.

Usage:
    emuplan plan
    emuplan check [--no-toolchain]
    emuplan build
    emuplan dev-shell [--command CMD ...]
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from emuplan.backends import CargoBackend, InProcessBackend, ToolchainBackend
from emuplan.cache import ArtifactStore
from emuplan.devshell import DEFAULT_DEV_TOOLS, enter_shell, provision
from emuplan.environment import DEFAULT_STORE_ROOT, DependencyStore, compose_environment
from emuplan.errors import BuildInterrupted, EmuplanError
from emuplan.lockfile import locked_packages
from emuplan.models import Derivation
from emuplan.observability import StructuredLogger
from emuplan.pipeline import build_plan, check_plan
from emuplan.platforms import host_system, platform_from_system
from emuplan.project import ProjectDescriptor, compose_project, load_project
from emuplan.source import BUILD_OUTPUT_DIR

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

BACKENDS = ("cargo", "inprocess")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="emuplan",
        description="Compose and run platform-aware build plans",
    )
    parser.add_argument("--source", type=Path, default=Path("."), help="Project source root")
    parser.add_argument("--system", default=None, help="Target system, e.g. x86_64-linux")
    parser.add_argument(
        "--feature",
        action="append",
        default=[],
        help="Enable a feature flag (repeatable)",
    )
    parser.add_argument(
        "--no-default-features",
        action="store_true",
        help="Ignore the features listed in the project descriptor",
    )
    parser.add_argument("--timestamp", default=None, help="Version timestamp (YYYYMMDD...)")
    parser.add_argument(
        "--store-root",
        type=Path,
        default=DEFAULT_STORE_ROOT,
        help="Prefix under which native dependencies are installed",
    )
    parser.add_argument("--output", type=Path, default=None, help="Build output directory")
    parser.add_argument("--backend", choices=BACKENDS, default="cargo")
    parser.add_argument("--log-json", type=Path, default=None, help="Write JSON-lines logs here")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Echo every log record to stderr, not only warnings and errors",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("plan", help="Print the composed build plan as JSON")

    check_p = sub.add_parser("check", help="Validate the build plan")
    check_p.add_argument(
        "--no-toolchain",
        action="store_true",
        help="Stop after composing the plan; do not invoke the toolchain",
    )

    build_p = sub.add_parser("build", help="Build the artifact")
    build_p.add_argument("--no-cache", action="store_true", help="Bypass the artifact store")

    shell_p = sub.add_parser("dev-shell", help="Enter the development environment")
    shell_p.add_argument(
        "--command",
        dest="shell_command",
        nargs=argparse.REMAINDER,
        default=None,
        help="Run this command instead of $SHELL",
    )
    return parser


def cmd_plan(args: argparse.Namespace, derivation: Derivation, store: DependencyStore) -> int:
    payload = {
        "name": derivation.name,
        "fingerprint": derivation.fingerprint,
        "plan": derivation.payload(),
        "env": compose_environment(derivation.deps, derivation.platform, store=store),
        "locked_packages": [
            {"name": package.name, "version": package.version}
            for package in locked_packages(derivation.lock)
        ],
    }
    print(json.dumps(payload, indent=2, sort_keys=True))
    return EXIT_OK


def cmd_check(
    args: argparse.Namespace,
    derivation: Derivation,
    store: DependencyStore,
    logger: StructuredLogger,
) -> int:
    env = compose_environment(derivation.deps, derivation.platform, store=store)
    if args.no_toolchain:
        print(f"Plan for {derivation.name} is valid ({derivation.fingerprint}).")
        return EXIT_OK
    check_plan(
        derivation,
        _backend(args.backend),
        output_dir=_output_dir(args),
        env=env,
        base_env=os.environ,
        logger=logger,
    )
    print(f"Check passed for {derivation.name}.")
    return EXIT_OK


def cmd_build(
    args: argparse.Namespace,
    derivation: Derivation,
    store: DependencyStore,
    logger: StructuredLogger,
) -> int:
    env = compose_environment(derivation.deps, derivation.platform, store=store)
    output_dir = _output_dir(args)
    artifacts = None if args.no_cache else ArtifactStore(output_dir / "store")
    result = build_plan(
        derivation,
        _backend(args.backend),
        output_dir=output_dir,
        env=env,
        base_env=os.environ,
        store=artifacts,
        logger=logger,
    )
    if result.artifact is not None:
        suffix = " (cached)" if result.cached else ""
        print(f"{result.artifact.path}{suffix}")
    return EXIT_OK


def cmd_dev_shell(
    args: argparse.Namespace,
    derivation: Derivation,
    project: ProjectDescriptor,
    store: DependencyStore,
    logger: StructuredLogger,
) -> int:
    tools = (*project.dev_tools, *DEFAULT_DEV_TOOLS)
    dev_env = provision(derivation, tools, store=store, logger=logger)
    return enter_shell(dev_env, command=args.shell_command or None, logger=logger)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = StructuredLogger(stream=sys.stderr, echo_level="info" if args.verbose else "warning")
    try:
        return _dispatch(args, logger)
    except BuildInterrupted as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INTERRUPTED
    except EmuplanError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    finally:
        if args.log_json is not None:
            logger.to_json_lines(args.log_json)


def _dispatch(args: argparse.Namespace, logger: StructuredLogger) -> int:
    system = args.system or host_system()
    platform = platform_from_system(system)
    project = load_project(args.source)
    features = () if args.no_default_features else project.features
    derivation = compose_project(
        args.source,
        platform=platform,
        project=project,
        features=(*features, *args.feature),
        timestamp=args.timestamp,
        environ=os.environ,
        logger=logger,
    )
    store = DependencyStore(root=args.store_root)

    if args.command == "plan":
        return cmd_plan(args, derivation, store)
    if args.command == "check":
        return cmd_check(args, derivation, store, logger)
    if args.command == "build":
        return cmd_build(args, derivation, store, logger)
    return cmd_dev_shell(args, derivation, project, store, logger)


def _backend(name: str) -> ToolchainBackend:
    if name == "inprocess":
        return InProcessBackend()
    return CargoBackend()


def _output_dir(args: argparse.Namespace) -> Path:
    if args.output is not None:
        return Path(args.output)
    return Path(args.source) / BUILD_OUTPUT_DIR / "emuplan"


if __name__ == "__main__":
    sys.exit(main())
