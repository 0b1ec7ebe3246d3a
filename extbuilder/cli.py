"""Command line interface for defining and running extension build graphs."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import logging
import sys

from core.command_runner import CommandError, RecordingCommandRunner, SubprocessCommandRunner

from .config import load_extension_configs
from .context import DEFAULT_CROSS_CONFIG, BuildContext
from .errors import ConfigurationError, ExtensionBuildError
from .files import RecordingFileOperations
from .packaging import RecordingPackager
from .platforms import RuntimeInfo
from .runner import GraphRunner
from .task import define_extensions


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(
        prog="extbuilder",
        description="Compile native extensions for the host, foreign platforms and JRuby",
    )
    parser.add_argument("targets", nargs="*", help="Nodes to run (default: compile)")
    parser.add_argument(
        "-f",
        "--file",
        default="extensions.toml",
        help="Project file declaring the extensions (.toml, .json, .yaml)",
    )
    parser.add_argument(
        "--cross-config",
        default=str(DEFAULT_CROSS_CONFIG),
        help="Saved cross-compilation configuration (rbconfig-<version> entries)",
    )
    parser.add_argument("--ruby", default="ruby", help="Interpreter used for configure scripts")
    parser.add_argument("--host-platform", help="Override the detected runtime platform")
    parser.add_argument("--runtime-version", help="Override the detected runtime version")
    parser.add_argument("--dlext", default="so", help="Library extension when overriding detection")
    parser.add_argument("-n", "--dry-run", action="store_true", help="Print commands without executing")
    parser.add_argument("-t", "--trace", action="store_true", help="Log every executed node")
    parser.add_argument("-T", "--tasks", action="store_true", help="List described nodes and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(list(argv))


def _resolve_runtime(args: Namespace) -> RuntimeInfo:
    if args.host_platform and args.runtime_version:
        return RuntimeInfo(
            platform=args.host_platform,
            version=args.runtime_version,
            dlext=args.dlext,
            executable=args.ruby,
        )
    detected = RuntimeInfo.detect(SubprocessCommandRunner(), executable=args.ruby)
    overrides = {}
    if args.host_platform:
        overrides["platform"] = args.host_platform
    if args.runtime_version:
        overrides["version"] = args.runtime_version
    if not overrides:
        return detected
    return RuntimeInfo(
        platform=overrides.get("platform", detected.platform),
        version=overrides.get("version", detected.version),
        dlext=detected.dlext,
        engine=detected.engine,
        executable=detected.executable,
        java_classpath=detected.java_classpath,
        java_ext_dirs=detected.java_ext_dirs,
    )


def _print_tasks(context: BuildContext) -> None:
    described = context.graph.described()
    width = max((len(node.id) for node in described), default=0)
    for node in described:
        print(f"{node.id.ljust(width)}  # {node.description}")


def _print_dry_run(context: BuildContext) -> None:
    if isinstance(context.runner, RecordingCommandRunner):
        for line in context.runner.iter_formatted():
            print(line)
    if isinstance(context.files, RecordingFileOperations):
        for line in context.files.iter_formatted():
            print(line)
    if isinstance(context.packager, RecordingPackager):
        for descriptor in context.packager.packages:
            print(f"[dry-run] package {descriptor.full_name} ({len(descriptor.files)} files)")


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        runtime = _resolve_runtime(args)
        configs = load_extension_configs(Path(args.file))
        context = BuildContext.create(
            runtime,
            dry_run=args.dry_run,
            cross_config_path=Path(args.cross_config),
        )
        define_extensions(configs, context)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2
    except (ExtensionBuildError, CommandError, OSError) as exc:
        print(f"Error: {exc}")
        return 1

    if args.tasks:
        _print_tasks(context)
        return 0

    targets: List[str] = list(args.targets) or ["compile"]
    try:
        GraphRunner(context.graph, trace=args.trace).run(targets)
    except (ExtensionBuildError, CommandError, OSError) as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        if args.dry_run:
            _print_dry_run(context)
    return 0


__all__ = ["main"]
