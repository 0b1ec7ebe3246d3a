"""Collaborators shared by every extension defined against one graph."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Set, Tuple
import os

from core.command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner

from .files import CleanupLists, FileOperations, LocalFileOperations, RecordingFileOperations
from .graph import TaskGraph, TaskNode
from .packaging import GemPackager, Packager, PackagingBridge, RecordingPackager
from .platforms import RuntimeInfo


DEFAULT_CROSS_CONFIG = Path("~/.rake-compiler/config.yml")


@dataclass(slots=True)
class BuildContext:
    graph: TaskGraph
    runtime: RuntimeInfo
    runner: CommandRunner
    files: FileOperations
    packager: Packager
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    cross_config_path: Path = DEFAULT_CROSS_CONFIG
    cleanup: CleanupLists = field(default_factory=CleanupLists)
    meta_platforms: Dict[str, List[str]] = field(default_factory=dict)
    retargets: Set[Tuple[str, str]] = field(default_factory=set)
    packaging: PackagingBridge = field(init=False)

    def __post_init__(self) -> None:
        self.packaging = PackagingBridge(self.graph, self.packager, host_platform=self.runtime.platform)

    @classmethod
    def create(
        cls,
        runtime: RuntimeInfo,
        *,
        dry_run: bool = False,
        graph: TaskGraph | None = None,
        environ: Mapping[str, str] | None = None,
        cross_config_path: Path | None = None,
    ) -> "BuildContext":
        runner: CommandRunner = RecordingCommandRunner() if dry_run else SubprocessCommandRunner()
        files: FileOperations = RecordingFileOperations() if dry_run else LocalFileOperations()
        packager: Packager = RecordingPackager() if dry_run else GemPackager(runner, files)
        return cls(
            graph=graph or TaskGraph(),
            runtime=runtime,
            runner=runner,
            files=files,
            packager=packager,
            environ=dict(os.environ) if environ is None else dict(environ),
            cross_config_path=cross_config_path or DEFAULT_CROSS_CONFIG,
        )

    @property
    def host_platform(self) -> str:
        return self.runtime.platform

    def binary_name(self, name: str, platform: str) -> str:
        return self.runtime.binary_name(name, platform)

    def define_cleanup_tasks(self) -> None:
        """Register ``clean`` and ``clobber`` once per graph."""

        if not self.graph.has_node("clean"):
            self.graph.ensure_node("clean", description="Remove any temporary products")

            def clean(node: TaskNode) -> None:
                for path in self.cleanup.clean_paths():
                    self.files.remove(path)

            self.graph.add_action("clean", clean)

        if not self.graph.has_node("clobber"):
            self.graph.ensure_node("clobber", description="Remove any generated files")

            def clobber(node: TaskNode) -> None:
                for path in self.cleanup.clobber_paths():
                    self.files.remove(path)

            self.graph.add_action("clobber", clobber)


__all__ = ["BuildContext", "DEFAULT_CROSS_CONFIG"]
