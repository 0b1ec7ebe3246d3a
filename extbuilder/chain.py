"""Per-target node chains: scratch directory, configure, build and relocate."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List
import logging
import os
import shutil

from .classpath import resolve_classpath, resolve_extdirs
from .config import BuildUnit, TargetSpec
from .context import BuildContext
from .graph import NodeCategory, NodeKey, TaskNode, node_id
from .platforms import ALTERNATE_RUNTIME


logger = logging.getLogger(__name__)

JAVA_LANGUAGE_LEVEL = "1.8"

NOT_JRUBY_WARNING = (
    "You're cross-compiling a binary extension for JRuby, but are using another "
    "interpreter. If your Java classpath or extension dir settings are not correctly "
    "detected, then either check the appropriate environment variables or run the "
    "compilation under the JRuby interpreter."
)


@dataclass(frozen=True, slots=True)
class ChainRefs:
    """Ids of the nodes one chain produced, for callers that wire onto it."""

    unit: BuildUnit
    target: TargetSpec
    tmp_path: Path
    tmp_binary: Path
    lib_binary: Path
    copy_key: NodeKey
    recipe: Path | None = None


class NativeStrategy:
    """Generate a Makefile with the configure script, then run the build tool."""

    def __init__(self, context: BuildContext) -> None:
        self._context = context
        self._make: str | None = None

    def make_command(self) -> str:
        if self._make is None:
            environ = self._context.environ
            if "mswin" in self._context.host_platform:
                self._make = "nmake"
            elif environ.get("MAKE"):
                self._make = environ["MAKE"]
            else:
                self._make = next(
                    (candidate for candidate in ("gmake", "make") if shutil.which(candidate)),
                    "make",
                )
        return self._make

    def define(self, unit: BuildUnit, tmp_path: Path, tmp_binary: Path) -> Path:
        graph = self._context.graph
        makefile = tmp_path / "Makefile"

        graph.define(makefile, category=NodeCategory.FILE, action=self._configure_action(unit, tmp_path))
        graph.add_dependencies(makefile, [tmp_path, unit.extconf])

        graph.define(tmp_binary, category=NodeCategory.FILE, action=self._build_action(tmp_path))
        graph.add_dependencies(tmp_binary, [makefile, *unit.source_files()])
        return makefile

    def _configure_action(self, unit: BuildUnit, tmp_path: Path):
        context = self._context
        fake_rb = node_id(tmp_path / "fake.rb")
        rbconfig_rb = node_id(tmp_path / "rbconfig.rb")

        def configure(node: TaskNode) -> None:
            options: List[str] = list(unit.config_options)
            command: List[str] = [context.runtime.executable, "-I."]
            if fake_rb in node.dependencies:
                command.append("-rfake")

            command.append(os.path.relpath(os.path.abspath(unit.extconf), os.path.abspath(tmp_path)))

            # a copied rbconfig.rb means this chain targets a foreign platform
            if rbconfig_rb in node.dependencies:
                options.extend(unit.cross_config_options)

            command.extend(options)
            context.runner.run(command, cwd=tmp_path)

        return configure

    def _build_action(self, tmp_path: Path):
        def build(node: TaskNode) -> None:
            self._context.runner.run([self.make_command()], cwd=tmp_path)

        return build


class JavaStrategy:
    """Compile Java sources with ``javac`` and archive them with ``jar``."""

    def __init__(self, context: BuildContext) -> None:
        self._context = context

    def define(self, unit: BuildUnit, tmp_path: Path, tmp_binary: Path) -> None:
        if not self._context.runtime.is_jruby:
            logger.warning(NOT_JRUBY_WARNING)

        graph = self._context.graph
        sources = unit.java_source_files()
        graph.define(
            tmp_binary,
            category=NodeCategory.FILE,
            action=self._archive_action(unit, tmp_path, tmp_binary, sources),
        )
        graph.add_dependencies(tmp_binary, [tmp_path, *sources])

    def _archive_action(self, unit: BuildUnit, tmp_path: Path, tmp_binary: Path, sources: List[Path]):
        context = self._context

        def archive(node: TaskNode) -> None:
            classpath = resolve_classpath(context.runtime, context.environ, extra=unit.java_classpath)
            command: List[str] = ["javac"]
            extdirs = resolve_extdirs(context.runtime, context.environ)
            if extdirs:
                command.extend(["-extdirs", extdirs])
            command.extend(
                ["-target", JAVA_LANGUAGE_LEVEL, "-source", JAVA_LANGUAGE_LEVEL, "-Xlint:unchecked"]
            )
            if context.environ.get("CC_JAVA_DEBUG", "").upper() == "TRUE":
                command.append("-g")
            if classpath:
                command.extend(["-cp", classpath])
            command.extend(["-d", str(tmp_path)])
            command.extend(str(source) for source in sources)
            context.runner.run(command)
            context.runner.run(["jar", "cf", str(tmp_binary), "-C", str(tmp_path), "."])

        return archive


class ChainFactory:
    """Builds the node chain of one (unit, target) pair and wires its umbrellas."""

    def __init__(self, context: BuildContext) -> None:
        self._context = context
        self._native = NativeStrategy(context)
        self._java = JavaStrategy(context)

    @property
    def native(self) -> NativeStrategy:
        return self._native

    def define(self, unit: BuildUnit, target: TargetSpec) -> ChainRefs:
        context = self._context
        graph = context.graph
        platform = target.platform

        tmp_path = target.tmp_path(unit)
        binary = context.binary_name(unit.name, platform)
        tmp_binary = tmp_path / binary
        lib_binary = unit.lib_dir / binary

        context.cleanup.include_clean(tmp_path)
        context.cleanup.include_clobber(lib_binary)
        context.cleanup.include_clobber(unit.tmp_dir)

        graph.define(tmp_path, category=NodeCategory.DIRECTORY, action=self._mkdir_action())
        graph.define(unit.lib_dir, category=NodeCategory.DIRECTORY, action=self._mkdir_action())

        # tmp/<platform>/<name>/<version>/<binary> => lib/<binary>
        copy_key = NodeKey("copy", unit=unit.name, platform=platform, version=target.version)
        graph.define(copy_key, action=self._copy_action(tmp_binary, lib_binary))
        graph.add_dependencies(copy_key, [unit.lib_dir, tmp_binary])

        if platform == ALTERNATE_RUNTIME:
            self._java.define(unit, tmp_path, tmp_binary)
            recipe: Path | None = None
        else:
            recipe = self._native.define(unit, tmp_path, tmp_binary)

        graph.ensure_node(NodeKey("compile"), description="Compile all the extensions")
        graph.ensure_node(NodeKey("compile", unit=unit.name), description=f"Compile {unit.name}")

        unit_platform_key = NodeKey("compile", unit=unit.name, platform=platform)
        platform_key = NodeKey("compile", platform=platform)
        graph.ensure_node(unit_platform_key)
        graph.add_dependency(unit_platform_key, copy_key)
        graph.ensure_node(platform_key)
        graph.add_dependency(platform_key, unit_platform_key)

        # only the chain matching the running platform joins the default build
        if platform == context.host_platform:
            graph.ensure_file(lib_binary)
            graph.add_dependency(lib_binary, copy_key)
            graph.add_dependency(NodeKey("compile", unit=unit.name), unit_platform_key)
            graph.add_dependency(NodeKey("compile"), platform_key)

        return ChainRefs(
            unit=unit,
            target=target,
            tmp_path=tmp_path,
            tmp_binary=tmp_binary,
            lib_binary=lib_binary,
            copy_key=copy_key,
            recipe=recipe,
        )

    def _mkdir_action(self):
        def make_directory(node: TaskNode) -> None:
            self._context.files.make_directory(Path(node.id))

        return make_directory

    def _copy_action(self, tmp_binary: Path, lib_binary: Path):
        def relocate(node: TaskNode) -> None:
            self._context.files.copy(tmp_binary, lib_binary)

        return relocate


__all__ = [
    "ChainFactory",
    "ChainRefs",
    "JavaStrategy",
    "NativeStrategy",
]
