"""Platform-specific packaging of compiled extensions."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Protocol, Set, Tuple
import copy
import json
import logging

from core.command_runner import CommandRunner
from core.config_loader import normalize_string_list

from .errors import ConfigurationError
from .graph import NodeKey, TaskGraph, TaskNode

if TYPE_CHECKING:
    from .config import BuildUnit
    from .files import FileOperations


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PackageDescriptor:
    """Immutable description of the gem an extension ships in.

    ``metadata`` holds the remaining gemspec attributes (``summary``,
    ``authors``, ``license`` ...), rendered verbatim into generated specs.
    """

    name: str
    version: str
    platform: str = "ruby"
    files: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PackageDescriptor":
        name = data.get("name")
        version = data.get("version")
        if not name or not str(name).strip():
            raise ConfigurationError("package.name is required")
        if version is None or not str(version).strip():
            raise ConfigurationError("package.version is required")
        try:
            files = normalize_string_list(data.get("files"), field_name="package.files")
            extensions = normalize_string_list(data.get("extensions"), field_name="package.extensions")
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc
        metadata = {
            str(key): value
            for key, value in data.items()
            if key not in {"name", "version", "platform", "files", "extensions"}
        }
        return cls(
            name=str(name).strip(),
            version=str(version).strip(),
            platform=str(data.get("platform", "ruby")),
            files=tuple(files),
            extensions=tuple(extensions),
            metadata=metadata,
        )

    def copy(self, **changes: Any) -> "PackageDescriptor":
        """Return an independent copy, with ``changes`` applied."""

        values: Dict[str, Any] = {
            "files": tuple(self.files),
            "extensions": tuple(self.extensions),
            "metadata": copy.deepcopy(dict(self.metadata)),
        }
        values.update(changes)
        return replace(self, **values)

    @property
    def full_name(self) -> str:
        if self.platform == "ruby":
            return f"{self.name}-{self.version}"
        return f"{self.name}-{self.version}-{self.platform}"


Customize = Callable[[PackageDescriptor], "PackageDescriptor | None"]


class Packager(Protocol):
    def package(self, descriptor: PackageDescriptor) -> None:
        """Produce a distributable package for ``descriptor``."""


class RecordingPackager:
    """Packager that keeps the descriptors it was handed."""

    def __init__(self) -> None:
        self.packages: List[PackageDescriptor] = []

    def package(self, descriptor: PackageDescriptor) -> None:
        self.packages.append(descriptor)


def _ruby_literal(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_ruby_literal(item) for item in value) + "]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        pairs = ", ".join(f"{_ruby_literal(str(key))} => {_ruby_literal(item)}" for key, item in value.items())
        return "{" + pairs + "}"
    return json.dumps(str(value))


def render_gemspec(descriptor: PackageDescriptor) -> str:
    lines = [
        "Gem::Specification.new do |s|",
        f"  s.name = {_ruby_literal(descriptor.name)}",
        f"  s.version = {_ruby_literal(descriptor.version)}",
        f"  s.platform = {_ruby_literal(descriptor.platform)}",
        f"  s.files = {_ruby_literal(list(descriptor.files))}",
        f"  s.extensions = {_ruby_literal(list(descriptor.extensions))}",
    ]
    for key, value in sorted(descriptor.metadata.items()):
        lines.append(f"  s.{key} = {_ruby_literal(value)}")
    lines.append("end")
    return "\n".join(lines) + "\n"


class GemPackager:
    """Packager that writes a gemspec and runs ``gem build`` on it."""

    def __init__(
        self,
        runner: CommandRunner,
        files: "FileOperations",
        *,
        package_dir: Path = Path("pkg"),
        executable: str = "gem",
    ) -> None:
        self._runner = runner
        self._files = files
        self._package_dir = package_dir
        self._executable = executable

    def package(self, descriptor: PackageDescriptor) -> None:
        self._files.make_directory(self._package_dir)
        gemspec = self._package_dir / f"{descriptor.full_name}.gemspec"
        self._files.write_text(gemspec, render_gemspec(descriptor))
        output = self._package_dir / f"{descriptor.full_name}.gem"
        self._runner.run([self._executable, "build", str(gemspec), "--output", str(output)])


class PackagingBridge:
    """Registers ``native:*`` nodes that turn compiled binaries into platform gems."""

    def __init__(self, graph: TaskGraph, packager: Packager, *, host_platform: str) -> None:
        self._graph = graph
        self._packager = packager
        self._host_platform = host_platform
        self._packaged: Set[Tuple[str, str]] = set()

    def define(
        self,
        unit: "BuildUnit",
        platform: str,
        *,
        lib_binary: Path,
        copy_key: NodeKey,
        customize: Customize | None = None,
    ) -> NodeKey:
        package = unit.package
        if package is None:
            raise ConfigurationError(f"Extension '{unit.name}' has no package descriptor")

        gem_key = NodeKey("native", unit=package.name, platform=platform)
        if not self._graph.has_node(gem_key):
            self._graph.ensure_node(gem_key)

            def build_package(node: TaskNode) -> None:
                self.package_for(unit, platform, list(node.dependencies), customize)

            self._graph.add_action(gem_key, build_package)

        # binaries join the dependency chain
        self._graph.add_dependency(gem_key, lib_binary)

        if not self._graph.has_node(lib_binary):
            self._graph.ensure_file(lib_binary)
            self._graph.add_dependency(lib_binary, copy_key)

        platform_key = NodeKey("native", platform=platform)
        self._graph.ensure_node(platform_key)
        self._graph.add_dependency(platform_key, gem_key)

        if platform == self._host_platform:
            unit_key = NodeKey("native", unit=package.name)
            self._graph.ensure_node(unit_key, description=f"Build native gem for {package.name}")
            self._graph.add_dependency(unit_key, gem_key)
            self._graph.ensure_node(NodeKey("native"), description="Build the native gems")
            self._graph.add_dependency(NodeKey("native"), platform_key)
        return gem_key

    def package_for(
        self,
        unit: "BuildUnit",
        platform: str,
        artifact_paths: List[str],
        customize: Customize | None = None,
    ) -> PackageDescriptor | None:
        """Copy the unit's descriptor for ``platform`` and hand it to the packager once."""

        package = unit.package
        if package is None:
            raise ConfigurationError(f"Extension '{unit.name}' has no package descriptor")
        marker = (package.name, platform)
        if marker in self._packaged:
            logger.debug("%s for %s already packaged", package.name, platform)
            return None

        descriptor = package.copy(
            platform=platform,
            extensions=(),
            files=(*package.files, *artifact_paths),
        )
        if customize is not None:
            customized = customize(descriptor)
            if customized is not None:
                descriptor = customized

        self._packaged.add(marker)
        logger.info("packaging %s", descriptor.full_name)
        self._packager.package(descriptor)
        return descriptor


__all__ = [
    "Customize",
    "GemPackager",
    "PackageDescriptor",
    "Packager",
    "PackagingBridge",
    "RecordingPackager",
    "render_gemspec",
]
