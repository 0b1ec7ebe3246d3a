"""Extension definitions: the configuration surface and the immutable build unit."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple
import re

import yaml

from core.config_loader import load_config_file, normalize_string_list

from .errors import ConfigurationError
from .packaging import PackageDescriptor
from .platforms import DEFAULT_CROSS_PLATFORM, PLATFORM_INDEPENDENT


_MAJOR_MINOR_PATTERN = re.compile(r"(\d+\.\d+)")


@dataclass(frozen=True, slots=True)
class BuildUnit:
    """One compilable extension, fixed once the extension is defined."""

    name: str
    ext_dir: Path
    source_pattern: str = "*.c"
    config_script: str = "extconf.rb"
    config_options: Tuple[str, ...] = ()
    cross_config_options: Tuple[str, ...] = ()
    lib_dir: Path = Path("lib")
    tmp_dir: Path = Path("tmp")
    java_ext_dir: Path = Path("ext-java/src/main/java")
    java_classpath: Tuple[str, ...] = ()
    package: PackageDescriptor | None = None
    no_native: bool = False

    @property
    def extconf(self) -> Path:
        return self.ext_dir / self.config_script

    @property
    def packaging_enabled(self) -> bool:
        return (
            not self.no_native
            and self.package is not None
            and self.package.platform == PLATFORM_INDEPENDENT
        )

    def source_files(self) -> List[Path]:
        return sorted(self.ext_dir.glob(self.source_pattern))

    def java_source_files(self) -> List[Path]:
        return sorted(self.java_ext_dir.glob("**/*.java"))

    def with_lib_dir(self, lib_dir: Path) -> "BuildUnit":
        return replace(self, lib_dir=lib_dir)


@dataclass(frozen=True, slots=True)
class TargetSpec:
    platform: str
    version: str

    @property
    def major_minor(self) -> str | None:
        match = _MAJOR_MINOR_PATTERN.search(self.version)
        return match.group(1) if match else None

    def tmp_path(self, unit: BuildUnit) -> Path:
        return unit.tmp_dir / self.platform / unit.name / self.version


_ALLOWED_KEYS = {
    "name",
    "package",
    "config_script",
    "tmp_dir",
    "ext_dir",
    "java_ext_dir",
    "java_classpath",
    "lib_dir",
    "platform",
    "config_options",
    "source_pattern",
    "cross_compile",
    "cross_platform",
    "cross_config_options",
    "no_native",
}


@dataclass(slots=True)
class ExtensionConfig:
    """Everything a caller may set before an extension's graph is defined.

    ``ext_dir`` defaults to ``ext/<name>`` and ``platform`` to the running
    runtime's platform; both are resolved when the unit is built.
    """

    name: str | None = None
    package: PackageDescriptor | None = None
    config_script: str = "extconf.rb"
    tmp_dir: str = "tmp"
    ext_dir: str | None = None
    java_ext_dir: str = "ext-java/src/main/java"
    java_classpath: List[str] = field(default_factory=list)
    lib_dir: str = "lib"
    platform: str | None = None
    config_options: List[str] = field(default_factory=list)
    source_pattern: str = "*.c"
    cross_compile: bool = False
    cross_platform: List[str] = field(default_factory=lambda: [DEFAULT_CROSS_PLATFORM])
    cross_config_options: List[str] = field(default_factory=list)
    no_native: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExtensionConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError("Extension definition must be a mapping")
        unknown = {str(key) for key in data.keys() if str(key) not in _ALLOWED_KEYS}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Extension definition contains unknown keys: {joined}")

        config = cls()
        name = data.get("name")
        if name is not None and str(name).strip():
            config.name = str(name).strip()

        package_section = data.get("package")
        if package_section is not None:
            if not isinstance(package_section, Mapping):
                raise ConfigurationError("Extension 'package' must be a mapping")
            config.package = PackageDescriptor.from_mapping(package_section)

        for key in ("config_script", "tmp_dir", "java_ext_dir", "lib_dir", "source_pattern"):
            value = data.get(key)
            if value is not None:
                setattr(config, key, str(value))
        for key in ("ext_dir", "platform"):
            value = data.get(key)
            if value is not None and str(value).strip():
                setattr(config, key, str(value).strip())

        try:
            for key in ("java_classpath", "config_options", "cross_config_options"):
                if key in data:
                    setattr(config, key, normalize_string_list(data.get(key), field_name=key))
            if "cross_platform" in data:
                platforms = normalize_string_list(data.get("cross_platform"), field_name="cross_platform")
                if platforms:
                    config.cross_platform = platforms
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc

        for key in ("cross_compile", "no_native"):
            value = data.get(key, False)
            if not isinstance(value, bool):
                raise ConfigurationError(f"Extension '{key}' must be true or false")
            setattr(config, key, value)
        return config

    def resolved_ext_dir(self) -> str:
        return self.ext_dir or f"ext/{self.name}"

    def to_unit(self) -> BuildUnit:
        if not self.name:
            raise ConfigurationError("Extension name must be provided.")
        return BuildUnit(
            name=self.name,
            ext_dir=Path(self.resolved_ext_dir()),
            source_pattern=self.source_pattern,
            config_script=self.config_script,
            config_options=tuple(self.config_options),
            cross_config_options=tuple(self.cross_config_options),
            lib_dir=Path(self.lib_dir),
            tmp_dir=Path(self.tmp_dir),
            java_ext_dir=Path(self.java_ext_dir),
            java_classpath=tuple(self.java_classpath),
            package=self.package,
            no_native=self.no_native,
        )


def load_extension_configs(path: Path) -> List[ExtensionConfig]:
    """Read the ``extensions`` section of a project file.

    The section may be a list of tables or a mapping keyed by extension name
    (the key fills in a missing ``name``).
    """

    try:
        data = load_config_file(path)
    except (TypeError, ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(str(exc)) from exc

    section = data.get("extensions")
    if section is None:
        raise ConfigurationError(f"'{path}' does not define an 'extensions' section")

    entries: List[Mapping[str, Any]] = []
    if isinstance(section, Mapping):
        for key, value in section.items():
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"Extension '{key}' must be a mapping")
            entry: Dict[str, Any] = dict(value)
            entry.setdefault("name", str(key))
            entries.append(entry)
    elif isinstance(section, Sequence) and not isinstance(section, (str, bytes)):
        entries.extend(section)
    else:
        raise ConfigurationError("'extensions' must be a list or a mapping of extension tables")

    return [ExtensionConfig.from_mapping(entry) for entry in entries]


__all__ = [
    "BuildUnit",
    "ExtensionConfig",
    "TargetSpec",
    "load_extension_configs",
]
