"""Expansion of the requested foreign platforms and runtime versions into chains."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Sequence
import json
import logging
import os

from core.config_loader import load_optional_config, split_path_list

from .chain import ChainFactory, ChainRefs
from .config import BuildUnit, TargetSpec
from .context import BuildContext
from .errors import CrossConfigError, MissingCrossConfig, MissingVersionSection
from .graph import NodeCategory, TaskNode
from .packaging import Customize
from .platforms import ALTERNATE_RUNTIME
from .rewrite import CROSS, RewriteCoordinator


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CrossConfig:
    """The user's saved cross-compilation settings (``rbconfig-<version>`` entries)."""

    path: Path
    entries: Mapping[str, Any]

    @classmethod
    def load(cls, path: Path) -> "CrossConfig":
        resolved = path.expanduser()
        data = load_optional_config(resolved)
        if data is None:
            raise MissingCrossConfig(str(resolved))
        return cls(path=resolved, entries=dict(data))

    def rbconfig_for(self, version: str) -> Path:
        value = self.entries.get(f"rbconfig-{version}")
        if not value:
            raise MissingVersionSection(version)
        return Path(str(value)).expanduser()

    @staticmethod
    def mkmf_for(rbconfig: Path) -> Path:
        """The helper file that ships next to a cross runtime's ``rbconfig.rb``."""

        return Path(os.path.abspath(rbconfig.parent / ".." / "mkmf.rb"))


def fake_rb(platform: str, version: str) -> str:
    """Identity shim loaded before the configure script of a foreign chain."""

    return (
        "class Object\n"
        "  remove_const :RUBY_PLATFORM\n"
        "  remove_const :RUBY_VERSION\n"
        f"  RUBY_PLATFORM = {json.dumps(platform)}\n"
        f"  RUBY_VERSION = {json.dumps(version)}\n"
        "end\n"
    )


def requested_versions(environ: Mapping[str, str], running_version: str) -> List[str]:
    versions = split_path_list(environ.get("RUBY_CC_VERSION"), separator=os.pathsep)
    return versions or [running_version]


class CrossMatrixExpander:
    def __init__(self, context: BuildContext, chains: ChainFactory, rewrite: RewriteCoordinator) -> None:
        self._context = context
        self._chains = chains
        self._rewrite = rewrite

    def expand(
        self,
        unit: BuildUnit,
        platforms: Sequence[str],
        *,
        versions: Sequence[str] | None = None,
        customize: Customize | None = None,
    ) -> List[ChainRefs]:
        """Define a chain for every requested (platform, version) pair.

        Pairs whose version has no saved configuration are skipped with a
        warning; the remaining pairs are still defined.
        """

        requested = list(dict.fromkeys(platforms))
        cross_platforms = [platform for platform in requested if platform != ALTERNATE_RUNTIME]
        refs: List[ChainRefs] = []

        for platform in requested:
            if platform == ALTERNATE_RUNTIME:
                refs.append(self._define_alternate_runtime(unit, customize))
                continue

            selected = list(versions) if versions else requested_versions(
                self._context.environ, self._context.runtime.version
            )
            multi = len(selected) > 1
            for version in selected:
                target = TargetSpec(platform, version)
                versioned_unit = unit
                # keep each version's binary apart in the shared lib directory
                if multi and target.major_minor:
                    versioned_unit = unit.with_lib_dir(unit.lib_dir / target.major_minor)
                elif multi:
                    logger.warning(
                        "version %s has no major.minor part; its %s binary shares %s with other versions",
                        version,
                        platform,
                        unit.lib_dir,
                    )
                chain = self._define_foreign(versioned_unit, target, cross_platforms, customize)
                if chain is not None:
                    refs.append(chain)
        return refs

    def _define_alternate_runtime(self, unit: BuildUnit, customize: Customize | None) -> ChainRefs:
        target = TargetSpec(ALTERNATE_RUNTIME, self._context.runtime.version)
        chain = self._chains.define(unit, target)
        if unit.packaging_enabled:
            self._context.packaging.define(
                unit,
                ALTERNATE_RUNTIME,
                lib_binary=chain.lib_binary,
                copy_key=chain.copy_key,
                customize=customize,
            )
        self._rewrite.register(
            ALTERNATE_RUNTIME,
            chain,
            platforms=[ALTERNATE_RUNTIME],
            packaging=unit.packaging_enabled,
        )
        return chain

    def _define_foreign(
        self,
        unit: BuildUnit,
        target: TargetSpec,
        cross_platforms: Sequence[str],
        customize: Customize | None,
    ) -> ChainRefs | None:
        try:
            config = CrossConfig.load(self._context.cross_config_path)
            rbconfig = config.rbconfig_for(target.version)
        except MissingCrossConfig as exc:
            logger.warning("%s: cross-compilation must be configured first; skipping %s", exc, target.platform)
            return None
        except CrossConfigError as exc:
            logger.warning("%s; skipping %s", exc, target.platform)
            return None
        mkmf = CrossConfig.mkmf_for(rbconfig)

        chain = self._chains.define(unit, target)
        graph = self._context.graph
        tmp_path = chain.tmp_path
        fake_path = tmp_path / "fake.rb"
        rbconfig_path = tmp_path / "rbconfig.rb"
        mkmf_path = tmp_path / "mkmf.rb"

        if chain.recipe is not None:
            graph.add_dependencies(chain.recipe, [fake_path, rbconfig_path, mkmf_path])

        graph.define(rbconfig_path, category=NodeCategory.FILE, action=self._copy_first_dependency)
        graph.add_dependency(rbconfig_path, rbconfig)
        graph.define(mkmf_path, category=NodeCategory.FILE, action=self._copy_first_dependency)
        graph.add_dependency(mkmf_path, mkmf)
        graph.define(
            fake_path,
            category=NodeCategory.FILE,
            action=self._write_identity_shim(target),
        )

        if unit.packaging_enabled:
            self._context.packaging.define(
                unit,
                target.platform,
                lib_binary=chain.lib_binary,
                copy_key=chain.copy_key,
                customize=customize,
            )

        self._rewrite.register(
            CROSS,
            chain,
            platforms=cross_platforms,
            packaging=unit.packaging_enabled,
        )
        return chain

    def _copy_first_dependency(self, node: TaskNode) -> None:
        self._context.files.copy(Path(node.dependencies[0]), Path(node.id))

    def _write_identity_shim(self, target: TargetSpec):
        def write(node: TaskNode) -> None:
            self._context.files.write_text(Path(node.id), fake_rb(target.platform, target.version))

        return write


__all__ = [
    "CrossConfig",
    "CrossMatrixExpander",
    "fake_rb",
    "requested_versions",
]
