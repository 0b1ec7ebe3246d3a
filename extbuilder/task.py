"""Entry point for defining one extension's compile, native and cross nodes."""
from __future__ import annotations

from typing import Iterable, List, Sequence

from .chain import ChainFactory, ChainRefs
from .config import BuildUnit, ExtensionConfig, TargetSpec
from .context import BuildContext
from .cross import CrossMatrixExpander
from .packaging import Customize
from .rewrite import RewriteCoordinator


class ExtensionTask:
    """Defines every node for one extension on the context's shared graph.

    The graph is built as soon as the task is constructed. ``cross_compiling``
    is called with each cross-platform package descriptor before it is
    packaged and may return a replacement descriptor.
    """

    def __init__(
        self,
        config: ExtensionConfig,
        context: BuildContext,
        *,
        cross_compiling: Customize | None = None,
        versions: Sequence[str] | None = None,
    ) -> None:
        self.config = config
        self.context = context
        self.cross_compiling = cross_compiling
        self.versions = list(versions) if versions else None
        self.chains: List[ChainRefs] = []
        self.unit: BuildUnit = self.define()

    @property
    def platform(self) -> str:
        return self.config.platform or self.context.host_platform

    def define(self) -> BuildUnit:
        unit = self.config.to_unit()
        context = self.context
        context.define_cleanup_tasks()

        chains = ChainFactory(context)
        default_chain = chains.define(unit, TargetSpec(self.platform, context.runtime.version))
        self.chains.append(default_chain)

        if unit.packaging_enabled:
            context.packaging.define(
                unit,
                self.platform,
                lib_binary=default_chain.lib_binary,
                copy_key=default_chain.copy_key,
            )

        if not self.config.cross_compile:
            return unit

        expander = CrossMatrixExpander(context, chains, RewriteCoordinator(context))
        self.chains.extend(
            expander.expand(
                unit,
                self.config.cross_platform,
                versions=self.versions,
                customize=self.cross_compiling,
            )
        )
        return unit


def define_extensions(
    configs: Iterable[ExtensionConfig],
    context: BuildContext,
    *,
    cross_compiling: Customize | None = None,
) -> List[ExtensionTask]:
    return [ExtensionTask(config, context, cross_compiling=cross_compiling) for config in configs]


__all__ = ["ExtensionTask", "define_extensions"]
