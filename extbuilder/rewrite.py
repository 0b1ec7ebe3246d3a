"""Meta nodes that retarget the shared umbrellas at execution time.

Running ``cross`` (or ``java``) before ``compile``/``native`` in the same run
makes those umbrellas build the foreign chains instead of the host chain.
Both meta nodes rewrite the same umbrellas, so when both run in one
invocation the one executed last decides the final wiring. That ordering
dependence is kept as is; no merge between the two is attempted.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable
import logging

from .chain import ChainRefs
from .context import BuildContext
from .graph import NodeKey, TaskNode, node_id
from .platforms import ALTERNATE_RUNTIME


logger = logging.getLogger(__name__)

CROSS = "cross"

_DESCRIPTIONS = {
    CROSS: "Force the compilation of the extensions for the cross platforms",
    ALTERNATE_RUNTIME: "Force the compilation of the extensions for JRuby",
}


class RewriteCoordinator:
    """Registers retarget actions on the ``cross`` and ``java`` meta nodes.

    The platform set a meta node keeps is shared by every extension defined
    on the context, and is read when the action runs rather than when it is
    registered.
    """

    def __init__(self, context: BuildContext) -> None:
        self._context = context

    def register(
        self,
        meta: str,
        refs: ChainRefs,
        *,
        platforms: Iterable[str],
        packaging: bool,
    ) -> None:
        """Append to ``meta`` an action that points the umbrellas at ``refs``.

        ``platforms`` joins the target set of this meta node; umbrella
        dependencies for any platform in that set survive the rewrite, every
        other one (notably the host platform) is dropped.
        """

        context = self._context
        graph = context.graph
        graph.ensure_node(meta, description=_DESCRIPTIONS.get(meta))
        targets = context.meta_platforms.setdefault(meta, [])
        for candidate in platforms:
            if candidate not in targets:
                targets.append(candidate)

        marker = (meta, refs.copy_key.id)
        if marker in context.retargets:
            return
        context.retargets.add(marker)

        platform = refs.target.platform
        lib_binary = refs.lib_binary
        copy_key = refs.copy_key

        def retarget(node: TaskNode) -> None:
            self.rewrite(
                platform=platform,
                platforms=tuple(context.meta_platforms[meta]),
                lib_binary=lib_binary,
                copy_key=copy_key,
                packaging=packaging,
            )

        graph.add_action(meta, retarget)

    def rewrite(
        self,
        *,
        platform: str,
        platforms: Iterable[str],
        lib_binary: Path,
        copy_key: NodeKey,
        packaging: bool,
    ) -> None:
        graph = self._context.graph
        targets = tuple(platforms)

        compile_ids = {NodeKey("compile", platform=candidate).id for candidate in targets}
        graph.ensure_node(NodeKey("compile"))
        graph.patch_dependencies(
            NodeKey("compile"),
            keep=lambda dependency: dependency in compile_ids,
            add=NodeKey("compile", platform=platform),
        )

        # the default output path now serves the foreign binary
        if graph.has_node(lib_binary):
            graph.patch_dependencies(lib_binary, keep=lambda dependency: False, add=copy_key)
        else:
            graph.ensure_file(lib_binary)
            graph.add_dependency(lib_binary, copy_key)

        if packaging:
            native_ids = {NodeKey("native", platform=candidate).id for candidate in targets}
            graph.ensure_node(NodeKey("native"))
            graph.patch_dependencies(
                NodeKey("native"),
                keep=lambda dependency: dependency in native_ids,
                add=NodeKey("native", platform=platform),
            )

        logger.debug("retargeted umbrellas to %s via %s", platform, node_id(copy_key))


__all__ = ["CROSS", "RewriteCoordinator"]
