"""Sequential execution of a task graph with file-timestamp staleness checks."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Set
import logging
import math

from .errors import ExtensionBuildError, UnknownNodeError
from .graph import NodeCategory, NodeRef, TaskGraph, TaskNode, node_id


logger = logging.getLogger(__name__)

_LATEST = math.inf
_EARLIEST = -math.inf


class GraphRunner:
    """Invoke graph nodes so that every dependency completes before its dependent.

    A node runs at most once per :meth:`run`. Its dependency list is read when
    the node itself is reached, so a meta node invoked earlier in the same run
    may still rewire an umbrella invoked later. Failures propagate unchanged and
    stop the run.
    """

    def __init__(self, graph: TaskGraph, *, trace: bool = False) -> None:
        self._graph = graph
        self._trace = trace
        self._invoked: Set[str] = set()
        self.executed: List[str] = []

    def run(self, targets: Iterable[NodeRef]) -> List[str]:
        self._invoked = set()
        self.executed = []
        for target in targets:
            self._invoke(node_id(target), required_by=None, stack=())
        return list(self.executed)

    def _invoke(self, identifier: str, *, required_by: str | None, stack: tuple[str, ...]) -> None:
        if identifier in self._invoked:
            return
        if identifier in stack:
            cycle = " => ".join((*stack, identifier))
            raise ExtensionBuildError(f"Circular dependency detected: {cycle}")

        if not self._graph.has_node(identifier):
            if Path(identifier).exists():
                self._invoked.add(identifier)
                return
            raise UnknownNodeError(identifier, required_by=required_by)

        node = self._graph.get(identifier)
        for dependency in list(node.dependencies):
            self._invoke(dependency, required_by=identifier, stack=(*stack, identifier))

        self._invoked.add(identifier)
        if self._needed(node):
            self._execute(node)

    def _execute(self, node: TaskNode) -> None:
        if self._trace:
            logger.info("** Execute %s", node.id)
        for action in list(node.actions):
            action(node)
        self.executed.append(node.id)

    def timestamp(self, identifier: str) -> float:
        if not self._graph.has_node(identifier):
            path = Path(identifier)
            return path.stat().st_mtime if path.exists() else _EARLIEST
        node = self._graph.get(identifier)
        if node.category is NodeCategory.TASK:
            return _LATEST
        path = Path(node.id)
        if not path.exists():
            return _LATEST
        if node.category is NodeCategory.DIRECTORY:
            return _EARLIEST
        return path.stat().st_mtime

    def _needed(self, node: TaskNode) -> bool:
        if node.category is NodeCategory.TASK:
            return True
        path = Path(node.id)
        if not path.exists():
            return True
        if node.category is NodeCategory.DIRECTORY:
            return False
        stamp = path.stat().st_mtime
        return any(self.timestamp(dependency) > stamp for dependency in node.dependencies)


__all__ = ["GraphRunner"]
