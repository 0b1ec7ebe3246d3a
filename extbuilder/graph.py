"""Shared task graph: idempotent node registry and the dependency rewrite primitive."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Union
import logging

from .errors import UnknownNodeError


logger = logging.getLogger(__name__)


class NodeCategory(str, Enum):
    TASK = "task"
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class NodeKey:
    """Structured identity of an orchestration node.

    ``NodeKey("compile", unit="sample", platform="x86_64-linux")`` serializes to
    ``compile:sample:x86_64-linux``. Parts that are ``None`` are omitted, so the
    global umbrella is simply ``NodeKey("compile")``.
    """

    kind: str
    unit: str | None = None
    platform: str | None = None
    version: str | None = None

    @property
    def id(self) -> str:
        parts = [self.kind, self.unit, self.platform, self.version]
        return ":".join(part for part in parts if part)

    def __str__(self) -> str:
        return self.id


NodeRef = Union[NodeKey, Path, str]
Action = Callable[["TaskNode"], None]


def node_id(node: NodeRef) -> str:
    """Canonical string id for a structured key, an artifact path or a raw id."""

    if isinstance(node, NodeKey):
        return node.id
    if isinstance(node, Path):
        return node.as_posix()
    return str(node)


@dataclass(slots=True)
class TaskNode:
    id: str
    category: NodeCategory = NodeCategory.TASK
    key: NodeKey | None = None
    description: str | None = None
    dependencies: List[str] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)

    @property
    def path(self) -> Path | None:
        if self.category is NodeCategory.TASK:
            return None
        return Path(self.id)

    def add_dependency(self, dependency: str) -> bool:
        if dependency in self.dependencies:
            return False
        self.dependencies.append(dependency)
        return True


class TaskGraph:
    """Registry of nodes shared by every extension defined in one process run.

    Construction only ever adds: :meth:`ensure_node` never replaces a node and
    :meth:`add_dependency` never removes an edge. :meth:`patch_dependencies`
    is the single destructive operation and is reserved for the meta-node
    actions of :class:`extbuilder.rewrite.RewriteCoordinator`.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, TaskNode] = {}

    def __contains__(self, node: object) -> bool:
        if not isinstance(node, (NodeKey, Path, str)):
            return False
        return node_id(node) in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TaskNode]:
        return iter(self._nodes.values())

    def has_node(self, node: NodeRef) -> bool:
        return node_id(node) in self._nodes

    def get(self, node: NodeRef) -> TaskNode:
        identifier = node_id(node)
        try:
            return self._nodes[identifier]
        except KeyError:
            raise UnknownNodeError(identifier) from None

    def ensure_node(
        self,
        node: NodeRef,
        *,
        category: NodeCategory = NodeCategory.TASK,
        description: str | None = None,
    ) -> TaskNode:
        """Return the node for ``node``, creating it when absent.

        An existing node keeps its category, edges and actions; only a missing
        description is filled in.
        """

        identifier = node_id(node)
        existing = self._nodes.get(identifier)
        if existing is not None:
            if description and not existing.description:
                existing.description = description
            return existing

        created = TaskNode(
            id=identifier,
            category=category,
            key=node if isinstance(node, NodeKey) else None,
            description=description,
        )
        self._nodes[identifier] = created
        logger.debug("registered %s node %s", category.value, identifier)
        return created

    def define(
        self,
        node: NodeRef,
        *,
        category: NodeCategory = NodeCategory.TASK,
        action: Action | None = None,
        description: str | None = None,
    ) -> TaskNode:
        """Ensure ``node`` exists, attaching ``action`` only when it is created here.

        Defining the same chain twice therefore never stacks duplicate actions.
        """

        created = not self.has_node(node)
        target = self.ensure_node(node, category=category, description=description)
        if created and action is not None:
            target.actions.append(action)
        return target

    def ensure_file(self, path: NodeRef) -> TaskNode:
        return self.ensure_node(path, category=NodeCategory.FILE)

    def ensure_directory(self, path: NodeRef) -> TaskNode:
        return self.ensure_node(path, category=NodeCategory.DIRECTORY)

    def add_dependency(self, node: NodeRef, dependency: NodeRef) -> None:
        self.get(node).add_dependency(node_id(dependency))

    def add_dependencies(self, node: NodeRef, dependencies: Iterable[NodeRef]) -> None:
        target = self.get(node)
        for dependency in dependencies:
            target.add_dependency(node_id(dependency))

    def add_action(self, node: NodeRef, action: Action) -> None:
        self.get(node).actions.append(action)

    def dependencies(self, node: NodeRef) -> List[str]:
        return list(self.get(node).dependencies)

    def patch_dependencies(
        self,
        node: NodeRef,
        keep: Callable[[str], bool],
        add: NodeRef,
    ) -> List[str]:
        """Replace the dependencies of ``node`` with the kept ones plus ``add``.

        The new list is computed first and swapped in with a single slice
        assignment. Returns the resulting dependency list.
        """

        target = self.get(node)
        added = node_id(add)
        retained = [dependency for dependency in target.dependencies if keep(dependency)]
        dropped = [dependency for dependency in target.dependencies if not keep(dependency)]
        kept = list(retained)
        if added not in kept:
            kept.append(added)
        target.dependencies[:] = kept
        logger.info("rewired %s: kept=%s dropped=%s added=%s", target.id, retained, dropped, added)
        return list(kept)

    def described(self) -> List[TaskNode]:
        return sorted((node for node in self._nodes.values() if node.description), key=lambda node: node.id)


__all__ = [
    "Action",
    "NodeCategory",
    "NodeKey",
    "NodeRef",
    "TaskGraph",
    "TaskNode",
    "node_id",
]
