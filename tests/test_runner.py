from __future__ import annotations

import os
import unittest

from extbuilder.errors import ExtensionBuildError, UnknownNodeError
from extbuilder.graph import NodeCategory, TaskGraph
from extbuilder.runner import GraphRunner

from support import WorkspaceTestCase


class GraphRunnerTests(WorkspaceTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.graph = TaskGraph()
        self.calls: list[str] = []

    def record(self, node) -> None:
        self.calls.append(node.id)

    def test_dependencies_run_first_and_once(self) -> None:
        for name in ("top", "left", "right", "base"):
            self.graph.define(name, action=self.record)
        self.graph.add_dependencies("top", ["left", "right"])
        self.graph.add_dependency("left", "base")
        self.graph.add_dependency("right", "base")

        executed = GraphRunner(self.graph).run(["top", "base"])

        self.assertEqual(self.calls, ["base", "left", "right", "top"])
        self.assertEqual(executed, self.calls)

    def test_file_is_rebuilt_only_when_stale(self) -> None:
        source = self.write("input.txt", "data")
        target = self.write("output.txt", "built")
        os.utime(source, (1_000, 1_000))
        os.utime(target, (2_000, 2_000))
        self.graph.define("output.txt", category=NodeCategory.FILE, action=self.record)
        self.graph.add_dependency("output.txt", "input.txt")

        GraphRunner(self.graph).run(["output.txt"])
        self.assertEqual(self.calls, [])

        os.utime(source, (3_000, 3_000))
        GraphRunner(self.graph).run(["output.txt"])
        self.assertEqual(self.calls, ["output.txt"])

    def test_missing_file_is_built(self) -> None:
        self.write("input.txt", "data")
        self.graph.define("output.txt", category=NodeCategory.FILE, action=self.record)
        self.graph.add_dependency("output.txt", "input.txt")

        GraphRunner(self.graph).run(["output.txt"])

        self.assertEqual(self.calls, ["output.txt"])

    def test_existing_directory_never_reruns(self) -> None:
        (self.root / "lib").mkdir()
        self.graph.define("lib", category=NodeCategory.DIRECTORY, action=self.record)

        GraphRunner(self.graph).run(["lib"])

        self.assertEqual(self.calls, [])

    def test_existing_directory_does_not_stale_dependents(self) -> None:
        (self.root / "lib").mkdir()
        target = self.write("lib/sample.so", "binary")
        os.utime(target, (1_000, 1_000))
        self.graph.define("lib", category=NodeCategory.DIRECTORY)
        self.graph.define("lib/sample.so", category=NodeCategory.FILE, action=self.record)
        self.graph.add_dependency("lib/sample.so", "lib")

        GraphRunner(self.graph).run(["lib/sample.so"])

        self.assertEqual(self.calls, [])

    def test_unknown_dependency_raises(self) -> None:
        self.graph.ensure_node("compile")
        self.graph.add_dependency("compile", "compile:sparc-solaris")

        with self.assertRaises(UnknownNodeError) as ctx:
            GraphRunner(self.graph).run(["compile"])

        self.assertEqual(ctx.exception.node, "compile:sparc-solaris")
        self.assertEqual(ctx.exception.required_by, "compile")

    def test_dependencies_are_read_when_reached(self) -> None:
        self.graph.define("late", action=self.record)
        self.graph.ensure_node("umbrella")
        self.graph.define("meta", action=lambda node: self.graph.add_dependency("umbrella", "late"))

        GraphRunner(self.graph).run(["meta", "umbrella"])

        self.assertEqual(self.calls, ["late"])

    def test_cycles_are_reported(self) -> None:
        self.graph.ensure_node("a")
        self.graph.ensure_node("b")
        self.graph.add_dependency("a", "b")
        self.graph.add_dependency("b", "a")

        with self.assertRaises(ExtensionBuildError) as ctx:
            GraphRunner(self.graph).run(["a"])
        self.assertIn("a => b => a", str(ctx.exception))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
