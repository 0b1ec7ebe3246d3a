from __future__ import annotations

import unittest

from core.command_runner import RecordingCommandRunner
from extbuilder.config import ExtensionConfig
from extbuilder.files import RecordingFileOperations
from extbuilder.packaging import GemPackager, PackageDescriptor, render_gemspec
from extbuilder.runner import GraphRunner
from extbuilder.task import ExtensionTask

from support import HOST, VERSION, WorkspaceTestCase, make_context


PACKAGE = {
    "name": "sample",
    "version": "1.0.0",
    "files": ["lib/sample.rb"],
    "extensions": ["ext/sample/extconf.rb"],
    "summary": "Sample extension",
    "authors": ["Jane Doe"],
}


class NativePackagingTests(WorkspaceTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.write_extension_sources()

    def define(self, context, *, cross_compiling=None, **overrides):
        values = {"name": "sample", "package": dict(PACKAGE)}
        values.update(overrides)
        return ExtensionTask(ExtensionConfig.from_mapping(values), context, cross_compiling=cross_compiling)

    def test_host_native_nodes(self) -> None:
        context = make_context()
        self.define(context)
        graph = context.graph

        self.assertEqual(graph.dependencies(f"native:sample:{HOST}"), ["lib/sample.so"])
        self.assertEqual(graph.dependencies(f"native:{HOST}"), [f"native:sample:{HOST}"])
        self.assertEqual(graph.dependencies("native:sample"), [f"native:sample:{HOST}"])
        self.assertEqual(graph.dependencies("native"), [f"native:{HOST}"])

    def test_native_packages_copy_of_descriptor(self) -> None:
        context = make_context()
        task = self.define(context)

        GraphRunner(context.graph).run(["native"])

        self.assertEqual(len(context.packager.packages), 1)
        packaged = context.packager.packages[0]
        self.assertEqual(packaged.platform, HOST)
        self.assertEqual(packaged.files, ("lib/sample.rb", "lib/sample.so"))
        self.assertEqual(packaged.extensions, ())
        self.assertEqual(packaged.full_name, f"sample-1.0.0-{HOST}")

        original = task.unit.package
        self.assertEqual(original.platform, "ruby")
        self.assertEqual(original.extensions, ("ext/sample/extconf.rb",))
        self.assertIsNot(packaged.metadata, original.metadata)
        self.assertIsNot(packaged.metadata["authors"], original.metadata["authors"])

    def test_package_for_runs_once_per_platform(self) -> None:
        context = make_context()
        task = self.define(context)

        first = context.packaging.package_for(task.unit, HOST, ["lib/sample.so"])
        second = context.packaging.package_for(task.unit, HOST, ["lib/sample.so"])

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(len(context.packager.packages), 1)

    def test_no_native_skips_packaging(self) -> None:
        context = make_context()
        self.define(context, no_native=True)
        self.assertFalse(context.graph.has_node("native"))
        self.assertFalse(context.graph.has_node(f"native:sample:{HOST}"))

    def test_cross_packaging_applies_customize_hook(self) -> None:
        seen = []

        def customize(descriptor: PackageDescriptor) -> PackageDescriptor:
            seen.append(descriptor.platform)
            return descriptor.copy(metadata={**descriptor.metadata, "summary": "Windows build"})

        context = make_context(cross_config_path=self.write_cross_config())
        self.define(context, cross_compiling=customize, cross_compile=True)

        GraphRunner(context.graph).run(["cross", "native"])

        self.assertEqual(context.graph.dependencies("native"), ["native:i386-mingw32"])
        self.assertEqual(seen, ["i386-mingw32"])
        self.assertEqual([package.platform for package in context.packager.packages], ["i386-mingw32"])
        self.assertEqual(context.packager.packages[0].metadata["summary"], "Windows build")
        copies = [record.path for record in context.files.of_kind("copy")]
        self.assertIn("lib/sample.so", copies)
        self.assertIn(f"copy:sample:i386-mingw32:{VERSION}", context.graph.dependencies("lib/sample.so"))


class GemPackagerTests(unittest.TestCase):
    def test_writes_gemspec_and_builds(self) -> None:
        runner = RecordingCommandRunner()
        files = RecordingFileOperations()
        descriptor = PackageDescriptor.from_mapping(PACKAGE).copy(platform="x64-mingw32", extensions=())

        GemPackager(runner, files).package(descriptor)

        self.assertEqual([record.operation for record in files.operations], ["mkdir", "write"])
        self.assertEqual(files.operations[1].path, "pkg/sample-1.0.0-x64-mingw32.gemspec")
        self.assertEqual(
            runner.commands[0].command,
            ["gem", "build", "pkg/sample-1.0.0-x64-mingw32.gemspec", "--output", "pkg/sample-1.0.0-x64-mingw32.gem"],
        )

    def test_render_gemspec(self) -> None:
        descriptor = PackageDescriptor.from_mapping(PACKAGE)
        rendered = render_gemspec(descriptor)
        self.assertIn('  s.name = "sample"', rendered)
        self.assertIn('  s.files = ["lib/sample.rb"]', rendered)
        self.assertIn('  s.authors = ["Jane Doe"]', rendered)
        self.assertTrue(rendered.startswith("Gem::Specification.new do |s|\n"))
        self.assertTrue(rendered.endswith("end\n"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
