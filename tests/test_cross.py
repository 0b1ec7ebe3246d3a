from __future__ import annotations

from pathlib import Path
import os
import unittest

from extbuilder.config import ExtensionConfig
from extbuilder.cross import CrossConfig, fake_rb, requested_versions
from extbuilder.errors import MissingCrossConfig, MissingVersionSection
from extbuilder.runner import GraphRunner
from extbuilder.task import ExtensionTask

from support import HOST, VERSION, WorkspaceTestCase, make_context


def cross_config(**overrides) -> ExtensionConfig:
    values = {"name": "sample", "cross_compile": True}
    values.update(overrides)
    return ExtensionConfig.from_mapping(values)


class CrossConfigTests(WorkspaceTestCase):
    def test_rbconfig_lookup_and_mkmf_location(self) -> None:
        path = self.write_cross_config()
        config = CrossConfig.load(path)

        rbconfig = config.rbconfig_for(VERSION)

        self.assertTrue(rbconfig.is_file())
        self.assertEqual(
            CrossConfig.mkmf_for(rbconfig),
            Path(os.path.abspath(self.root / f"cross/{VERSION}/lib/ruby/{VERSION}/mkmf.rb")),
        )

    def test_missing_version_section(self) -> None:
        config = CrossConfig.load(self.write_cross_config())
        with self.assertRaises(MissingVersionSection) as ctx:
            config.rbconfig_for("1.8.7")
        self.assertEqual(
            str(ctx.exception),
            "no configuration section for specified version of Ruby (rbconfig-1.8.7)",
        )

    def test_missing_file(self) -> None:
        with self.assertRaises(MissingCrossConfig):
            CrossConfig.load(self.root / "absent.yml")

    def test_requested_versions(self) -> None:
        self.assertEqual(requested_versions({}, "3.3.0"), ["3.3.0"])
        joined = os.pathsep.join(["2.7.8", "3.0.6"])
        self.assertEqual(requested_versions({"RUBY_CC_VERSION": joined}, "3.3.0"), ["2.7.8", "3.0.6"])

    def test_fake_rb_reports_target_identity(self) -> None:
        shim = fake_rb("x64-mingw32", "3.0.6")
        self.assertIn("remove_const :RUBY_PLATFORM", shim)
        self.assertIn('RUBY_PLATFORM = "x64-mingw32"', shim)
        self.assertIn('RUBY_VERSION = "3.0.6"', shim)


class CrossExpansionTests(WorkspaceTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.write_extension_sources()

    def test_cross_chain_is_defined_beside_host(self) -> None:
        context = make_context(cross_config_path=self.write_cross_config())
        task = ExtensionTask(cross_config(), context)
        graph = context.graph
        tmp = f"tmp/i386-mingw32/sample/{VERSION}"

        self.assertEqual([refs.target.platform for refs in task.chains], [HOST, "i386-mingw32"])
        self.assertEqual(
            graph.dependencies(f"{tmp}/Makefile"),
            [tmp, "ext/sample/extconf.rb", f"{tmp}/fake.rb", f"{tmp}/rbconfig.rb", f"{tmp}/mkmf.rb"],
        )
        self.assertEqual(graph.dependencies("compile"), [f"compile:{HOST}"])
        self.assertEqual(graph.dependencies("compile:i386-mingw32"), ["compile:sample:i386-mingw32"])
        self.assertEqual(graph.get("cross").description, "Force the compilation of the extensions for the cross platforms")

    def test_cross_configure_loads_identity_shim(self) -> None:
        context = make_context(cross_config_path=self.write_cross_config())
        ExtensionTask(cross_config(cross_config_options=["--enable-static"], config_options=["--with-x"]), context)
        tmp = f"tmp/i386-mingw32/sample/{VERSION}"

        GraphRunner(context.graph).run(["cross", "compile"])

        configure = next(record for record in context.runner.iter_commands() if record.command[0] == "ruby")
        self.assertEqual(
            configure.command,
            ["ruby", "-I.", "-rfake", "../../../../ext/sample/extconf.rb", "--with-x", "--enable-static"],
        )
        self.assertEqual(configure.cwd, tmp)
        writes = context.files.of_kind("write")
        self.assertEqual([record.path for record in writes], [f"{tmp}/fake.rb"])
        self.assertIn('RUBY_PLATFORM = "i386-mingw32"', writes[0].content)
        copied = [record.path for record in context.files.of_kind("copy")]
        self.assertEqual(copied, [f"{tmp}/rbconfig.rb", f"{tmp}/mkmf.rb", "lib/sample.so"])

    def test_multiple_versions_get_namespaced_lib_dirs(self) -> None:
        path = self.write_cross_config({"2.7.8": "i386-mingw32", "3.0.6": "i386-mingw32"})
        context = make_context(
            cross_config_path=path,
            environ={"MAKE": "make", "RUBY_CC_VERSION": os.pathsep.join(["2.7.8", "3.0.6"])},
        )
        ExtensionTask(cross_config(), context)
        graph = context.graph

        self.assertEqual(graph.dependencies("copy:sample:i386-mingw32:2.7.8")[0], "lib/2.7")
        self.assertEqual(graph.dependencies("copy:sample:i386-mingw32:3.0.6")[0], "lib/3.0")
        self.assertEqual(
            graph.dependencies("compile:sample:i386-mingw32"),
            ["copy:sample:i386-mingw32:2.7.8", "copy:sample:i386-mingw32:3.0.6"],
        )

        GraphRunner(graph).run(["cross", "compile"])

        destinations = [record.path for record in context.files.of_kind("copy") if record.path.startswith("lib/")]
        self.assertEqual(destinations, ["lib/2.7/sample.so", "lib/3.0/sample.so"])

    def test_version_without_major_minor_warns_about_shared_lib_dir(self) -> None:
        path = self.write_cross_config({"head": "i386-mingw32", "3.0.6": "i386-mingw32"})
        context = make_context(
            cross_config_path=path,
            environ={"MAKE": "make", "RUBY_CC_VERSION": os.pathsep.join(["head", "3.0.6"])},
        )

        with self.assertLogs("extbuilder.cross", level="WARNING") as logs:
            ExtensionTask(cross_config(), context)

        self.assertEqual(len(logs.output), 1)
        self.assertIn("version head has no major.minor part", logs.output[0])
        self.assertEqual(context.graph.dependencies("copy:sample:i386-mingw32:head")[0], "lib")
        self.assertEqual(context.graph.dependencies("copy:sample:i386-mingw32:3.0.6")[0], "lib/3.0")

    def test_single_version_is_not_namespaced(self) -> None:
        context = make_context(cross_config_path=self.write_cross_config({"2.7.8": "i386-mingw32"}))
        ExtensionTask(cross_config(), context, versions=["2.7.8"])

        self.assertEqual(context.graph.dependencies("copy:sample:i386-mingw32:2.7.8")[0], "lib")

    def test_missing_version_section_skips_only_that_pair(self) -> None:
        path = self.write_cross_config({"3.0.6": "i386-mingw32"})
        context = make_context(
            cross_config_path=path,
            environ={"MAKE": "make", "RUBY_CC_VERSION": os.pathsep.join(["2.7.8", "3.0.6"])},
        )

        with self.assertLogs("extbuilder.cross", level="WARNING") as logs:
            task = ExtensionTask(cross_config(), context)

        self.assertIn("rbconfig-2.7.8", logs.output[0])
        self.assertFalse(context.graph.has_node("copy:sample:i386-mingw32:2.7.8"))
        self.assertTrue(context.graph.has_node("copy:sample:i386-mingw32:3.0.6"))
        self.assertEqual([refs.target.version for refs in task.chains], [VERSION, "3.0.6"])

    def test_missing_cross_config_keeps_host_chain(self) -> None:
        context = make_context(cross_config_path=self.root / "absent.yml")

        with self.assertLogs("extbuilder.cross", level="WARNING"):
            ExtensionTask(cross_config(), context)

        self.assertFalse(context.graph.has_node("cross"))
        self.assertEqual(context.graph.dependencies("compile"), [f"compile:{HOST}"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
