"""Shared fixtures for the extension build tests."""
from __future__ import annotations

from pathlib import Path
from typing import Mapping
import os
import tempfile
import textwrap
import unittest

from core.command_runner import RecordingCommandRunner
from extbuilder.context import BuildContext
from extbuilder.files import RecordingFileOperations
from extbuilder.graph import TaskGraph
from extbuilder.packaging import RecordingPackager
from extbuilder.platforms import RuntimeInfo


HOST = "x86_64-linux"
VERSION = "3.3.0"


def make_runtime(**overrides) -> RuntimeInfo:
    values = {"platform": HOST, "version": VERSION, "dlext": "so"}
    values.update(overrides)
    return RuntimeInfo(**values)


def make_context(
    *,
    runtime: RuntimeInfo | None = None,
    environ: Mapping[str, str] | None = None,
    cross_config_path: Path | None = None,
) -> BuildContext:
    return BuildContext(
        graph=TaskGraph(),
        runtime=runtime or make_runtime(),
        runner=RecordingCommandRunner(),
        files=RecordingFileOperations(),
        packager=RecordingPackager(),
        environ=dict(environ if environ is not None else {"MAKE": "make"}),
        cross_config_path=cross_config_path or Path("missing-cross-config.yml"),
    )


class WorkspaceTestCase(unittest.TestCase):
    """Runs each test inside a fresh temporary working directory."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self._previous_cwd = os.getcwd()
        os.chdir(self.root)

    def tearDown(self) -> None:
        os.chdir(self._previous_cwd)
        self.temp_dir.cleanup()

    def write(self, relative: str, content: str = "") -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    def write_extension_sources(self, name: str = "sample") -> None:
        self.write(f"ext/{name}/extconf.rb", "require 'mkmf'\ncreate_makefile('%s')\n" % name)
        self.write(f"ext/{name}/{name}.c", "void Init_%s(void) {}\n" % name)

    def write_cross_config(self, versions: Mapping[str, str] | None = None) -> Path:
        """Write a cross config whose rbconfig/mkmf files exist inside the workspace."""

        lines = []
        for version in versions or {VERSION: "i386-mingw32"}:
            rbconfig = self.write(f"cross/{version}/lib/ruby/{version}/i386-mingw32/rbconfig.rb", "# rbconfig\n")
            self.write(f"cross/{version}/lib/ruby/{version}/mkmf.rb", "# mkmf\n")
            lines.append(f"rbconfig-{version}: {rbconfig}")
        return self.write("config.yml", "\n".join(lines) + "\n")
