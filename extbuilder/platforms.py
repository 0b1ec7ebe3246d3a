"""Platform identifiers, artifact naming and the description of the running runtime."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.command_runner import CommandRunner

from .errors import ExtensionBuildError


ALTERNATE_RUNTIME = "java"
"""Platform marker selecting the JRuby archive build strategy."""

PLATFORM_INDEPENDENT = "ruby"
"""Package classification of a source gem that may carry native packaging tasks."""

DEFAULT_CROSS_PLATFORM = "i386-mingw32"

_BUNDLE_MARKERS = ("darwin",)
_SHARED_OBJECT_MARKERS = ("mingw", "mswin", "linux")
_ARCHIVE_MARKERS = (ALTERNATE_RUNTIME,)


def _contains_any(platform: str, markers: Sequence[str]) -> bool:
    return any(marker in platform for marker in markers)


def extension_for(platform: str, *, host_dlext: str) -> str:
    """Return the artifact extension used for ``platform``.

    Rules are evaluated in order and the first match wins, so a platform string
    is matched by substring rather than against a closed set.
    """

    if _contains_any(platform, _BUNDLE_MARKERS):
        return "bundle"
    if _contains_any(platform, _SHARED_OBJECT_MARKERS):
        return "so"
    if _contains_any(platform, _ARCHIVE_MARKERS):
        return "jar"
    return host_dlext


def binary_name(name: str, platform: str, *, host_dlext: str) -> str:
    return f"{name}.{extension_for(platform, host_dlext=host_dlext)}"


_DETECT_SCRIPT = "; ".join(
    [
        "puts RUBY_PLATFORM",
        "puts RUBY_VERSION",
        "puts RbConfig::CONFIG['DLEXT']",
        "puts(defined?(RUBY_ENGINE) ? RUBY_ENGINE : 'ruby')",
        "puts(defined?(JRUBY_VERSION) ? [Java::java.lang.System.getProperty('java.class.path'), "
        "Java::java.lang.System.getProperty('sun.boot.class.path')].compact.join(File::PATH_SEPARATOR) : '')",
        "puts(defined?(JRUBY_VERSION) ? Java::java.lang.System.getProperty('java.ext.dirs').to_s : '')",
    ]
)


@dataclass(frozen=True, slots=True)
class RuntimeInfo:
    """The managed runtime the build runs under.

    ``platform`` and ``version`` decide which chain joins the default
    ``compile`` umbrella; ``dlext`` is the fallback artifact extension for
    platforms none of the naming rules recognise.
    """

    platform: str
    version: str
    dlext: str = "so"
    engine: str = "ruby"
    executable: str = "ruby"
    java_classpath: str | None = None
    java_ext_dirs: str | None = None

    @property
    def is_jruby(self) -> bool:
        return self.engine == "jruby"

    def binary_name(self, name: str, platform: str) -> str:
        return binary_name(name, platform, host_dlext=self.dlext)

    @classmethod
    def detect(cls, runner: CommandRunner, *, executable: str = "ruby") -> "RuntimeInfo":
        """Query ``executable`` for its platform, version and library extension."""

        result = runner.run([executable, "-rrbconfig", "-e", _DETECT_SCRIPT], check=True, stream=False)
        lines = result.stdout.splitlines()
        if len(lines) < 3 or not lines[0].strip() or not lines[1].strip():
            raise ExtensionBuildError(f"Unable to detect runtime details from '{executable}'")
        padded = [line.strip() for line in lines] + [""] * 6
        platform, version, dlext, engine, classpath, ext_dirs = padded[:6]
        return cls(
            platform=platform,
            version=version,
            dlext=dlext or "so",
            engine=engine or "ruby",
            executable=executable,
            java_classpath=classpath or None,
            java_ext_dirs=ext_dirs or None,
        )


__all__ = [
    "ALTERNATE_RUNTIME",
    "DEFAULT_CROSS_PLATFORM",
    "PLATFORM_INDEPENDENT",
    "RuntimeInfo",
    "binary_name",
    "extension_for",
]
