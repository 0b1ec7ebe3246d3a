"""Java classpath discovery for the JRuby archive build."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping, Sequence, Tuple
import glob
import os

from .errors import ClasspathResolutionFailure
from .platforms import RuntimeInfo


Probe = Callable[[RuntimeInfo, Mapping[str, str]], "str | None"]


def live_runtime_classpath(runtime: RuntimeInfo, environ: Mapping[str, str]) -> str | None:
    """Class path reported by a running JRuby (``java.class.path`` + boot path)."""

    if not runtime.is_jruby:
        return None
    return runtime.java_classpath or None


def parent_classpath(runtime: RuntimeInfo, environ: Mapping[str, str]) -> str | None:
    return environ.get("JRUBY_PARENT_CLASSPATH") or None


def jruby_home_jars(runtime: RuntimeInfo, environ: Mapping[str, str]) -> str | None:
    home = environ.get("JRUBY_HOME")
    if not home:
        return None
    jars = sorted(glob.glob(str(Path(home) / "lib" / "*.jar")))
    return os.pathsep.join(jars)


CLASSPATH_PROBES: Tuple[Probe, ...] = (
    live_runtime_classpath,
    parent_classpath,
    jruby_home_jars,
)


def resolve_classpath(
    runtime: RuntimeInfo,
    environ: Mapping[str, str],
    *,
    extra: Sequence[str] = (),
    probes: Sequence[Probe] = CLASSPATH_PROBES,
) -> str:
    """Return the first classpath any probe resolves, with ``extra`` appended."""

    for probe in probes:
        classpath = probe(runtime, environ)
        if classpath is not None:
            break
    else:
        raise ClasspathResolutionFailure("JRUBY_HOME or JRUBY_PARENT_CLASSPATH are not set")

    if extra:
        classpath = os.pathsep.join([classpath, *extra])
    return classpath


def resolve_extdirs(runtime: RuntimeInfo, environ: Mapping[str, str]) -> str | None:
    if runtime.is_jruby and runtime.java_ext_dirs:
        return runtime.java_ext_dirs
    return environ.get("JAVA_EXT_DIR") or None


__all__ = [
    "CLASSPATH_PROBES",
    "jruby_home_jars",
    "live_runtime_classpath",
    "parent_classpath",
    "resolve_classpath",
    "resolve_extdirs",
]
