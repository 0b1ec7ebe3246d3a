"""Error types raised while defining and running extension build graphs."""
from __future__ import annotations

from core.command_runner import CommandError


class ExtensionBuildError(RuntimeError):
    """Base class for extension build failures."""


class ConfigurationError(ExtensionBuildError, ValueError):
    """Raised when an extension definition is incomplete or malformed."""


class CrossConfigError(ExtensionBuildError):
    """Raised when the saved cross-compilation configuration cannot serve a version."""


class MissingCrossConfig(CrossConfigError):
    """Raised when the cross-compilation configuration file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"cross-compilation configuration not found at {path}")
        self.path = path


class MissingVersionSection(CrossConfigError):
    """Raised when the configuration has no entry for a requested runtime version."""

    def __init__(self, version: str) -> None:
        super().__init__(
            f"no configuration section for specified version of Ruby (rbconfig-{version})"
        )
        self.version = version


class ClasspathResolutionFailure(ExtensionBuildError):
    """Raised by the java build action when no classpath source resolves."""


class UnknownNodeError(ExtensionBuildError, KeyError):
    """Raised when a run reaches an id that is neither a node nor an existing file."""

    def __init__(self, node: str, *, required_by: str | None = None) -> None:
        message = f"Don't know how to build '{node}'"
        if required_by:
            message = f"{message} (required by '{required_by}')"
        super().__init__(message)
        self.node = node
        self.required_by = required_by

    def __str__(self) -> str:
        return str(self.args[0])


ToolInvocationFailure = CommandError


__all__ = [
    "ClasspathResolutionFailure",
    "ConfigurationError",
    "CrossConfigError",
    "ExtensionBuildError",
    "MissingCrossConfig",
    "MissingVersionSection",
    "ToolInvocationFailure",
    "UnknownNodeError",
]
