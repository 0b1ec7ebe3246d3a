"""Task graphs that compile native gem extensions for host, foreign and JRuby targets."""

from .chain import ChainFactory, ChainRefs, JavaStrategy, NativeStrategy
from .config import BuildUnit, ExtensionConfig, TargetSpec, load_extension_configs
from .context import BuildContext
from .cross import CrossConfig, CrossMatrixExpander, fake_rb, requested_versions
from .errors import (
    ClasspathResolutionFailure,
    ConfigurationError,
    CrossConfigError,
    ExtensionBuildError,
    MissingCrossConfig,
    MissingVersionSection,
    ToolInvocationFailure,
    UnknownNodeError,
)
from .files import CleanupLists, FileOperations, LocalFileOperations, RecordingFileOperations
from .graph import NodeCategory, NodeKey, TaskGraph, TaskNode, node_id
from .packaging import GemPackager, PackageDescriptor, Packager, PackagingBridge, RecordingPackager
from .platforms import ALTERNATE_RUNTIME, RuntimeInfo, binary_name, extension_for
from .rewrite import CROSS, RewriteCoordinator
from .runner import GraphRunner
from .task import ExtensionTask, define_extensions

__all__ = [
    "ALTERNATE_RUNTIME",
    "BuildContext",
    "BuildUnit",
    "CROSS",
    "ChainFactory",
    "ChainRefs",
    "ClasspathResolutionFailure",
    "CleanupLists",
    "ConfigurationError",
    "CrossConfig",
    "CrossConfigError",
    "CrossMatrixExpander",
    "ExtensionBuildError",
    "ExtensionConfig",
    "ExtensionTask",
    "FileOperations",
    "GemPackager",
    "GraphRunner",
    "JavaStrategy",
    "LocalFileOperations",
    "MissingCrossConfig",
    "MissingVersionSection",
    "NativeStrategy",
    "NodeCategory",
    "NodeKey",
    "PackageDescriptor",
    "Packager",
    "PackagingBridge",
    "RecordingFileOperations",
    "RecordingPackager",
    "RewriteCoordinator",
    "RuntimeInfo",
    "TargetSpec",
    "TaskGraph",
    "TaskNode",
    "ToolInvocationFailure",
    "UnknownNodeError",
    "binary_name",
    "define_extensions",
    "extension_for",
    "fake_rb",
    "load_extension_configs",
    "node_id",
    "requested_versions",
]
