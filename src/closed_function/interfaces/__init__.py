"""
Interfaces Layer

Host pipeline contract, the closed-function plugin, a reference source tree
host and the command line.
"""

from .hooks import (
    AsyncSeriesHook,
    Compilation,
    CompilationHooks,
    CompilationOptions,
    SyncHook,
)
from .plugin import ClosedFunctionPlugin
from .source_tree import BuildReport, DependencyScanner, SourceTreeBuild

__all__ = [
    "AsyncSeriesHook",
    "Compilation",
    "CompilationHooks",
    "CompilationOptions",
    "SyncHook",
    "ClosedFunctionPlugin",
    "BuildReport",
    "DependencyScanner",
    "SourceTreeBuild",
]
