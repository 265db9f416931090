"""
Closed Function Plugin

Binds the closed-block use case to the host pipeline's lifecycle hooks.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from closed_function.application.commands.mount_closed_block import MountClosedBlockCommand
from closed_function.domain.entities import HostModule
from closed_function.domain.ports import IBundlerPort, ITypeCheckerPort
from closed_function.domain.services import DependencyPruner
from closed_function.domain.value_objects import BundleOptions
from closed_function.infrastructure.bundler.stickytape_bundler import StickytapeBundler
from closed_function.infrastructure.checker.pyflakes_checker import PyflakesChecker
from closed_function.infrastructure.config.config import Settings, get_settings
from closed_function.infrastructure.logging.logging_config import get_logger
from closed_function.interfaces.hooks import Compilation, CompilationOptions


logger = get_logger()

PLUGIN_NAME = "ClosedFunctionPlugin"


class ClosedFunctionPlugin:
    """
    Host pipeline plugin isolating `with __closed__:` function bodies.

    - build_module: extract and synthesize, redirecting the module's resource
    - finish_modules: build and splice every pending satellite concurrently
    - optimize_dependencies: prune edges the splice made stale

    Module-scoped errors go to `compilation.errors`; only
    InternalInvariantError escapes a hook.
    """

    def __init__(
        self,
        checker: Optional[ITypeCheckerPort] = None,
        bundler: Optional[IBundlerPort] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the plugin.

        Args:
            checker: Checker port, pyflakes by default
            bundler: Bundler port, stickytape by default
            settings: Tool settings, read from the environment by default
        """
        self.settings = settings or get_settings()
        self.checker = checker or PyflakesChecker()
        self.bundler = bundler or StickytapeBundler()
        self.pruner = DependencyPruner()
        self._pending: Dict[int, Dict[str, MountClosedBlockCommand]] = {}
        self._mounted: Dict[int, List[HostModule]] = {}

    def apply(self, compilation: Compilation) -> None:
        """Tap the compilation's hooks."""
        key = id(compilation)
        self._pending[key] = {}
        self._mounted[key] = []

        hooks = compilation.hooks
        hooks.build_module.tap(PLUGIN_NAME, lambda module: self.build_module(compilation, module))

        async def finish_modules(modules: List[HostModule]) -> None:
            await self.finish_modules(compilation, modules)

        hooks.finish_modules.tap(PLUGIN_NAME, finish_modules)
        hooks.optimize_dependencies.tap(
            PLUGIN_NAME, lambda modules: self.optimize_dependencies(compilation, modules)
        )

    def new_work_dir(self) -> Path:
        return Path(self.settings.work_dir) / f"{PLUGIN_NAME}-{uuid.uuid4().hex}"

    def derive_bundle_options(self, options: CompilationOptions) -> BundleOptions:
        """Nested build options: host resolution and mode, without this plugin."""
        return BundleOptions(
            python_paths=tuple(options.python_paths),
            mode=options.mode,
            plugins=tuple(p for p in options.plugins if not isinstance(p, ClosedFunctionPlugin)),
        )

    def build_module(self, compilation: Compilation, module: HostModule) -> None:
        if not module.is_python_source:
            return

        source = module.resource_path.read_text(encoding="utf-8")
        command = MountClosedBlockCommand(
            module,
            checker_port=self.checker,
            bundler_port=self.bundler,
            work_dir=self.new_work_dir(),
            keep_intermediates=self.settings.keep_intermediates,
        )
        errors = command.prepare(source)
        if errors:
            compilation.errors.extend(errors)
            return
        if command.is_pending:
            self._pending[id(compilation)][module.module_id] = command

    async def finish_modules(self, compilation: Compilation, modules: List[HostModule]) -> None:
        commands = list(self._pending[id(compilation)].values())
        self._pending[id(compilation)].clear()
        if not commands:
            return

        options = self.derive_bundle_options(compilation.options)
        logger.info("Mounting closed blocks", count=len(commands), mode=options.mode.value)

        results = await asyncio.gather(
            *(command.mount(options, compilation.options.mode) for command in commands)
        )
        for command, errors in zip(commands, results):
            if errors:
                compilation.errors.extend(errors)
            else:
                self._mounted[id(compilation)].append(command.module)

    def optimize_dependencies(self, compilation: Compilation, modules: List[HostModule]) -> None:
        for module in self._mounted.pop(id(compilation), []):
            removed = self.pruner.prune(module)
            if removed:
                logger.debug(
                    "Stale dependencies pruned",
                    module=module.module_id,
                    removed=[edge.request for edge in removed],
                )
        self._pending.pop(id(compilation), None)
