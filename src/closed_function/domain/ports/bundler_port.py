"""
Bundler Port Interface

Defines the contract for turning an emitted satellite into one
self-contained file.
This is an output port - implemented by infrastructure layer.
"""

from abc import ABC, abstractmethod

from closed_function.domain.value_objects import BundleRequest, BundleResult


class IBundlerPort(ABC):
    """
    Port interface for the bundle step of a nested build.

    Implementations resolve the entry's imports against
    `request.options.python_paths` and inline them into
    `request.output_path`.
    """

    @abstractmethod
    async def bundle(self, request: BundleRequest) -> BundleResult:
        """
        Bundle an emitted satellite.

        Args:
            request: Entry, output path and derived options

        Returns:
            BundleResult; `success=False` with diagnostics on bundler errors

        Raises:
            Exception: For unexpected bundler failures
        """
        pass
