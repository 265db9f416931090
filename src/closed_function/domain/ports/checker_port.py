"""
Type Checker Port Interface

Defines the contract for parsing, diagnosing and emitting satellite units.
This is an output port - implemented by infrastructure layer.
"""

import ast
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from closed_function.domain.value_objects import Diagnostic


class ITypeCheckerPort(ABC):
    """
    Port interface for the compile step of a nested build.

    The adapter must be able to tell unresolved names apart from any other
    diagnostic; only the former are capture violations.
    """

    @abstractmethod
    def parse(self, filename: str, source: str) -> ast.Module:
        """
        Parse a satellite unit.

        Args:
            filename: Name used in diagnostics
            source: Satellite text

        Returns:
            Parsed module tree

        Raises:
            SyntaxError: If the satellite cannot be parsed
        """
        pass

    @abstractmethod
    def diagnostics(self, tree: ast.Module, filename: str) -> List[Diagnostic]:
        """
        Analyse a parsed satellite.

        Args:
            tree: Tree returned by `parse`
            filename: Name used in diagnostics

        Returns:
            Every finding, categorized
        """
        pass

    @abstractmethod
    def emit(self, source: str, output_path: Path) -> Path:
        """
        Write a checked satellite where the bundler can pick it up.

        Args:
            source: Satellite text
            output_path: Destination file

        Returns:
            Path of the emitted file

        Raises:
            SyntaxError: If the text does not compile
            OSError: If the file cannot be written
        """
        pass
