"""
Pyflakes type-checker adapter.

Implements ITypeCheckerPort on top of pyflakes' static checker.
"""

import ast
from pathlib import Path
from typing import List

from pyflakes import checker as pyflakes_checker
from pyflakes import messages as pyflakes_messages

from closed_function.domain.ports import ITypeCheckerPort
from closed_function.domain.value_objects import Diagnostic, DiagnosticCategory
from closed_function.infrastructure.logging.logging_config import get_logger


logger = get_logger()


class PyflakesChecker(ITypeCheckerPort):
    """
    Checks satellites with pyflakes.

    Only `UndefinedName` is treated as an unresolved name. Unused imports,
    redefinitions and the rest are reported as OTHER.
    """

    def parse(self, filename: str, source: str) -> ast.Module:
        return ast.parse(source, filename=filename)

    def diagnostics(self, tree: ast.Module, filename: str) -> List[Diagnostic]:
        result = pyflakes_checker.Checker(tree, filename=filename)
        findings = []
        for message in sorted(result.messages, key=lambda m: (m.lineno, m.col)):
            if isinstance(message, pyflakes_messages.UndefinedName):
                category = DiagnosticCategory.UNRESOLVED_NAME
            else:
                category = DiagnosticCategory.OTHER
            findings.append(
                Diagnostic(
                    code=type(message).__name__,
                    category=category,
                    message=message.message % message.message_args,
                    filename=filename,
                    line=message.lineno,
                    column=message.col,
                )
            )
        logger.debug("Satellite checked", filename=filename, diagnostics=len(findings))
        return findings

    def emit(self, source: str, output_path: Path) -> Path:
        """
        Compile-check and write the satellite.

        Raises:
            SyntaxError: If the source does not compile
        """
        compile(source, str(output_path), "exec")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(source, encoding="utf-8")
        return output_path
