"""
Project options for closed-function.

Reads `[tool.closed-function]` from the nearest pyproject.toml and follows
its `extends` chain, the way a build tool layers shared configuration.
"""

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from closed_function.domain.errors import ConfigurationError
from closed_function.domain.value_objects import BuildMode
from closed_function.infrastructure.logging.logging_config import get_logger


logger = get_logger()

PYPROJECT = "pyproject.toml"
TOOL_TABLE = "closed-function"


class ProjectOptions(BaseModel):
    """Validated project options."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    python_paths: List[str] = Field(default_factory=list, alias="python-paths")
    mode: BuildMode = BuildMode.NONE
    extends: Optional[str] = None


def find_pyproject(search_path: Path) -> Optional[Path]:
    """
    Find the nearest pyproject.toml at or above `search_path`.

    Args:
        search_path: File or directory to start from

    Returns:
        Path to pyproject.toml, or None
    """
    start = search_path.resolve()
    if start.is_file():
        start = start.parent
    for directory in (start, *start.parents):
        candidate = directory / PYPROJECT
        if candidate.is_file():
            return candidate
    return None


def _read_table(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            document = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigurationError("options file not found", detail=str(path))
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError("invalid TOML in options file", detail=f"{path}: {e}")

    table = document.get("tool", {}).get(TOOL_TABLE)
    if table is None:
        # extended files may hold the options at top level
        table = {} if path.name == PYPROJECT else document
    if not isinstance(table, dict):
        raise ConfigurationError(f"[tool.{TOOL_TABLE}] must be a table", detail=str(path))

    table = dict(table)
    paths = table.get("python-paths", table.get("python_paths"))
    if isinstance(paths, list):
        table.pop("python_paths", None)
        table["python-paths"] = [
            str((path.parent / p).resolve()) if isinstance(p, str) else p for p in paths
        ]
    return table


def _resolve_chain(path: Path) -> List[Dict[str, Any]]:
    """Tables from the root of the extends chain down to `path`."""
    chain: List[Dict[str, Any]] = []
    seen = set()
    current: Optional[Path] = path.resolve()
    while current is not None:
        if current in seen:
            raise ConfigurationError("circular extends chain", detail=str(current))
        seen.add(current)
        table = _read_table(current)
        chain.append(table)
        extends = table.get("extends")
        current = (current.parent / extends).resolve() if extends else None
    chain.reverse()
    return chain


def load_project_options(search_path: Path) -> ProjectOptions:
    """
    Load project options for a source tree.

    Base tables are merged first so that keys of the extending file win.

    Args:
        search_path: Source root or any file below it

    Returns:
        ProjectOptions; defaults when no pyproject.toml is found

    Raises:
        ConfigurationError: On missing extends targets, bad TOML or invalid values
    """
    pyproject = find_pyproject(search_path)
    if pyproject is None:
        logger.debug("No pyproject.toml found", search_path=str(search_path))
        return ProjectOptions()

    merged: Dict[str, Any] = {}
    for table in _resolve_chain(pyproject):
        merged.update(table)

    try:
        options = ProjectOptions.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError("invalid closed-function options", detail=str(e))

    logger.debug(
        "Project options loaded",
        pyproject=str(pyproject),
        mode=options.mode.value,
        python_paths=options.python_paths,
    )
    return options
