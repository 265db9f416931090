"""
Configuration Infrastructure

Tool settings from the environment and project options from pyproject.toml.
"""

from .config import Settings, get_settings
from .project_options import ProjectOptions, find_pyproject, load_project_options

__all__ = [
    "Settings",
    "get_settings",
    "ProjectOptions",
    "find_pyproject",
    "load_project_options",
]
