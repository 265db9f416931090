"""
Application Commands

Use case handlers.
"""

from .mount_closed_block import MountClosedBlockCommand

__all__ = ["MountClosedBlockCommand"]
