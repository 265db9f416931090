"""
Domain Ports

Port interfaces defining contracts between layers.
The checker and the bundler are external collaborators reached only through these.
"""

from .checker_port import ITypeCheckerPort
from .bundler_port import IBundlerPort

__all__ = [
    # Checker
    "ITypeCheckerPort",
    # Bundler
    "IBundlerPort",
]
