"""
GitHub repository importer for password-protected sharing containers.
"""
from .version import __version__

__all__ = ["__version__"]
