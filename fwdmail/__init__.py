"""
fwdmail - Forward Email Alias-Synchronisierung

Gleicht die Aliase (Weiterleitungen) zweier Domains über die
Forward Email REST API ab.
"""

__version__ = "1.0.0"

from .cli import cli

__all__ = ["cli", "__version__"]
