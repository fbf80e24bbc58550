"""CLI package for bahn-cli

This package provides the ``bahn`` command line interface.
"""

__version__ = "0.1.0"
