"""scid command-line interface.

Exposes:
    cli -- Click command entry point (registered as ``scid`` script).
"""

from scid.cli.main import cli

__all__ = ["cli"]
