"""Entry point for `python -m scid`.

Usage:
    python -m scid --config /etc/scid.toml
    python -m scid --repo https://example.com/infra.git --branch main --dry-run
"""

from __future__ import annotations

from scid.cli import cli

cli(prog_name="scid")
