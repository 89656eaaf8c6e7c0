"""scid: change-triggered deployment automation for a single Git branch."""

__version__ = "0.3.0"
