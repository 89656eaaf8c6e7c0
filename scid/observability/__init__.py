"""Logging setup for scid."""
