"""Shared utilities: keyed async cache and request correlation."""
