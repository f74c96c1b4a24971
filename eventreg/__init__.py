"""
Event registration service.

This package hosts the HTTP API, the event store interface, and the keyed
async cache that shields the store from bursts of identical list queries.
"""

from .__version__ import __version__

__all__ = ["__version__"]
