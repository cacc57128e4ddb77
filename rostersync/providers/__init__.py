"""Concrete adapters for the interfaces in :mod:`rostersync.interfaces`."""
