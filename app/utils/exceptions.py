"""Exceptions raised by the audit store layer."""


class StoreError(Exception):
    """The backing store failed to execute an insert or query."""


class StoreNotConfiguredError(ValueError):
    """Store credentials are missing from the environment."""
