"""pwvault: local encrypted password vault."""

__version__ = "0.1.0"
