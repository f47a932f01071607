"""SealDrop - ephemeral storage for client-encrypted payloads."""

__version__ = "1.0.0"
