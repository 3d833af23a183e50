from __future__ import annotations


class WriteupError(RuntimeError):
    """Base class for recoverable authoring errors shown to the user."""


class ValidationError(WriteupError):
    """Input rejected before any mutation (oversized image, empty title/content)."""


class EncodingError(WriteupError):
    """Binary payload could not be turned into an embeddable text URI."""


class PersistenceError(WriteupError):
    """The document store rejected or failed a save/load."""
