from __future__ import annotations


class PrepwiseError(Exception):
    """Base class for failures that end a research run."""


class SynthesisError(PrepwiseError):
    pass


class PersistenceError(PrepwiseError):
    def __init__(self, label: str, message: str):
        super().__init__(f"{label}: {message}")
        self.label = label


class StageMappingError(PrepwiseError):
    """Raised when generated questions cannot be attached to any persisted stage."""
