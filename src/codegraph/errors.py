"""Exception taxonomy for the code graph.

Every error raised by the library derives from CodeGraphError so callers
can catch the whole family at a pipeline boundary. Most also derive from a
builtin (ValueError, LookupError, RuntimeError) so generic handlers keep
working.
"""

from __future__ import annotations


class CodeGraphError(Exception):
    """Base class for all code graph errors."""


class StorageError(CodeGraphError, RuntimeError):
    """Backing store failed; the underlying message is preserved."""


class RelationNotFoundError(StorageError):
    """A relation was queried before it was created."""

    def __init__(self, relation: str, message: str | None = None):
        self.relation = relation
        super().__init__(message or f"relation not found: {relation}")


class AddressingError(CodeGraphError, ValueError):
    """An entity key could not be built or parsed."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"invalid entity key {key!r}: {reason}")


class TemporalStateError(CodeGraphError, ValueError):
    """A temporal transition outside the valid combination table."""


class PreconditionError(CodeGraphError, ValueError):
    """A write request is incomplete (e.g. edit without future code)."""


class EntityNotFoundError(CodeGraphError, LookupError):
    """An operation referenced a key that is not in the store."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"entity not found: {key}")


class ConfigurationError(CodeGraphError, ValueError):
    """A required flag, filter or setting is missing or invalid."""


class DiffGenerationError(CodeGraphError):
    """Strict diff generation aborted because some entities failed."""

    def __init__(self, errors: list):
        self.errors = errors
        detail = "; ".join(f"{e.key}: {e.message}" for e in errors[:5])
        more = f" (+{len(errors) - 5} more)" if len(errors) > 5 else ""
        super().__init__(
            f"{len(errors)} entities could not be converted: {detail}{more}"
        )
