"""Diff generator: pending temporal state -> ordered file-level changes.

Only entities with a pending action produce a Change. The file path and
line range come from the entity key, so a key that cannot be parsed fails
that one change; the rest of the batch is still converted. In strict mode
(CLI use) any such failure aborts the whole diff after the batch has been
examined, reporting every failing key at once.
"""

from __future__ import annotations

import json
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from codegraph.entities import Entity, FutureAction, utc_now
from codegraph.errors import AddressingError, DiffGenerationError
from codegraph.keys import parse_key
from codegraph.store.repository import GraphRepository

logger = structlog.get_logger(__name__)

PENDING_FILTER = "future_action != null"


class ChangeOperation(str, Enum):
    CREATE = "CREATE"
    EDIT = "EDIT"
    DELETE = "DELETE"


_OPERATIONS = {
    FutureAction.CREATE: ChangeOperation.CREATE,
    FutureAction.EDIT: ChangeOperation.EDIT,
    FutureAction.DELETE: ChangeOperation.DELETE,
}


class LineSpan(BaseModel):
    start: int
    end: int


class Change(BaseModel):
    """One file-level operation derived from an entity's temporal state."""

    key: str
    file_path: str
    operation: ChangeOperation
    current_code: str | None = Field(
        default=None, description="Absent for CREATE"
    )
    future_code: str | None = Field(
        default=None, description="Absent for DELETE"
    )
    line_range: LineSpan | None = Field(
        default=None, description="Absent for CREATE (hash-keyed)"
    )
    interface_signature: dict[str, Any] = Field(default_factory=dict)


class DiffMetadata(BaseModel):
    total: int = Field(description="create_count + edit_count + delete_count")
    create_count: int
    edit_count: int
    delete_count: int
    generated_at: str = Field(description="ISO-8601 UTC timestamp")


class ChangeError(BaseModel):
    key: str
    message: str


class CodeDiff(BaseModel):
    changes: list[Change]
    metadata: DiffMetadata
    errors: list[ChangeError] = Field(
        default_factory=list,
        description="Entities that could not be converted (lenient mode)",
    )

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def by_file(self) -> dict[str, list[Change]]:
        """Changes grouped by file, files in first-seen order."""
        grouped: dict[str, list[Change]] = defaultdict(list)
        for change in self.changes:
            grouped[change.file_path].append(change)
        return dict(grouped)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        if not self.errors:
            data.pop("errors")
        return data

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json() + "\n")


def entity_to_change(entity: Entity) -> Change:
    """Convert one pending entity.

    Raises:
        AddressingError: the key does not yield the path or line range
            the change needs.
    """
    action = entity.future_action
    if action is None:
        raise ValueError(f"{entity.key} has no pending action")
    parsed = parse_key(entity.key)
    operation = _OPERATIONS[action]

    line_range = None
    if action is not FutureAction.CREATE:
        if parsed.line_range is None:
            raise AddressingError(
                entity.key,
                f"{operation.value} needs a line range but the key has none",
            )
        line_range = LineSpan(
            start=parsed.line_range.start, end=parsed.line_range.end
        )

    return Change(
        key=entity.key,
        file_path=parsed.file_path,
        operation=operation,
        current_code=(
            None if action is FutureAction.CREATE else entity.current_code
        ),
        future_code=(
            None if action is FutureAction.DELETE else entity.future_code
        ),
        line_range=line_range,
        interface_signature=entity.interface_signature,
    )


class DiffGenerator:
    """Build a CodeDiff from any GraphRepository."""

    def __init__(self, repo: GraphRepository, strict: bool = False):
        self.repo = repo
        self.strict = strict

    def generate(self) -> CodeDiff:
        pending = self.repo.query_entities(PENDING_FILTER)
        changes: list[Change] = []
        errors: list[ChangeError] = []
        for entity in pending:
            try:
                changes.append(entity_to_change(entity))
            except AddressingError as e:
                logger.warning("skipping change", key=entity.key, error=str(e))
                errors.append(ChangeError(key=entity.key, message=e.reason))

        if errors and self.strict:
            raise DiffGenerationError(errors)

        counts = {op: 0 for op in ChangeOperation}
        for change in changes:
            counts[change.operation] += 1
        metadata = DiffMetadata(
            total=len(changes),
            create_count=counts[ChangeOperation.CREATE],
            edit_count=counts[ChangeOperation.EDIT],
            delete_count=counts[ChangeOperation.DELETE],
            generated_at=utc_now(),
        )
        logger.debug(
            "diff generated",
            total=metadata.total,
            errors=len(errors),
        )
        return CodeDiff(changes=changes, metadata=metadata, errors=errors)
