"""Core data model: entities, temporal state and dependency edges."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from codegraph.errors import TemporalStateError


class EntityClass(str, Enum):
    CODE = "CODE"
    TEST = "TEST"


class FutureAction(str, Enum):
    """Pending change proposed for an entity."""

    CREATE = "Create"
    EDIT = "Edit"
    DELETE = "Delete"

    @classmethod
    def parse(cls, value: str | FutureAction | None) -> FutureAction | None:
        if value is None or isinstance(value, FutureAction):
            return value
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        raise TemporalStateError(f"unknown future action: {value!r}")


@dataclass(frozen=True)
class LineRange:
    """Inclusive, 1-based line span."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1 or self.end < self.start:
            raise ValueError(
                f"invalid line range {self.start}-{self.end}: "
                "must be 1-based with start <= end"
            )

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "end": self.end}

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


# (current_ind, future_ind, future_action) tuples the model allows
VALID_TEMPORAL_STATES = frozenset(
    {
        (False, True, FutureAction.CREATE),
        (True, True, FutureAction.EDIT),
        (True, False, FutureAction.DELETE),
        (True, True, None),
    }
)


@dataclass(frozen=True)
class TemporalState:
    """Current/future existence flags plus the pending action.

    Construction validates the tuple, so an invalid state can never be
    held by an Entity.
    """

    current_ind: bool = True
    future_ind: bool = True
    future_action: FutureAction | None = None

    def __post_init__(self) -> None:
        action = FutureAction.parse(self.future_action)
        object.__setattr__(self, "future_action", action)
        combo = (bool(self.current_ind), bool(self.future_ind), action)
        if combo not in VALID_TEMPORAL_STATES:
            raise TemporalStateError(
                "invalid temporal state: "
                f"current_ind={self.current_ind}, "
                f"future_ind={self.future_ind}, "
                f"future_action={action.value if action else None}"
            )

    @classmethod
    def unchanged(cls) -> TemporalState:
        return cls(True, True, None)

    @classmethod
    def for_action(cls, action: FutureAction | str | None) -> TemporalState:
        action = FutureAction.parse(action)
        if action is FutureAction.CREATE:
            return cls(False, True, action)
        if action is FutureAction.EDIT:
            return cls(True, True, action)
        if action is FutureAction.DELETE:
            return cls(True, False, action)
        return cls.unchanged()

    @property
    def is_pending(self) -> bool:
        return self.future_action is not None


@dataclass
class DependencyEdge:
    from_key: str
    to_key: str
    edge_type: str
    source_location: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_key": self.from_key,
            "to_key": self.to_key,
            "edge_type": self.edge_type,
        }


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class Entity:
    """An addressable unit of source code and its temporal snapshot."""

    key: str
    kind: str
    name: str
    file_path: str
    language: str
    line_range: LineRange | None = None
    visibility: str = "public"
    language_signature: dict[str, Any] = field(default_factory=dict)
    current_code: str | None = None
    future_code: str | None = None
    entity_class: EntityClass = EntityClass.CODE
    temporal_state: TemporalState = field(default_factory=TemporalState)
    lsp_metadata: dict[str, Any] | None = None
    last_modified: str = field(default_factory=utc_now)

    @property
    def future_action(self) -> FutureAction | None:
        return self.temporal_state.future_action

    @property
    def interface_signature(self) -> dict[str, Any]:
        """Addressing and signature fields as stored in the relation."""
        sig: dict[str, Any] = {
            "kind": self.kind,
            "name": self.name,
            "visibility": self.visibility,
            "file_path": self.file_path,
            "line_range": (
                self.line_range.to_dict() if self.line_range else None
            ),
        }
        if self.language_signature:
            sig["language_signature"] = self.language_signature
        return sig

    def with_state(
        self,
        state: TemporalState,
        future_code: str | None = None,
    ) -> Entity:
        return replace(
            self,
            temporal_state=state,
            future_code=future_code,
            last_modified=utc_now(),
        )

    def to_row(self) -> dict[str, Any]:
        """Flatten into a CodeGraph relation row."""
        state = self.temporal_state
        return {
            "key": self.key,
            "current_code": self.current_code,
            "future_code": self.future_code,
            "interface_signature": json.dumps(
                self.interface_signature, sort_keys=True
            ),
            "tdd_classification": json.dumps(
                {"entity_class": self.entity_class.value}
            ),
            "lsp_metadata": (
                json.dumps(self.lsp_metadata)
                if self.lsp_metadata is not None
                else None
            ),
            "current_ind": int(state.current_ind),
            "future_ind": int(state.future_ind),
            "future_action": (
                state.future_action.value if state.future_action else None
            ),
            "file_path": self.file_path,
            "language": self.language,
            "last_modified": self.last_modified,
            "entity_type": self.kind,
            "entity_class": self.entity_class.value,
        }

    @classmethod
    def from_row(cls, row: Any) -> Entity:
        """Rebuild an entity from a CodeGraph row (mapping or sqlite Row)."""
        sig = json.loads(row["interface_signature"] or "{}")
        lr = sig.get("line_range")
        lsp = row["lsp_metadata"]
        return cls(
            key=row["key"],
            kind=row["entity_type"],
            name=sig.get("name", ""),
            file_path=row["file_path"],
            language=row["language"],
            line_range=LineRange(lr["start"], lr["end"]) if lr else None,
            visibility=sig.get("visibility", "public"),
            language_signature=sig.get("language_signature") or {},
            current_code=row["current_code"],
            future_code=row["future_code"],
            entity_class=EntityClass(row["entity_class"]),
            temporal_state=TemporalState(
                bool(row["current_ind"]),
                bool(row["future_ind"]),
                row["future_action"],
            ),
            lsp_metadata=json.loads(lsp) if lsp else None,
            last_modified=row["last_modified"],
        )
