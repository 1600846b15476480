"""Write commands - propose, amend and revert pending changes."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from codegraph import console
from codegraph.cli._common import open_store
from codegraph.entities import Entity


def _read_code(code: str | None, code_file: Path | None) -> str | None:
    if code_file is not None:
        return code_file.read_text()
    return code


def _show(entity: Entity) -> None:
    state = entity.temporal_state
    action = state.future_action.value if state.future_action else "-"
    console.key_value("key", entity.key, indent=2)
    console.key_value("class", entity.entity_class.value, indent=2)
    console.key_value(
        "state",
        f"current={state.current_ind} future={state.future_ind} "
        f"action={action}",
        indent=2,
    )


@dataclass
class WriteCreate:
    """Propose a new entity (gets a hash-based key)."""

    file_path: str = field(metadata={"help": "File the entity will live in"})
    name: str = field(metadata={"help": "Entity name"})
    kind: str = field(metadata={"help": "Entity kind (function, struct...)"})
    language: str = field(metadata={"help": "Language tag, e.g. rust"})
    code: str | None = field(
        default=None,
        metadata={"help": "Future code (or use --code-file)"},
    )
    code_file: Path | None = field(
        default=None,
        metadata={"help": "Read future code from this file"},
    )
    visibility: str = field(
        default="public",
        metadata={"help": "Visibility of the new entity"},
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the write:create command."""
        from codegraph.temporal import TemporalWriter

        code = _read_code(self.code, self.code_file)
        with open_store(self.directory, self.db) as store:
            entity = TemporalWriter(store).create(
                self.file_path,
                self.name,
                self.kind,
                self.language,
                future_code=code,
                visibility=self.visibility,
            )
        console.success("create proposed")
        _show(entity)
        return 0


@dataclass
class WriteEdit:
    """Propose new code for an existing entity."""

    key: str = field(metadata={"help": "Entity key"})
    code: str | None = field(
        default=None,
        metadata={"help": "Future code (or use --code-file)"},
    )
    code_file: Path | None = field(
        default=None,
        metadata={"help": "Read future code from this file"},
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the write:edit command."""
        from codegraph.temporal import TemporalWriter

        code = _read_code(self.code, self.code_file)
        with open_store(self.directory, self.db) as store:
            entity = TemporalWriter(store).edit(self.key, code)
        console.success("edit proposed")
        _show(entity)
        return 0


@dataclass
class WriteDelete:
    """Propose removing an existing entity."""

    key: str = field(metadata={"help": "Entity key"})
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the write:delete command."""
        from codegraph.temporal import TemporalWriter

        with open_store(self.directory, self.db) as store:
            entity = TemporalWriter(store).delete(self.key)
        console.success("delete proposed")
        _show(entity)
        return 0


@dataclass
class WriteRevert:
    """Drop the pending action on an entity."""

    key: str = field(metadata={"help": "Entity key"})
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the write:revert command."""
        from codegraph.temporal import TemporalWriter

        with open_store(self.directory, self.db) as store:
            entity = TemporalWriter(store).revert(self.key)
        if entity is None:
            console.success(f"removed proposed entity {self.key}")
            return 0
        console.success("reverted")
        _show(entity)
        return 0
