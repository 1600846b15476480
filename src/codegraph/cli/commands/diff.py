"""Diff command - emit the pending change set."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from codegraph import console
from codegraph.cli._common import open_store


@dataclass
class Diff:
    """Generate the CodeDiff for every entity with a pending action.

    Fails without writing anything if any change cannot be converted.
    """

    output: Path | None = field(
        default=None,
        metadata={"help": "Write JSON here instead of stdout"},
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(
        default=None,
        metadata={"help": "Database path"},
    )

    def run(self) -> int:
        """Execute the diff command."""
        from codegraph.diff import DiffGenerator

        with open_store(self.directory, self.db) as store:
            diff = DiffGenerator(store, strict=True).generate()

        if self.output is None:
            console.raw(diff.to_json())
            return 0

        diff.write(self.output)
        meta = diff.metadata
        console.success(f"wrote {meta.total} changes to {self.output}")
        console.key_value("create", meta.create_count, indent=2)
        console.key_value("edit", meta.edit_count, indent=2)
        console.key_value("delete", meta.delete_count, indent=2)
        return 0
