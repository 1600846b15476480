"""Export command - serialize graph context for an LLM consumer."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from codegraph import console
from codegraph.cli._common import open_store
from codegraph.config import ALL, Settings, parse_delimiter


@dataclass
class Export:
    """Export edges (level 0), entities (1) or entities with types (2).

    With --output-dir, writes CODE and TEST exports side by side as
    <name>.<ext> and <name>_test.<ext>.
    """

    level: Literal[0, 1, 2] = field(
        default=1,
        metadata={"help": "0=edges, 1=entities, 2=entities+type facts"},
    )
    where: str = field(
        default=ALL,
        metadata={"help": "Filter, e.g. \"entity_class = 'CODE'\", or ALL"},
    )
    include_code: bool = field(
        default=False,
        metadata={"help": "Include current/future code (levels 1 and 2)"},
    )
    encoding: Literal["json", "tabular"] = field(
        default="json",
        metadata={"help": "Output encoding"},
    )
    delimiter: str | None = field(
        default=None,
        metadata={"help": "Tabular delimiter: comma, tab or pipe"},
    )
    output_dir: Path | None = field(
        default=None,
        metadata={"help": "Write split CODE/TEST files here"},
    )
    name: str = field(
        default="context",
        metadata={"help": "Base file name for --output-dir"},
    )
    split: bool = field(
        default=True,
        metadata={"help": "Write a separate <name>_test file"},
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the export command."""
        from codegraph.export import ContextExporter

        delimiter = (
            parse_delimiter(self.delimiter)
            if self.delimiter
            else Settings.from_env().delimiter
        )
        with open_store(self.directory, self.db) as store:
            exporter = ContextExporter(store)
            if self.output_dir is None:
                result = exporter.export(
                    self.level, self.where, self.include_code
                )
                console.raw(result.encode(self.encoding, delimiter))
                return 0
            written = exporter.export_files(
                self.level,
                self.output_dir,
                self.name,
                where=self.where,
                include_code=self.include_code,
                encoding=self.encoding,
                delimiter=delimiter,
                split=self.split,
            )
        for path in written:
            console.success(f"wrote {path}")
        return 0
