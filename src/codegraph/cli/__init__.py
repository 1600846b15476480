"""codegraph CLI - ingest, edit, diff and export a temporal code graph.

Uses tyro for type-driven CLI generation from dataclasses.
"""

from __future__ import annotations

from typing import Annotated

import tyro

from codegraph.cli.commands.diff import Diff
from codegraph.cli.commands.export import Export
from codegraph.cli.commands.graph import BlastRadius, Cycles, Stats
from codegraph.cli.commands.ingest import Ingest
from codegraph.cli.commands.reset import ResetPromote, ResetRebaseline
from codegraph.cli.commands.write import (
    WriteCreate,
    WriteDelete,
    WriteEdit,
    WriteRevert,
)

_Ingest = Annotated[Ingest, tyro.conf.subcommand("ingest")]
_Stats = Annotated[Stats, tyro.conf.subcommand("stats")]
_Diff = Annotated[Diff, tyro.conf.subcommand("diff")]
_Export = Annotated[Export, tyro.conf.subcommand("export")]
_Cycles = Annotated[Cycles, tyro.conf.subcommand("cycles")]
_BlastRadius = Annotated[BlastRadius, tyro.conf.subcommand("blast-radius")]

# Write subcommands
_WriteCreate = Annotated[WriteCreate, tyro.conf.subcommand("write:create")]
_WriteEdit = Annotated[WriteEdit, tyro.conf.subcommand("write:edit")]
_WriteDelete = Annotated[WriteDelete, tyro.conf.subcommand("write:delete")]
_WriteRevert = Annotated[WriteRevert, tyro.conf.subcommand("write:revert")]

# Reset subcommands
_ResetRebaseline = Annotated[
    ResetRebaseline, tyro.conf.subcommand("reset:rebaseline")
]
_ResetPromote = Annotated[ResetPromote, tyro.conf.subcommand("reset:promote")]

Command = (
    _Ingest
    | _Stats
    | _Diff
    | _Export
    | _Cycles
    | _BlastRadius
    | _WriteCreate
    | _WriteEdit
    | _WriteDelete
    | _WriteRevert
    | _ResetRebaseline
    | _ResetPromote
)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    # configure structlog (respects CODEGRAPH_DEBUG env var)
    from codegraph.logging_config import configure_logging

    configure_logging()

    try:
        cmd = tyro.cli(
            Command,
            prog="codegraph",
            description="Temporal code-entity graph for LLM-driven edits.",
            args=argv,
        )
        return cmd.run()
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        from codegraph import console

        console.error(str(e))
        return 1
