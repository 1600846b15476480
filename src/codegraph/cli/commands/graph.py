"""Graph commands - inspect relations, cycles and blast radius."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from codegraph import console
from codegraph.cli._common import open_store
from codegraph.config import ALL


@dataclass
class Stats:
    """Show relation and entity counts."""

    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the stats command."""
        from codegraph.entities import EntityClass

        with open_store(self.directory, self.db) as store:
            relations = store.list_relations()
            entities = store.get_all_entities()
            edge_count = store.count_edges()
            pending = store.get_changed_entities()

        tests = sum(1 for e in entities if e.entity_class is EntityClass.TEST)

        console.header("Graph Stats")
        console.key_value("database", store.db_path, indent=2)
        console.key_value("relations", ", ".join(relations), indent=2)
        console.key_value("entities", len(entities), indent=2)
        console.key_value("code", len(entities) - tests, indent=4)
        console.key_value("test", tests, indent=4)
        console.key_value("edges", edge_count, indent=2)
        console.key_value("pending changes", len(pending), indent=2)
        return 0


@dataclass
class Cycles:
    """Report dependency cycles."""

    where: str = field(
        default=ALL,
        metadata={"help": "Edge filter, e.g. \"edge_type = 'calls'\""},
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    fail_on_cycles: bool = field(
        default=False,
        metadata={"help": "Exit 1 when any cycle is found"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the cycles command.

        Reporting cycles is not a failure unless --fail-on-cycles is set.
        """
        from codegraph.graph import DependencyGraph

        with open_store(self.directory, self.db) as store:
            graph = DependencyGraph.from_repository(store, self.where)

        cycles = graph.detect_cycles()
        if not cycles:
            console.success(
                f"no cycles among {len(graph)} nodes "
                f"and {graph.edge_count} edges"
            )
            return 0

        console.header(f"{len(cycles)} Cycle(s)")
        for i, cycle in enumerate(cycles, 1):
            console.info(f"{i}. " + " -> ".join([*cycle, cycle[0]]))
        return 1 if self.fail_on_cycles else 0


@dataclass
class BlastRadius:
    """List entities within N hops of a key."""

    key: str = field(metadata={"help": "Entity key"})
    hops: int = field(default=3, metadata={"help": "Maximum hop count"})
    direction: Literal["reverse", "forward"] = field(
        default="reverse",
        metadata={
            "help": "reverse = what depends on key, "
            "forward = what key depends on"
        },
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the blast-radius command."""
        from codegraph.graph import DependencyGraph

        with open_store(self.directory, self.db) as store:
            graph = DependencyGraph.from_repository(store)

        if self.key not in graph:
            console.warning(f"{self.key} has no dependency edges")
            return 0

        hits = graph.blast_radius(self.key, self.hops, self.direction)
        if not hits:
            console.dim("nothing within range")
            return 0

        console.table(
            f"Blast radius of {self.key}",
            ["hops", "key"],
            [[dist, key] for key, dist in hits],
        )
        return 0
