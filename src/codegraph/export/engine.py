"""Context export engine.

Serializes graph state for a token-constrained consumer at three
strictly additive levels:

- Level 0: dependency edges only
- Level 1: entities with addressing and temporal fields plus forward and
  reverse dependency keys; code only when include_code is set
- Level 2: Level 1 plus type-system facts (None where the language does
  not expose them)

Every export takes a filter (or "ALL") and can be split by entity_class
into parallel CODE and TEST results from one call.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from codegraph.config import ALL
from codegraph.entities import Entity, EntityClass, utc_now
from codegraph.export.tabular import (
    TabularDecodeError,
    decode_rows,
    encode_records,
)
from codegraph.graph import DependencyGraph
from codegraph.store.repository import GraphRepository

logger = structlog.get_logger(__name__)


class ExportLevel(IntEnum):
    EDGES = 0
    ENTITIES = 1
    TYPES = 2


class Encoding(str, Enum):
    JSON = "json"
    TABULAR = "tabular"


EDGE_FIELDS: tuple[str, ...] = ("from_key", "to_key", "edge_type")
LEVEL1_FIELDS: tuple[str, ...] = (
    "key",
    "name",
    "entity_type",
    "entity_class",
    "file_path",
    "line_start",
    "line_end",
    "language",
    "visibility",
    "current_ind",
    "future_ind",
    "future_action",
    "forward_deps",
    "reverse_deps",
)
CODE_FIELDS: tuple[str, ...] = ("current_code", "future_code")
LEVEL2_FIELDS: tuple[str, ...] = (
    "return_type",
    "param_names",
    "param_types",
    "generics",
    "is_async",
    "is_unsafe",
    "is_public",
    "trait_impls",
)

FILE_SUFFIXES = {Encoding.JSON: ".json", Encoding.TABULAR: ".tab"}


def entity_fields(level: int, include_code: bool) -> tuple[str, ...]:
    fields = LEVEL1_FIELDS
    if include_code:
        fields += CODE_FIELDS
    if level >= ExportLevel.TYPES:
        fields += LEVEL2_FIELDS
    return fields


def type_facts(entity: Entity) -> dict[str, Any]:
    sig = entity.language_signature
    return {
        "return_type": sig.get("return_type"),
        "param_names": sig.get("params"),
        "param_types": sig.get("param_types"),
        "generics": sig.get("generics"),
        "is_async": sig.get("is_async"),
        "is_unsafe": sig.get("is_unsafe"),
        "is_public": entity.visibility == "public",
        "trait_impls": sig.get("trait_impls") or None,
    }


def entity_record(
    entity: Entity,
    level: int,
    include_code: bool,
    graph: DependencyGraph,
) -> dict[str, Any]:
    state = entity.temporal_state
    lr = entity.line_range
    record: dict[str, Any] = {
        "key": entity.key,
        "name": entity.name,
        "entity_type": entity.kind,
        "entity_class": entity.entity_class.value,
        "file_path": entity.file_path,
        "line_start": lr.start if lr else None,
        "line_end": lr.end if lr else None,
        "language": entity.language,
        "visibility": entity.visibility,
        "current_ind": state.current_ind,
        "future_ind": state.future_ind,
        "future_action": (
            state.future_action.value if state.future_action else None
        ),
        "forward_deps": graph.forward_dependencies(entity.key),
        "reverse_deps": graph.reverse_dependencies(entity.key),
    }
    if include_code:
        record["current_code"] = entity.current_code
        record["future_code"] = entity.future_code
    if level >= ExportLevel.TYPES:
        record.update(type_facts(entity))
    return record


class ExportMetadata(BaseModel):
    level: int
    timestamp: str
    total_entities: int | None = None
    total_edges: int | None = None
    include_code: bool | None = None
    where_filter: str = Field(description="Filter used, or ALL")


class ContextExport(BaseModel):
    export_metadata: ExportMetadata
    entities: list[dict[str, Any]] | None = None
    edges: list[dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "export_metadata": self.export_metadata.model_dump(
                exclude_none=True
            )
        }
        if self.entities is not None:
            data["entities"] = self.entities
        if self.edges is not None:
            data["edges"] = self.edges
        return data

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def to_tabular(self, delimiter: str = ",") -> str:
        """Sections of header-plus-rows, each introduced by '@name count'."""
        meta = self.export_metadata
        level = meta.level
        include_code = bool(meta.include_code)
        data = self.to_dict()
        parts = [
            "@export_metadata 1",
            encode_records([data["export_metadata"]], delimiter=delimiter),
        ]
        if self.entities is not None:
            parts.append(f"@entities {len(self.entities)}")
            parts.append(
                encode_records(
                    self.entities,
                    entity_fields(level, include_code),
                    delimiter,
                )
            )
        if self.edges is not None:
            parts.append(f"@edges {len(self.edges)}")
            parts.append(encode_records(self.edges, EDGE_FIELDS, delimiter))
        return "\n".join(parts)

    def encode(
        self, encoding: Encoding | str = Encoding.JSON, delimiter: str = ","
    ) -> str:
        if Encoding(encoding) is Encoding.TABULAR:
            return self.to_tabular(delimiter)
        return self.to_json()

    def write(
        self,
        path: Path,
        encoding: Encoding | str = Encoding.JSON,
        delimiter: str = ",",
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.encode(encoding, delimiter) + "\n")
        return path


def parse_tabular(text: str, delimiter: str = ",") -> dict[str, Any]:
    """Read to_tabular() output back into the structured dict form."""
    lines = text.rstrip("\n").split("\n")
    data: dict[str, Any] = {}
    i = 0
    while i < len(lines):
        marker = lines[i]
        name, _, count = marker.partition(" ")
        if not name.startswith("@") or not count.isdigit():
            raise TabularDecodeError(f"line {i + 1}: bad section {marker!r}")
        if i + 1 >= len(lines):
            raise TabularDecodeError(f"section {name} has no header row")
        fields = lines[i + 1].split(delimiter)
        n = int(count)
        rows = lines[i + 2 : i + 2 + n]
        if len(rows) != n:
            raise TabularDecodeError(
                f"section {name}: expected {n} rows, got {len(rows)}"
            )
        records = decode_rows(fields, rows, delimiter)
        section = name[1:]
        data[section] = records[0] if section == "export_metadata" else records
        i += 2 + n
    if "export_metadata" not in data:
        raise TabularDecodeError("missing export_metadata section")
    return data


@dataclass
class SplitExport:
    code: ContextExport
    test: ContextExport


class ContextExporter:
    """Build exports from any GraphRepository."""

    def __init__(self, repo: GraphRepository):
        self.repo = repo

    def export(
        self,
        level: ExportLevel | int,
        where: str = ALL,
        include_code: bool = False,
    ) -> ContextExport:
        level = ExportLevel(level)
        timestamp = utc_now()

        if level is ExportLevel.EDGES:
            edges = [e.to_dict() for e in self.repo.query_edges(where)]
            return ContextExport(
                export_metadata=ExportMetadata(
                    level=int(level),
                    timestamp=timestamp,
                    total_edges=len(edges),
                    where_filter=where,
                ),
                edges=edges,
            )

        entities = self.repo.query_entities(where)
        graph = DependencyGraph.from_edges(self.repo.get_all_edges())
        records = [
            entity_record(e, level, include_code, graph) for e in entities
        ]
        logger.debug(
            "export built",
            level=int(level),
            entities=len(records),
            where=where,
        )
        return ContextExport(
            export_metadata=ExportMetadata(
                level=int(level),
                timestamp=timestamp,
                total_entities=len(records),
                include_code=include_code,
                where_filter=where,
            ),
            entities=records,
        )

    def export_split(
        self,
        level: ExportLevel | int,
        where: str = ALL,
        include_code: bool = False,
    ) -> SplitExport:
        """One export, partitioned into CODE-only and TEST-only results.

        Edges (level 0) follow the class of their source entity; edges
        whose source is not in the store count as CODE.
        """
        full = self.export(level, where, include_code)
        meta = full.export_metadata

        if full.edges is not None:
            classes = {
                e.key: e.entity_class for e in self.repo.get_all_entities()
            }
            parts: dict[EntityClass, list[dict[str, Any]]] = {
                EntityClass.CODE: [],
                EntityClass.TEST: [],
            }
            for edge in full.edges:
                cls = classes.get(edge["from_key"], EntityClass.CODE)
                parts[cls].append(edge)
            return SplitExport(
                code=ContextExport(
                    export_metadata=meta.model_copy(
                        update={"total_edges": len(parts[EntityClass.CODE])}
                    ),
                    edges=parts[EntityClass.CODE],
                ),
                test=ContextExport(
                    export_metadata=meta.model_copy(
                        update={"total_edges": len(parts[EntityClass.TEST])}
                    ),
                    edges=parts[EntityClass.TEST],
                ),
            )

        entities = full.entities or []
        code = [r for r in entities if r["entity_class"] == "CODE"]
        test = [r for r in entities if r["entity_class"] == "TEST"]
        return SplitExport(
            code=ContextExport(
                export_metadata=meta.model_copy(
                    update={"total_entities": len(code)}
                ),
                entities=code,
            ),
            test=ContextExport(
                export_metadata=meta.model_copy(
                    update={"total_entities": len(test)}
                ),
                entities=test,
            ),
        )

    def export_files(
        self,
        level: ExportLevel | int,
        out_dir: Path,
        name: str,
        where: str = ALL,
        include_code: bool = False,
        encoding: Encoding | str = Encoding.JSON,
        delimiter: str = ",",
        split: bool = True,
    ) -> list[Path]:
        """Write {name}{suffix} and, when split, {name}_test{suffix}."""
        suffix = FILE_SUFFIXES[Encoding(encoding)]
        if not split:
            result = self.export(level, where, include_code)
            path = out_dir / f"{name}{suffix}"
            return [result.write(path, encoding, delimiter)]
        parts = self.export_split(level, where, include_code)
        written = [
            parts.code.write(out_dir / f"{name}{suffix}", encoding, delimiter),
            parts.test.write(
                out_dir / f"{name}_test{suffix}", encoding, delimiter
            ),
        ]
        logger.info(
            "export written",
            level=int(level),
            files=[str(p) for p in written],
        )
        return written
