"""Ingestion: walk a codebase and load its current snapshot into a store.

Every ingested entity starts unchanged (current_ind=True, future_ind=True,
no pending action) with its source as current code. Both relations are
created before anything is written, so DependencyEdges exists even when
no dependency is found.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from codegraph.classifier import TddClassifier
from codegraph.config import TestEntityMode
from codegraph.entities import (
    DependencyEdge,
    Entity,
    EntityClass,
    LineRange,
    TemporalState,
)
from codegraph.extraction import ExtractionAdapter, FileExtraction, RawEntity
from codegraph.keys import line_key
from codegraph.store.repository import MutableGraphStore

logger = structlog.get_logger(__name__)


@dataclass
class IngestResult:
    files_scanned: int = 0
    files_failed: int = 0
    entities_stored: int = 0
    tests_stored: int = 0
    tests_excluded: int = 0
    edges_stored: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
    duration_ms: float = 0.0


@dataclass
class _Extracted:
    entity: Entity
    raw: RawEntity


class Ingestor:
    """Extract, address, classify and store a codebase.

    ``test_mode`` is required: TestEntityMode.STORE keeps TEST entities
    (entity_class=TEST) and TestEntityMode.EXCLUDE drops them.
    """

    def __init__(
        self,
        store: MutableGraphStore,
        test_mode: TestEntityMode | str | None,
        adapter: ExtractionAdapter | None = None,
        classifier: TddClassifier | None = None,
    ):
        self.store = store
        self.test_mode = TestEntityMode.parse(test_mode)
        self.adapter = adapter or ExtractionAdapter()
        self.classifier = classifier or TddClassifier()

    def ingest(self, root: Path) -> IngestResult:
        """Ingest every supported file under root."""
        start = time.perf_counter()
        root = root.resolve()
        result = IngestResult()
        extractions: list[FileExtraction] = []

        for path in self.adapter.iter_files(root):
            result.files_scanned += 1
            try:
                extraction = self.adapter.extract_file(path, root)
            except (SyntaxError, ValueError, OSError) as e:
                rel = path.relative_to(root).as_posix()
                logger.warning("failed to extract", path=rel, error=str(e))
                result.files_failed += 1
                result.errors.append((rel, str(e)))
                continue
            if extraction is not None:
                extractions.append(extraction)

        self.ingest_extractions(extractions, result)
        result.duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "ingest complete",
            root=str(root),
            files=result.files_scanned,
            entities=result.entities_stored,
            edges=result.edges_stored,
            failed=result.files_failed,
        )
        return result

    def ingest_sources(self, sources: dict[str, str]) -> IngestResult:
        """Ingest in-memory sources keyed by relative path."""
        result = IngestResult(files_scanned=len(sources))
        extractions = [
            self.adapter.extract_source(source, rel_path)
            for rel_path, source in sources.items()
        ]
        return self.ingest_extractions(extractions, result)

    def ingest_extractions(
        self,
        extractions: Iterable[FileExtraction],
        result: IngestResult | None = None,
    ) -> IngestResult:
        result = result or IngestResult()
        self.store.create_schema()

        extracted: list[_Extracted] = []
        seen: set[str] = set()
        for extraction in extractions:
            for item in self._build(extraction, result):
                if item.entity.key in seen:
                    continue
                seen.add(item.entity.key)
                extracted.append(item)

        result.entities_stored = self.store.insert_entities(
            item.entity for item in extracted
        )
        result.edges_stored = self.store.insert_edges(
            resolve_references(extracted)
        )
        return result

    def _build(
        self, extraction: FileExtraction, result: IngestResult
    ) -> list[_Extracted]:
        items: list[_Extracted] = []
        for raw in extraction.entities:
            entity_class = self.classifier.classify(
                raw.name,
                raw.kind,
                extraction.language,
                extraction.path,
                raw.signature,
            )
            if entity_class is EntityClass.TEST:
                if self.test_mode is TestEntityMode.EXCLUDE:
                    result.tests_excluded += 1
                    continue
                result.tests_stored += 1

            line_range = LineRange(raw.line_start, raw.line_end)
            entity = Entity(
                key=line_key(
                    extraction.language,
                    raw.kind,
                    raw.name,
                    extraction.path,
                    line_range,
                ),
                kind=raw.kind,
                name=raw.name,
                file_path=extraction.path,
                language=extraction.language,
                line_range=line_range,
                visibility=raw.visibility,
                language_signature=raw.signature,
                current_code=raw.code,
                future_code=None,
                entity_class=entity_class,
                temporal_state=TemporalState.unchanged(),
            )
            items.append(_Extracted(entity, raw))
        return items


def resolve_references(items: list[_Extracted]) -> list[DependencyEdge]:
    """Turn name references into edges between known entity keys.

    A name resolves to a definition in the same file first, otherwise to
    the single definition with that name anywhere in the codebase.
    Ambiguous and unknown names produce no edge.
    """
    by_name: dict[str, list[Entity]] = defaultdict(list)
    for item in items:
        by_name[item.entity.name].append(item.entity)

    edges: list[DependencyEdge] = []
    for item in items:
        source = item.entity
        for edge_type, target_name in item.raw.references:
            candidates = by_name.get(target_name)
            if not candidates:
                continue
            local = [c for c in candidates if c.file_path == source.file_path]
            if len(local) == 1:
                target = local[0]
            elif not local and len(candidates) == 1:
                target = candidates[0]
            else:
                continue
            edges.append(
                DependencyEdge(
                    from_key=source.key,
                    to_key=target.key,
                    edge_type=edge_type,
                    source_location=(
                        f"{source.file_path}:{item.raw.line_start}"
                    ),
                )
            )
    return edges
