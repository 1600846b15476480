"""Entity extraction adapter: source files -> raw entity records."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from codegraph.config import DEFAULT_EXCLUDE_DIRS, DEFAULT_MAX_FILE_BYTES
from codegraph.errors import ConfigurationError
from codegraph.extraction.backends import BACKENDS, RawEntity, SyntaxBackend
from codegraph.extraction.patterns import PatternRegistry

logger = structlog.get_logger(__name__)


@dataclass
class FileExtraction:
    """Entities found in one file; path is relative to the ingest root."""

    path: str
    language: str
    entities: list[RawEntity] = field(default_factory=list)


class ExtractionAdapter:
    """Pick a backend per file from the pattern registry and run it."""

    def __init__(
        self,
        registry: PatternRegistry | None = None,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        backends: Mapping[str, SyntaxBackend] | None = None,
    ):
        self.registry = registry or PatternRegistry.default()
        self.max_file_bytes = max_file_bytes
        self.backends = dict(backends or BACKENDS)

    def supports(self, path: Path | str) -> bool:
        return self.registry.for_path(path) is not None

    def extract_source(
        self, source: str, rel_path: str, language: str | None = None
    ) -> FileExtraction:
        """Extract entities from in-memory source.

        Raises:
            ConfigurationError: no patterns or backend for the language.
            SyntaxError: the python backend could not parse the source.
        """
        patterns = (
            self.registry.get(language)
            if language
            else self.registry.for_path(rel_path)
        )
        if patterns is None:
            raise ConfigurationError(
                f"no extraction patterns for {language or rel_path!r}"
            )
        backend = self.backends.get(patterns.backend)
        if backend is None:
            raise ConfigurationError(
                f"unknown syntax backend {patterns.backend!r} "
                f"for {patterns.language}"
            )
        entities = backend.extract(source, patterns)
        return FileExtraction(
            path=rel_path, language=patterns.language, entities=entities
        )

    def extract_file(self, path: Path, root: Path) -> FileExtraction | None:
        """Extract one file, or None if it is unsupported or too large."""
        if not path.is_file() or not self.supports(path):
            return None
        size = path.stat().st_size
        if size > self.max_file_bytes:
            logger.debug("skipping large file", path=str(path), size=size)
            return None
        source = path.read_text(encoding="utf-8", errors="ignore")
        rel_path = path.relative_to(root).as_posix()
        return self.extract_source(source, rel_path)

    def iter_files(
        self,
        root: Path,
        exclude_dirs: frozenset[str] | set[str] = DEFAULT_EXCLUDE_DIRS,
    ) -> Iterator[Path]:
        """Supported files under root in a stable (sorted) order."""
        extensions = self.registry.extensions
        for path in sorted(root.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in extensions:
                continue
            rel_parts = path.relative_to(root).parts
            if any(part in exclude_dirs for part in rel_parts[:-1]):
                continue
            yield path
