"""codegraph - a temporal code-entity graph for LLM-driven edits."""

from codegraph.classifier import TddClassifier
from codegraph.config import Settings, TestEntityMode
from codegraph.diff import CodeDiff, DiffGenerator
from codegraph.entities import (
    DependencyEdge,
    Entity,
    EntityClass,
    FutureAction,
    LineRange,
    TemporalState,
)
from codegraph.errors import (
    AddressingError,
    CodeGraphError,
    ConfigurationError,
    DiffGenerationError,
    EntityNotFoundError,
    PreconditionError,
    RelationNotFoundError,
    StorageError,
    TemporalStateError,
)
from codegraph.export import ContextExporter, ExportLevel
from codegraph.graph import DependencyGraph
from codegraph.ingest import Ingestor, IngestResult
from codegraph.keys import hash_key, line_key, parse_key
from codegraph.store import CodeGraphStore, InMemoryRepository
from codegraph.temporal import StateResetManager, TemporalWriter

__version__ = "0.1.0"

__all__ = [
    "AddressingError",
    "CodeDiff",
    "CodeGraphError",
    "CodeGraphStore",
    "ConfigurationError",
    "ContextExporter",
    "DependencyEdge",
    "DependencyGraph",
    "DiffGenerationError",
    "DiffGenerator",
    "Entity",
    "EntityClass",
    "EntityNotFoundError",
    "ExportLevel",
    "FutureAction",
    "IngestResult",
    "Ingestor",
    "InMemoryRepository",
    "LineRange",
    "PreconditionError",
    "RelationNotFoundError",
    "Settings",
    "StateResetManager",
    "StorageError",
    "TddClassifier",
    "TemporalState",
    "TemporalStateError",
    "TemporalWriter",
    "TestEntityMode",
    "hash_key",
    "line_key",
    "parse_key",
]
