"""Write contract and reset collaborator for the temporal state store.

TemporalWriter is the only component that moves entities out of the
unchanged state. Each call mutates exactly one entity: it reads the whole
record, builds the new (validated) state and writes the record back in one
store call. Preconditions are checked before anything is written.

StateResetManager returns the store to a clean baseline, either by
re-running ingestion or by promoting pending future code in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from codegraph.classifier import TddClassifier
from codegraph.entities import (
    Entity,
    EntityClass,
    FutureAction,
    TemporalState,
    utc_now,
)
from codegraph.errors import (
    EntityNotFoundError,
    PreconditionError,
    TemporalStateError,
)
from codegraph.keys import hash_key
from codegraph.store.repository import MutableGraphStore

if TYPE_CHECKING:
    from codegraph.ingest import Ingestor, IngestResult

logger = structlog.get_logger(__name__)


def _require_code(action: FutureAction, future_code: str | None) -> str:
    if future_code is None:
        raise PreconditionError(
            f"{action.value} requires future code; nothing was written"
        )
    return future_code


class TemporalWriter:
    """Apply create/edit/delete proposals one entity at a time."""

    def __init__(
        self,
        store: MutableGraphStore,
        classifier: TddClassifier | None = None,
    ):
        self.store = store
        self.classifier = classifier or TddClassifier()

    def _require(self, key: str) -> Entity:
        entity = self.store.get_entity(key)
        if entity is None:
            raise EntityNotFoundError(key)
        return entity

    def create(
        self,
        file_path: str,
        name: str,
        kind: str,
        language: str,
        future_code: str | None,
        visibility: str = "public",
        language_signature: dict[str, Any] | None = None,
        entity_class: EntityClass | None = None,
        salt: str | None = None,
    ) -> Entity:
        """Propose a new entity. Returns it with its hash-based key.

        Proposing the same (file_path, name, kind) again replaces the
        pending future code of the earlier proposal.
        """
        code = _require_code(FutureAction.CREATE, future_code)
        key = hash_key(file_path, name, kind, salt=salt)
        signature = language_signature or {}

        existing = self.store.get_entity(key)
        if existing is not None and existing.temporal_state.current_ind:
            raise TemporalStateError(
                f"cannot create {key}: entity already exists"
            )

        if entity_class is None:
            entity_class = self.classifier.classify(
                name, kind, language, file_path, signature
            )
        entity = Entity(
            key=key,
            kind=kind,
            name=name,
            file_path=file_path,
            language=language,
            visibility=visibility,
            language_signature=signature,
            current_code=None,
            future_code=code,
            entity_class=entity_class,
            temporal_state=TemporalState.for_action(FutureAction.CREATE),
        )
        self.store.insert_entity(entity)
        logger.info("proposed create", key=key, file_path=file_path)
        return entity

    def edit(self, key: str, future_code: str | None) -> Entity:
        """Propose new code for an existing entity.

        Editing a pending create amends the proposed code and keeps the
        create action, since there is no current snapshot to edit.
        """
        code = _require_code(FutureAction.EDIT, future_code)
        entity = self._require(key)
        if not entity.temporal_state.current_ind:
            state = entity.temporal_state
        else:
            state = TemporalState.for_action(FutureAction.EDIT)
        updated = entity.with_state(state, future_code=code)
        self.store.update_entity(updated)
        logger.info("proposed edit", key=key)
        return updated

    def delete(self, key: str) -> Entity:
        """Propose removing an existing entity."""
        entity = self._require(key)
        if not entity.temporal_state.current_ind:
            raise TemporalStateError(
                f"cannot delete {key}: it only exists as a pending create; "
                "revert it instead"
            )
        updated = entity.with_state(
            TemporalState.for_action(FutureAction.DELETE), future_code=None
        )
        self.store.update_entity(updated)
        logger.info("proposed delete", key=key)
        return updated

    def revert(self, key: str) -> Entity | None:
        """Drop any pending action. A pending create is removed entirely."""
        entity = self._require(key)
        if not entity.temporal_state.current_ind:
            self.store.delete_entity(key, cascade_edges=True)
            logger.info("reverted create", key=key)
            return None
        updated = entity.with_state(TemporalState.unchanged(), None)
        self.store.update_entity(updated)
        logger.info("reverted", key=key)
        return updated

    def apply(
        self,
        key: str,
        action: FutureAction | str,
        future_code: str | None = None,
    ) -> Entity:
        """Apply an action to an existing key.

        Creates need a full entity description, so they go through
        create() instead.
        """
        action = FutureAction.parse(action)
        if action is FutureAction.CREATE:
            raise PreconditionError(
                "create requires file path, name, kind and language; "
                "use TemporalWriter.create()"
            )
        if action is FutureAction.EDIT:
            return self.edit(key, future_code)
        if action is FutureAction.DELETE:
            return self.delete(key)
        raise TemporalStateError(f"no action given for {key}")


@dataclass
class PromoteResult:
    created: list[str] = field(default_factory=list)
    edited: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.edited) + len(self.deleted)


class StateResetManager:
    """Return every entity to the unchanged baseline."""

    def __init__(self, store: MutableGraphStore):
        self.store = store

    def rebaseline(self, root: Path, ingestor: Ingestor) -> IngestResult:
        """Clear both relations and re-extract the codebase from disk.

        Run this after the file-write collaborator has applied a diff, so
        keys and line ranges reflect the new sources.
        """
        self.store.clear()
        logger.info("store cleared for re-baseline", root=str(root))
        return ingestor.ingest(root)

    def promote(self) -> PromoteResult:
        """Make pending future code current without touching the disk."""
        result = PromoteResult()
        for entity in self.store.get_changed_entities():
            action = entity.future_action
            if action is FutureAction.DELETE:
                self.store.delete_entity(entity.key, cascade_edges=True)
                result.deleted.append(entity.key)
                continue
            promoted = replace(
                entity,
                current_code=entity.future_code,
                future_code=None,
                temporal_state=TemporalState.unchanged(),
                last_modified=utc_now(),
            )
            self.store.update_entity(promoted)
            if action is FutureAction.CREATE:
                result.created.append(entity.key)
            else:
                result.edited.append(entity.key)

        logger.info(
            "promoted pending changes",
            created=len(result.created),
            edited=len(result.edited),
            deleted=len(result.deleted),
        )
        return result
