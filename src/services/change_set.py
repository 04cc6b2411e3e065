"""Entity change set: per-transaction snapshot of inserted, updated and deleted rows.

Which fields are diffed is decided by an explicit field table (AUDITED_FIELDS)
built once at import from the registered models, not by walking arbitrary
attributes at runtime. Primary-key columns never appear in a diff.

A change set is filled by TransactionContext from the session's pending
state on every flush and consumed once by AuditService.record_changes.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from src.models import Donation, Notification, Project, ProjectMember, Report, Role, User, utcnow

logger = logging.getLogger(__name__)

NIL_UUID = uuid.UUID(int=0)


class _Absent:
    """Marker for "no value on this side of the diff"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


class ChangeKind(str, Enum):
    """What happened to an entity in the transaction."""

    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"


@dataclass
class FieldDiff:
    """Old and new value of one field; either side may be ABSENT."""

    old: Any = ABSENT
    new: Any = ABSENT

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.old is not ABSENT:
            result["old"] = self.old
        if self.new is not ABSENT:
            result["new"] = self.new
        return result


@dataclass
class EntityChange:
    """Change record for one entity instance."""

    entity_kind: str
    entity_id: uuid.UUID
    change_kind: ChangeKind
    field_diffs: dict[str, FieldDiff] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditedEntity:
    """Field table entry: key columns and diffed columns of one entity kind."""

    kind: str
    key_fields: tuple[str, ...]
    fields: tuple[str, ...]


AUDITED_FIELDS: dict[type, AuditedEntity] = {}


def register_auditable(model: type) -> AuditedEntity:
    """Add a mapped model to the field table.

    Column attributes backed by primary-key columns become key fields; every
    other column attribute is diffed.
    """
    mapper = inspect(model)
    key_columns = set(mapper.primary_key)
    key_fields: list[str] = []
    fields: list[str] = []
    for attr in mapper.column_attrs:
        if any(column in key_columns for column in attr.columns):
            key_fields.append(attr.key)
        else:
            fields.append(attr.key)
    entry = AuditedEntity(kind=model.__name__, key_fields=tuple(key_fields), fields=tuple(fields))
    AUDITED_FIELDS[model] = entry
    return entry


# AuditLog is not registered: audit rows are never audited
for _model in (Role, User, Project, ProjectMember, Donation, Report, Notification):
    register_auditable(_model)


def audited_entity_for(instance: object) -> AuditedEntity | None:
    """Field table entry for an instance, None if its kind is not audited."""
    return AUDITED_FIELDS.get(type(instance))


def resolve_entity_id(instance: object, entry: AuditedEntity) -> uuid.UUID:
    """Single UUID key value; nil UUID for composite, absent or non-UUID keys."""
    if len(entry.key_fields) != 1:
        return NIL_UUID
    value = getattr(instance, entry.key_fields[0], None)
    return value if isinstance(value, uuid.UUID) else NIL_UUID


def apply_insert_defaults(instance: object) -> None:
    """Materialize Python-side column defaults on a pending row.

    Runs before the Created diff is taken so the diff shows what will be
    inserted, including the generated key and timestamps.
    """
    mapper = inspect(type(instance))
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        default = column.default
        if default is None or getattr(instance, attr.key) is not None:
            continue
        if default.is_scalar:
            setattr(instance, attr.key, default.arg)
        elif default.is_callable:
            setattr(instance, attr.key, default.arg(None))


def stamp_updated(instance: object, now: datetime | None = None) -> None:
    """Set updated_at on a modified row that has the column."""
    if "updated_at" in inspect(type(instance)).column_attrs:
        instance.updated_at = now or utcnow()


def _created_diffs(instance: object, entry: AuditedEntity) -> dict[str, FieldDiff]:
    return {name: FieldDiff(new=getattr(instance, name)) for name in entry.fields}


def _deleted_diffs(instance: object, entry: AuditedEntity) -> dict[str, FieldDiff]:
    state = inspect(instance)
    diffs = {}
    for name in entry.fields:
        history = state.attrs[name].history
        # Committed value: unchanged side, or the replaced side if edited before delete
        if history.deleted:
            diffs[name] = FieldDiff(old=history.deleted[0])
        elif history.unchanged:
            diffs[name] = FieldDiff(old=history.unchanged[0])
        else:
            diffs[name] = FieldDiff(old=getattr(instance, name))
    return diffs


def _updated_diffs(instance: object, entry: AuditedEntity) -> dict[str, FieldDiff]:
    state = inspect(instance)
    diffs = {}
    for name in entry.fields:
        history = state.attrs[name].history
        if not history.added:
            continue
        new = history.added[0]
        old = history.deleted[0] if history.deleted else ABSENT
        if old is not ABSENT and old == new:
            continue
        diffs[name] = FieldDiff(old=old, new=new)
    return diffs


class EntityChangeSet:
    """Ordered change records of one transaction, merged across flushes."""

    def __init__(self):
        self._changes: dict[int, EntityChange] = {}
        self._instances: dict[int, object] = {}

    def __iter__(self) -> Iterator[EntityChange]:
        return iter(list(self._changes.values()))

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)

    def capture(self, session: Session) -> None:
        """Record the session's pending inserts, updates and deletes."""
        now = utcnow()
        for instance in list(session.new):
            entry = audited_entity_for(instance)
            if entry is None:
                continue
            apply_insert_defaults(instance)
            self.add(instance, ChangeKind.CREATED, _created_diffs(instance, entry), entry)

        for instance in list(session.dirty):
            entry = audited_entity_for(instance)
            if entry is None or not session.is_modified(instance, include_collections=False):
                continue
            diffs = _updated_diffs(instance, entry)
            if not diffs:
                continue
            stamp_updated(instance, now)
            diffs = _updated_diffs(instance, entry)
            self.add(instance, ChangeKind.UPDATED, diffs, entry)

        for instance in list(session.deleted):
            entry = audited_entity_for(instance)
            if entry is None:
                continue
            self.add(instance, ChangeKind.DELETED, _deleted_diffs(instance, entry), entry)

    def add(
        self,
        instance: object,
        kind: ChangeKind,
        diffs: dict[str, FieldDiff],
        entry: AuditedEntity | None = None,
    ) -> None:
        """Merge one captured change into the set.

        Created+Updated stays Created with the latest values, Created+Deleted
        cancels out, Updated+Updated keeps the first old value, and
        Updated+Deleted becomes Deleted with the original values.
        """
        entry = entry or audited_entity_for(instance)
        if entry is None:
            return
        key = id(instance)
        existing = self._changes.get(key)

        if existing is None:
            self._instances[key] = instance
            self._changes[key] = EntityChange(
                entity_kind=entry.kind,
                entity_id=resolve_entity_id(instance, entry),
                change_kind=kind,
                field_diffs=dict(diffs),
            )
            return

        if existing.change_kind == ChangeKind.DELETED:
            return

        if existing.change_kind == ChangeKind.CREATED:
            if kind == ChangeKind.DELETED:
                del self._changes[key]
                del self._instances[key]
                return
            for name, diff in diffs.items():
                existing.field_diffs[name] = FieldDiff(new=diff.new)
            return

        # existing is UPDATED
        if kind == ChangeKind.DELETED:
            for name, diff in diffs.items():
                earlier = existing.field_diffs.get(name)
                old = earlier.old if earlier is not None else diff.old
                diffs[name] = FieldDiff(old=old)
            existing.change_kind = ChangeKind.DELETED
            existing.field_diffs = dict(diffs)
            return

        for name, diff in diffs.items():
            earlier = existing.field_diffs.get(name)
            old = earlier.old if earlier is not None else diff.old
            if old is not ABSENT and old == diff.new:
                existing.field_diffs.pop(name, None)
            else:
                existing.field_diffs[name] = FieldDiff(old=old, new=diff.new)

    def refresh_entity_ids(self) -> None:
        """Re-read key values after flush (keys assigned by the database)."""
        for key, change in self._changes.items():
            if change.entity_id != NIL_UUID:
                continue
            instance = self._instances[key]
            entry = audited_entity_for(instance)
            if entry is not None:
                change.entity_id = resolve_entity_id(instance, entry)


__all__ = [
    "ABSENT",
    "AUDITED_FIELDS",
    "NIL_UUID",
    "AuditedEntity",
    "ChangeKind",
    "EntityChange",
    "EntityChangeSet",
    "FieldDiff",
    "apply_insert_defaults",
    "audited_entity_for",
    "register_auditable",
    "resolve_entity_id",
]
