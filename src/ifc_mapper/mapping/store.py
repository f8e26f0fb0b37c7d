"""History of verified mappings, reused to pre-seed later sessions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from ifc_mapper.mapping.models import (
    MappingEntry,
    MappingKind,
    MappingStoreData,
    PersistedMappingRecord,
)
from ifc_mapper.state import MAPPINGS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


def _restore(backend: KeyValueStore) -> MappingStoreData:
    raw = backend.get(MAPPINGS_KEY)
    if not raw:
        return MappingStoreData()
    try:
        return MappingStoreData.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Ignoring unreadable mapping history: %s", exc)
        return MappingStoreData()


class MappingStore:
    """
    Verified mappings per kind and source name, with usage statistics.

    With a backend attached the whole store is written back under
    `ifcMapper.mappings` after every verification.
    """

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        data: MappingStoreData | None = None,
    ) -> None:
        self._backend = backend
        if data is None:
            data = _restore(backend) if backend is not None else MappingStoreData()
        self._data = data

    @property
    def data(self) -> MappingStoreData:
        return self._data

    def record_for(
        self, kind: MappingKind, source: str
    ) -> PersistedMappingRecord | None:
        return self._data.table(kind).get(source)

    def record_verification(
        self, entry: MappingEntry, now: datetime | None = None
    ) -> PersistedMappingRecord:
        """Store the entry's current target and bump its usage count."""
        if not entry.target:
            raise ValueError(
                f"Cannot record {entry.kind} {entry.source!r} without a target"
            )
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        table = self._data.table(entry.kind)
        previous = table.get(entry.source)
        record = PersistedMappingRecord(
            target=entry.target,
            property_set=entry.property_set,
            predefined_type=entry.predefined_type,
            usage_count=(previous.usage_count if previous else 0) + 1,
            last_used=stamp,
        )
        table[entry.source] = record
        self._data.last_updated = stamp
        self._persist()
        return record

    def records(self, kind: MappingKind) -> dict[str, PersistedMappingRecord]:
        return dict(self._data.table(kind))

    def forget(self, kind: MappingKind, *sources: str) -> list[str]:
        """Drop the records of the given sources; returns the ones that existed."""
        table = self._data.table(kind)
        dropped = [s for s in sources if table.pop(s, None) is not None]
        if dropped:
            self._data.last_updated = datetime.now(timezone.utc).isoformat()
            self._persist()
        return dropped

    def to_json(self) -> str:
        return self._data.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(
        cls, text: str, backend: KeyValueStore | None = None
    ) -> MappingStore:
        return cls(backend=backend, data=MappingStoreData.model_validate_json(text))

    def clear(self) -> None:
        self._data = MappingStoreData()
        self._persist()

    def __len__(self) -> int:
        data = self._data
        return (
            len(data.class_mappings)
            + len(data.attribute_mappings)
            + len(data.association_mappings)
            + len(data.type_mappings)
        )

    def _persist(self) -> None:
        if self._backend is not None:
            self._backend.set(MAPPINGS_KEY, self.to_json())
