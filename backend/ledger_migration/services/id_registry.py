"""Identifier resolution between source record ids and target ids.

Each entity type has its own registry, filled as rows are created (or reused)
and read by later stages to turn source-side references into target foreign
keys. Registries live for one run only; nothing here is persisted.
"""

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum

from ledger_migration.core.errors import RegistryConflictError, StageOrderError


class EntityType(str, Enum):
    """Entity types migrated by the pipeline."""

    ORGANIZATION = "organization"
    COMMUNITY = "community"
    PROFILE = "profile"
    STORY = "story"


class IdentifierRegistry:
    """Write-once map of source id -> target id for one entity type."""

    def __init__(self, entity_type: EntityType) -> None:
        self.entity_type = entity_type
        self._ids: dict[str, str] = {}

    def set(self, source_id: str, target_id: str) -> None:
        """Register a mapping.

        Re-registering the same pair is a no-op; remapping a source id to a
        different target id raises RegistryConflictError.
        """
        existing = self._ids.get(source_id)
        if existing is None:
            self._ids[source_id] = target_id
        elif existing != target_id:
            raise RegistryConflictError(
                self.entity_type.value, source_id, existing, target_id
            )

    def resolve(self, source_id: str | None) -> str | None:
        """Target id for ``source_id``, or None when it was never migrated."""
        if source_id is None:
            return None
        return self._ids.get(source_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)


class RegistryView:
    """Read-only access to the registries one stage declared it reads."""

    def __init__(
        self,
        registries: Mapping[EntityType, IdentifierRegistry],
        stage: str,
    ) -> None:
        self._registries = dict(registries)
        self._stage = stage

    @property
    def readable(self) -> frozenset[EntityType]:
        return frozenset(self._registries)

    def resolve(self, entity_type: EntityType, source_id: str | None) -> str | None:
        registry = self._registries.get(entity_type)
        if registry is None:
            raise StageOrderError(
                f"Stage '{self._stage}' did not declare a read of the "
                f"{entity_type.value} registry"
            )
        return registry.resolve(source_id)


class RegistrySet:
    """All registries of one run, one per entity type."""

    def __init__(self) -> None:
        self._registries = {
            entity_type: IdentifierRegistry(entity_type) for entity_type in EntityType
        }

    def __getitem__(self, entity_type: EntityType) -> IdentifierRegistry:
        return self._registries[entity_type]

    def set(self, entity_type: EntityType, source_id: str, target_id: str) -> None:
        self._registries[entity_type].set(source_id, target_id)

    def resolve(self, entity_type: EntityType, source_id: str | None) -> str | None:
        return self._registries[entity_type].resolve(source_id)

    def view(self, reads: Iterable[EntityType], stage: str) -> RegistryView:
        return RegistryView(
            {entity_type: self._registries[entity_type] for entity_type in reads},
            stage=stage,
        )
