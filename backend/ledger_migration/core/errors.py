"""Migration error hierarchy.

Two classes of failure matter to a run:

- UnrecoverableMigrationError: connectivity, authorization or schema mismatch
  against the source or target. Propagates and fails the whole run.
- RecordMigrationError (and subclasses): one source record could not be
  transformed or written. Caught at the record boundary, logged and counted.
"""


class MigrationError(Exception):
    """Base exception for migration errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnrecoverableMigrationError(MigrationError):
    """Raised when the run cannot continue (source/target unreachable or rejected)."""

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class RecordMigrationError(MigrationError):
    """Raised when a single record cannot be migrated."""

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class RecordFieldError(RecordMigrationError):
    """Raised when a source field holds a value of the wrong shape."""

    def __init__(
        self,
        message: str,
        field: str,
        value: object = None,
        record_id: str | None = None,
    ) -> None:
        super().__init__(message, record_id=record_id)
        self.field = field
        self.value = value


class RegistryConflictError(RecordMigrationError):
    """Raised when a source id is re-registered with a different target id."""

    def __init__(
        self,
        entity_type: str,
        source_id: str,
        existing_id: str,
        new_id: str,
    ) -> None:
        super().__init__(
            f"{entity_type} {source_id} already registered as {existing_id}, "
            f"refusing to remap to {new_id}",
            record_id=source_id,
        )
        self.entity_type = entity_type
        self.existing_id = existing_id
        self.new_id = new_id


class StageOrderError(MigrationError):
    """Raised when a stage reads a registry no earlier stage produces."""

    pass
