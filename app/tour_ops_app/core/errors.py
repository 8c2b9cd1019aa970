from __future__ import annotations


class SchemaBootstrapRequiredError(RuntimeError):
    """Raised when required tables are missing from the configured schema."""


class EntityNotFoundError(LookupError):
    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} '{entity_id}' was not found.")
        self.entity_type = str(entity_type)
        self.entity_id = str(entity_id)


class DuplicateEntityError(ValueError):
    def __init__(self, entity_type: str, name: str) -> None:
        super().__init__(f"{entity_type} with name '{name}' already exists.")
        self.entity_type = str(entity_type)
        self.name = str(name)


class ImportPayloadError(ValueError):
    """Raised when an import payload fails structural validation. Blocks the whole batch."""
