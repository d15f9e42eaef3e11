"""Custom exceptions for repository operations."""


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class DatabaseConstraintError(DatabaseError):
    """Constraint violation (duplicate attendance row, unknown team id, etc)."""
    pass


class DatabaseOperationError(DatabaseError):
    """A query or write failed for a reason other than a constraint."""
    pass


class EntityNotFoundError(DatabaseError):
    """The row to update or report on does not exist for this caller."""

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} not found")
        else:
            super().__init__(f"{entity} {entity_id} not found")
