class DatabaseError(Exception):
    """Base class for database exceptions"""
    pass


class EntityNotFoundError(DatabaseError):
    """Raised when a row looked up by primary key does not exist"""
    def __init__(self, entity_type: str, entity_id: any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = f"{entity_type} with id {entity_id} not found"
        super().__init__(self.message)


class DuplicateEntityError(DatabaseError):
    """Raised when a row violates a unique constraint outside of the lock insert race"""
    def __init__(self, entity_type: str, identifier: str):
        self.message = f"Duplicate {entity_type} with identifier {identifier}"
        super().__init__(self.message)
