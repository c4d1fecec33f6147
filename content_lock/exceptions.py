from datetime import datetime
from typing import Any, Dict


class ContentLockError(Exception):
    """Base class for content lock errors"""
    pass


class WriteConflictError(ContentLockError):
    """Raised when a write hits a lock held by another user and no bypass was requested.

    Update and delete share this single error kind so interactive and API callers
    can render it the same way.
    """
    error_code = "write_conflict"

    def __init__(self, entity_id: int, entity_kind: str, owner_id: int, locked_since: datetime, action: str):
        self.entity_id = entity_id
        self.entity_kind = entity_kind
        self.owner_id = owner_id
        self.locked_since = locked_since
        self.action = action
        self.message = (f"{entity_kind} #{entity_id} is locked by user #{owner_id} "
                        f"since {locked_since.isoformat()}")
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "entity_id": self.entity_id,
            "entity_kind": self.entity_kind,
            "owner_id": self.owner_id,
            "locked_since": self.locked_since.isoformat(),
            "action": self.action,
        }


class InvalidFilterInput(ContentLockError):
    """Raised for a malformed maintenance filter; callers treat it as 'match nothing'."""
    def __init__(self, value: Any, field: str = "max age in hours"):
        self.value = value
        self.field = field
        self.message = f"Invalid {field}: {value!r}"
        super().__init__(self.message)
