"""
Domain error kinds raised by the scheduling core.

main.py maps them onto HTTP responses; the sweep and worker handle them as
plain exceptions.
"""

from typing import Any, Optional


class ShopflowError(Exception):
    """Base class for errors surfaced to the caller"""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(ShopflowError):
    """Malformed input: bad time window, vehicle/customer mismatch, unknown status"""

    kind = "validation"
    status_code = 400


class NotFoundError(ShopflowError):
    """A referenced record does not exist"""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any, field: Optional[str] = None):
        super().__init__(f"No {entity.lower()} found with ID {entity_id}", field=field)
        self.entity = entity
        self.entity_id = entity_id


class SchedulingConflictError(ShopflowError):
    """Overlapping booking rejected under the strict conflict policy"""

    kind = "conflict"
    status_code = 409

    def __init__(self, conflicts: list):
        super().__init__(
            f"There is a scheduling conflict with {len(conflicts)} existing appointment(s)",
            field="startTime",
        )
        self.conflicts = conflicts
