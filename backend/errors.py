"""
Booking domain errors
Typed failures raised by pricing, lifecycle and directory services
"""

from typing import Any, Dict, List, Optional


class BookingError(Exception):
    """Base class for recoverable booking-domain failures."""

    code = "BOOKING_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(BookingError):
    """Raised with every violated field constraint, not just the first."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, violations: List[Dict[str, str]]):
        self.violations = list(violations)
        fields = ", ".join(v["field"] for v in self.violations)
        super().__init__(f"Invalid booking request: {fields}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["violations"] = self.violations
        return data


def violations_from_errors(errors: List[Dict[str, Any]], skip_prefix: tuple = ()) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into {field, message} violations."""
    violations = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in skip_prefix]
        violations.append({"field": ".".join(loc) or "__root__", "message": error.get("msg", "invalid")})
    return violations


class InvalidTransition(BookingError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: Optional[str], target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Invalid booking status transition: {current} -> {target}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"current": self.current, "target": self.target})
        return data


class ResourceUnavailable(BookingError):
    code = "RESOURCE_UNAVAILABLE"
    status_code = 409


class InvalidCategory(BookingError):
    code = "INVALID_CATEGORY"
    status_code = 400

    def __init__(self, category: Optional[str]):
        self.category = category
        super().__init__(f"Unknown vehicle category: {category}")


class InvalidInput(BookingError):
    code = "INVALID_INPUT"
    status_code = 400


class NotFound(BookingError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")
