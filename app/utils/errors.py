"""
Error types raised by services and turned into JSON responses by
the handlers registered in ``register_error_handlers``.
"""


class PickemError(Exception):
    """Base error carrying the HTTP status it maps to"""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(PickemError):
    """Bad input shape or out-of-range values, rejected before any write"""

    status_code = 400

    def __init__(self, message="Validation failed", errors=None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self):
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class PreconditionError(PickemError):
    """The target is in a state that doesn't allow the operation"""

    status_code = 400


class AuthenticationError(PickemError):
    status_code = 401


class ForbiddenError(PickemError):
    status_code = 403


class NotFoundError(PickemError):
    status_code = 404


class ConflictError(PickemError):
    status_code = 409
