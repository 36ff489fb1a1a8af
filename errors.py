"""
Error taxonomy for the Food Delivery API

Service functions raise these; main.py turns them into JSON responses
of the form {"detail": message} with the mapped HTTP status.
"""

from typing import Optional


class ServiceError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInput(ServiceError):
    status_code = 400
    default_detail = "Invalid input"


class Unauthenticated(ServiceError):
    status_code = 401
    default_detail = "Authorization required"


class Forbidden(ServiceError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    default_detail = "Not found"


class Conflict(ServiceError):
    status_code = 409
    default_detail = "Conflict"


class Internal(ServiceError):
    status_code = 500
