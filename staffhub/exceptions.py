"""
Exception hierarchy for the application lifecycle core.
Each error carries the HTTP status it maps to.
"""


class StaffHubError(Exception):
    """Base exception for all business errors"""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StaffHubError):
    """Missing field, invalid enum value or failed business precondition"""

    status_code = 400


class AuthorizationError(StaffHubError):
    """Role, ownership or state check failed"""

    status_code = 403


class NotFoundError(StaffHubError):
    """Referenced document does not exist"""

    status_code = 404


class ConflictError(StaffHubError):
    """Operation conflicts with existing data"""

    status_code = 409
