"""
Domain errors raised by the core operations. main.py maps each class to an
HTTP status, so routes and services never build error responses by hand.
"""


class NagarSevaError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(NagarSevaError):
    status_code = 400


class NotFoundError(NagarSevaError):
    status_code = 404


class AccessDeniedError(NagarSevaError):
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class ConflictError(NagarSevaError):
    status_code = 409


class UpstreamError(NagarSevaError):
    status_code = 502
