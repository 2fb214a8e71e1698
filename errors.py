"""
Unsent Pro API — Domain errors
Raised by the core; main.py turns them into the {success, error} envelope.
"""


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidRequestError(ApiError):
    status_code = 400


class ProviderValidationError(ApiError):
    """The configured provider did not confirm the purchase."""
    status_code = 403


class SubscriptionRequiredError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class PersistenceError(ApiError):
    status_code = 500


class GenerationError(ApiError):
    status_code = 500
