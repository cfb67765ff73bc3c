"""Exception hierarchy shared by HTTP routes and Socket.IO handlers."""


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code}


class NotFound(AppError):
    """Raised when a referenced election or user does not exist."""

    def __init__(self, resource: str) -> None:
        super().__init__(message=f"{resource} not found", code='NOT_FOUND', status_code=404)


class InvalidState(AppError):
    """Raised when the election or participation state forbids the action."""

    def __init__(self, reason: str, code: str = 'INVALID_STATE') -> None:
        super().__init__(message=reason, code=code)


class InsufficientFunds(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            message=f"Insufficient balance: need {required}, have {available}",
            code='INSUFFICIENT_FUNDS',
        )


class InvalidRequest(AppError):
    """Raised for malformed payloads or unknown candidates."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code='INVALID_REQUEST')
