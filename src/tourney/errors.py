"""
Error taxonomy for tournament operations.
"""
from typing import Any, Dict, Optional


class ErrorCode:
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    INVALID_INPUT = 'INVALID_INPUT'
    NOT_FOUND = 'NOT_FOUND'
    DUPLICATE_ENTRY = 'DUPLICATE_ENTRY'
    TOURNAMENT_FULL = 'TOURNAMENT_FULL'
    BRACKET_ALREADY_GENERATED = 'BRACKET_ALREADY_GENERATED'
    INSUFFICIENT_PARTICIPANTS = 'INSUFFICIENT_PARTICIPANTS'
    INVALID_TOURNAMENT_STATUS = 'INVALID_TOURNAMENT_STATUS'
    LOCK_TIMEOUT = 'LOCK_TIMEOUT'
    UNKNOWN_ERROR = 'UNKNOWN_ERROR'


ERROR_MESSAGES = {
    ErrorCode.UNAUTHORIZED: 'Login required.',
    ErrorCode.FORBIDDEN: 'You are not allowed to perform this action.',
    ErrorCode.VALIDATION_ERROR: 'The submitted data is invalid.',
    ErrorCode.INVALID_INPUT: 'Invalid input.',
    ErrorCode.NOT_FOUND: 'Not found.',
    ErrorCode.DUPLICATE_ENTRY: 'Already registered.',
    ErrorCode.TOURNAMENT_FULL: 'The tournament has reached its participant limit.',
    ErrorCode.BRACKET_ALREADY_GENERATED: 'The bracket has already been generated.',
    ErrorCode.INSUFFICIENT_PARTICIPANTS: 'At least 2 participants are required.',
    ErrorCode.INVALID_TOURNAMENT_STATUS: 'This action is not available in the current tournament status.',
    ErrorCode.LOCK_TIMEOUT: 'The tournament is busy, try again shortly.',
    ErrorCode.UNKNOWN_ERROR: 'An unexpected error occurred.',
}

_HTTP_STATUS = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.DUPLICATE_ENTRY: 400,
    ErrorCode.TOURNAMENT_FULL: 400,
    ErrorCode.BRACKET_ALREADY_GENERATED: 400,
    ErrorCode.INSUFFICIENT_PARTICIPANTS: 400,
    ErrorCode.INVALID_TOURNAMENT_STATUS: 400,
    ErrorCode.LOCK_TIMEOUT: 503,
}


def get_error_message(code: str) -> str:
    """Return the default user-facing message for an error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR])


class TournamentError(Exception):
    """Application error carrying a code that maps to an HTTP status."""

    def __init__(self, code: str, message: Optional[str] = None, details: Any = None):
        self.code = code
        self.message = message or get_error_message(code)
        self.details = details
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.message, 'code': self.code}

    def __repr__(self):
        return f"TournamentError(code={self.code}, message={self.message!r})"


class InsufficientParticipantsError(TournamentError):
    """Raised when a bracket is requested for fewer than two participants."""

    def __init__(self, count: int):
        super().__init__(ErrorCode.INSUFFICIENT_PARTICIPANTS, details={'count': count})
        self.count = count


def validation_error(message: str, details: Any = None) -> TournamentError:
    return TournamentError(ErrorCode.VALIDATION_ERROR, message, details)


def not_found_error(resource: str) -> TournamentError:
    return TournamentError(ErrorCode.NOT_FOUND, f'{resource} not found.')


def forbidden_error(message: Optional[str] = None) -> TournamentError:
    return TournamentError(ErrorCode.FORBIDDEN, message)
