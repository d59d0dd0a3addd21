# errors.py
"""
Exceptions raised by the generator and progress code.

Each carries the HTTP status the API answers with; main.py turns them into
the {"success": false, "error": ...} envelope.
"""
from typing import Optional, Dict, Any


class StudyJoyError(Exception):
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ScopeError(StudyJoyError):
    """Missing or invalid book/chapter/paragraph/batch parameters."""
    status_code = 400


class NotFoundError(StudyJoyError):
    status_code = 404


class AuthError(StudyJoyError):
    status_code = 401


class LLMError(StudyJoyError):
    """The completion call failed or returned nothing usable."""
    status_code = 500


class ParseError(StudyJoyError):
    """The completion text held no parseable list of questions."""
    status_code = 500


class StorageError(StudyJoyError):
    status_code = 500
