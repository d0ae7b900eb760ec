"""
hackjudge/errors.py
Centralized error taxonomy for the judging backend

Services raise these; a single FastAPI exception handler renders them.

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional, e.g. every invalid field of a payload)
}
"""

import logging
from typing import Optional, Dict, Any, List
from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# RFC 4918 status; not exposed by every starlette release
HTTP_423_LOCKED = 423


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    NOT_FOUND = "NOT_FOUND"
    ASSIGNMENT_NOT_FOUND = "ASSIGNMENT_NOT_FOUND"
    EVALUATION_NOT_FOUND = "EVALUATION_NOT_FOUND"
    JUDGE_NOT_FOUND = "JUDGE_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"

    ASSIGNMENT_CONFLICT = "ASSIGNMENT_CONFLICT"
    DUPLICATE_ACCOUNT = "DUPLICATE_ACCOUNT"
    REBALANCE_CONFLICT = "REBALANCE_CONFLICT"

    PREREQUISITE_NOT_MET = "PREREQUISITE_NOT_MET"
    NOT_ASSIGNED = "NOT_ASSIGNED"
    EVALUATION_LOCKED = "EVALUATION_LOCKED"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    NOT_SUBMITTED = "NOT_SUBMITTED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class ValidationError(APIError):
    """400 - Malformed or out-of-range input. Carries every violation at once."""
    def __init__(self, errors: List[Dict[str, str]], message: str = "Evaluation validation failed."):
        self.errors = errors
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Validation Error",
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details={"errors": errors}
        )

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class NotFoundError(APIError):
    """404 Not Found - Resource does not exist"""
    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=code
        )


class ConflictError(APIError):
    """409 Conflict - Duplicate assignment or account"""
    def __init__(self, message: str, code: str = ErrorCode.ASSIGNMENT_CONFLICT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Conflict",
            message=message,
            code=code,
            details=details
        )


class PreconditionError(APIError):
    """400 - Operation requested before its prerequisite holds"""
    def __init__(
        self,
        message: str,
        code: str = ErrorCode.PREREQUISITE_NOT_MET,
        status_code: int = status.HTTP_400_BAD_REQUEST
    ):
        super().__init__(
            status_code=status_code,
            error="Precondition Failed",
            message=message,
            code=code
        )


class NotAssignedError(PreconditionError):
    """403 - Judge is not assigned to the team"""
    def __init__(self, judge_id: Any, team_id: Any):
        super().__init__(
            f"Judge {judge_id} is not assigned to team {team_id}.",
            code=ErrorCode.NOT_ASSIGNED,
            status_code=status.HTTP_403_FORBIDDEN
        )


class LockedError(APIError):
    """423 Locked - Evaluation frozen by an administrator"""
    def __init__(self, message: str = "Evaluation is locked by an Administrator."):
        super().__init__(
            status_code=HTTP_423_LOCKED,
            error="Locked",
            message=message,
            code=ErrorCode.EVALUATION_LOCKED
        )


class AlreadySubmittedError(APIError):
    """409 - Evaluation was already finalized"""
    def __init__(self, message: str = "Evaluation has already been submitted for this team."):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Invalid State",
            message=message,
            code=ErrorCode.ALREADY_SUBMITTED
        )


class NotSubmittedError(APIError):
    """400 - Only submitted evaluations can be updated"""
    def __init__(self, message: str = "Only submitted evaluations can be updated."):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Invalid State",
            message=message,
            code=ErrorCode.NOT_SUBMITTED
        )
