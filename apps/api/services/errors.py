"""API error type rendered by the application's error boundary."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    """HTTPException carrying a user-facing message and optional error details."""

    def __init__(
        self,
        status_code: int,
        message: str = "Something went wrong",
        errors: Optional[List[Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message
        self.errors = list(errors or [])


def bad_request(message: str, errors: Optional[List[Any]] = None) -> ApiError:
    return ApiError(400, message, errors)


def unauthorized(message: str = "Unauthorized request") -> ApiError:
    return ApiError(401, message)


def forbidden(message: str = "User not authorized to perform this action") -> ApiError:
    # Single forbidden kind for every ownership failure.
    return ApiError(403, message)


def not_found(message: str) -> ApiError:
    return ApiError(404, message)


def conflict(message: str) -> ApiError:
    return ApiError(409, message)


def upstream_failure(message: str) -> ApiError:
    return ApiError(500, message)
