# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Standardized error responses for the agent HTTP API.

{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message"
    }
}
"""

from __future__ import annotations

from starlette.responses import JSONResponse

VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": message,
            },
        },
        status_code=status_code,
    )


def missing_field_error(field_name: str) -> JSONResponse:
    """Create a 400 error for missing required field."""
    return error_response(
        VALIDATION_MISSING_FIELD,
        f"{field_name} is required",
        status_code=400,
    )
