from typing import Any, Optional, Dict
from fastapi.responses import JSONResponse


def success_response(
    message: str = "Success",
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Standard success response

    Args:
        message: Success message
        data: Response data (optional)
        status_code: HTTP status code (default: 200)

    Returns:
        JSONResponse with success format
    """
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = data

    return JSONResponse(content=response, status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400,
    code: str = "error",
    errors: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Standard error response

    Args:
        message: Error message
        status_code: HTTP status code (default: 400)
        code: Machine-readable error code
        errors: Per-field validation errors (optional)

    Returns:
        JSONResponse with error format
    """
    response = {
        "success": False,
        "message": message,
        "code": code
    }

    if errors:
        response["errors"] = errors

    return JSONResponse(content=response, status_code=status_code)
