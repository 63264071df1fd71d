from typing import Any
from fastapi.responses import JSONResponse


def success_response(message: str, status_code: int = 200, **data: Any) -> JSONResponse:
    """Create a success response: ``{"message": ..., **data}``."""
    return JSONResponse(
        status_code=status_code,
        content={"message": message, **data}
    )


def error_response(error: str, status_code: int, details: Any = None, **data: Any) -> JSONResponse:
    """Create an error response: ``{"error": ..., "details": ..., **data}``."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "details": details, **data}
    )
