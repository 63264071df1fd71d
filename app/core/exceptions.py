from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, Union
import json
import logging
import traceback

logger = logging.getLogger(__name__)


class APIException(Exception):
    """Custom API exception that returns standardized error responses."""

    def __init__(
        self,
        status_code: int,
        message: str,
        data: Union[dict, None] = None
    ):
        self.status_code = status_code
        self.message = message
        self.data = data
        super().__init__(message)


class InvalidInputError(APIException):
    """A required field is missing or malformed. Raised before any external call."""

    def __init__(self, message: str, data: Union[dict, None] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, data)


class NotFoundError(APIException):
    """A record needed by the flow does not exist."""

    def __init__(self, message: str, data: Union[dict, None] = None):
        super().__init__(status.HTTP_404_NOT_FOUND, message, data)


class SenderNotFoundError(NotFoundError):
    def __init__(self, sender_uid: str):
        super().__init__(f"Sender with UID {sender_uid} not found.", {"senderUid": sender_uid})


class RecipientNotFoundError(NotFoundError):
    def __init__(self, fusion_pay_id: str):
        super().__init__(
            f"Recipient with FusionPayID {fusion_pay_id} not found.",
            {"recipientFusionPayId": fusion_pay_id}
        )


class InternalError(APIException):
    """Anything else: storage failure, serialization failure, unexpected state."""

    def __init__(self, message: str, data: Union[dict, None] = None):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message, data)


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def serialize_error(exc: BaseException) -> Dict[str, Any]:
    """
    Render an exception as a JSON-serializable dict.

    Includes the fields a plain ``str(exc)`` would drop: class name, message,
    formatted stack, and any instance attributes such as ``code`` or ``reason``.
    Values that cannot be serialized are stringified.
    """
    payload: Dict[str, Any] = {
        "name": type(exc).__name__,
        "message": str(exc),
    }
    if exc.__traceback__ is not None:
        payload["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    if exc.args:
        payload["args"] = [_json_safe(arg) for arg in exc.args]
    for key, value in vars(exc).items():
        if key.startswith("_") or key in payload:
            continue
        payload[key] = _json_safe(value)
    if exc.__cause__ is not None:
        payload["cause"] = serialize_error(exc.__cause__)
    return payload


async def api_exception_handler(request: Request, exc: APIException):
    """Handler for custom API exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.data
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for request validation errors (malformed bodies)."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request body",
            "details": [_json_safe(error) for error in exc.errors()]
        }
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handler for unhandled exceptions."""
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": None
        }
    )
