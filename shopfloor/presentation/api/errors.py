"""Map domain exceptions to HTTP responses"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shopfloor.domain.exceptions import (AuthenticationException, BusinessRuleException,
                                         PermissionDeniedError, ResourceNotFoundException,
                                         ShopfloorException, ValidationException)

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
STATUS_CODES: list[tuple[type[ShopfloorException], int]] = [
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (AuthenticationException, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ResourceNotFoundException, status.HTTP_404_NOT_FOUND),
    (BusinessRuleException, status.HTTP_400_BAD_REQUEST),
]


def status_for(exc: ShopfloorException) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def shopfloor_exception_handler(request: Request, exc: ShopfloorException) -> JSONResponse:
    """
    Render a domain exception.

    The body keeps FastAPI's `detail` field next to the exception's own
    error/message/details so that clients can read either. Permission
    failures also expose required_permission and required_level at the top
    level.
    """
    status_code = status_for(exc)
    body = {"detail": exc.message, **exc.to_dict()}
    if isinstance(exc, PermissionDeniedError):
        body.update(
            {
                key: exc.details[key]
                for key in ("required_permission", "required_level")
                if key in exc.details
            }
        )

    logger.info("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc)

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopfloorException, shopfloor_exception_handler)
