"""Exception handlers mapping domain errors to HTTP responses.

Response shape for domain errors: ``{"error": "<message>", "code": "<Name>"}``.
Validation errors carry Protean's field messages: ``{"error": {field: [msgs]}}``.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from group_buying.exceptions import (
    AllocationExhausted,
    GroupBuyingError,
    StoreUnavailable,
    UpdateConflict,
)

_STATUS_BY_ERROR = {
    UpdateConflict: 409,
    AllocationExhausted: 409,
}


async def _domain_error(request: Request, exc: GroupBuyingError) -> JSONResponse:
    status_code = next(
        (code for error_cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_cls)),
        422,
    )
    return JSONResponse(status_code=status_code, content={"error": exc.message, "code": exc.code})


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": exc.messages, "code": "ValidationError"})


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc), "code": "NotFound"})


async def _store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": str(exc), "code": "StoreUnavailable"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GroupBuyingError, _domain_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(StoreUnavailable, _store_unavailable)
