"""Map read-path exceptions onto the structured error envelope.

    {"success": false, "error": {"code": ..., "store": ..., "message": ...}}
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from history_replicator.exceptions import (
    InvalidQueryError,
    StoreError,
    StoreReadError,
    StoreUnavailableError,
    UnknownStoreError,
    UnsupportedQueryError,
)
from history_replicator.infrastructure.observability import get_api_logger

STATUS_BY_ERROR: list[tuple[type[StoreError], int]] = [
    (StoreUnavailableError, 503),
    (UnknownStoreError, 404),
    (UnsupportedQueryError, 400),
    (StoreReadError, 500),
]


def error_envelope(code: str, message: str, store: str | None = None) -> dict:
    return {
        "success": False,
        "error": {"code": code, "store": store, "message": message},
    }


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    status = next((s for cls, s in STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    logger = get_api_logger("errors")
    log = logger.error if status == 500 else logger.warning
    log("read_request_failed", code=exc.code, store=exc.store_id, path=request.url.path)
    return JSONResponse(
        status_code=status,
        content=error_envelope(exc.code, exc.message, exc.store_id),
    )


async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_envelope(
            InvalidQueryError.code, str(exc), request.path_params.get("store_id")
        ),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=error_envelope(
            InvalidQueryError.code, problems, request.path_params.get("store_id")
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(InvalidQueryError, invalid_query_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
