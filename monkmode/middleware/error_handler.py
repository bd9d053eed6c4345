import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from monkmode.services.friendship_errors import FriendshipError


def register_error_handlers(app: FastAPI):
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        sentry_sdk.capture_exception(exc)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": type(exc).__name__,
            },
        )

    @app.exception_handler(FriendshipError)
    async def friendship_error_handler(request: Request, exc: FriendshipError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "Error",
                "code": exc.code,
                "detail": exc.message,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)},
        )
