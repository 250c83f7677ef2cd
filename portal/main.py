# portal/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.core.config import settings
from portal.core.errors import PortalError
from portal.core.logger import configure_logging
from portal.core.redis import close_redis, init_redis
from portal.api.v1 import auth as auth_router
from portal.api.v1 import billing as billing_router
from portal.api.v1 import payment as payment_router
from portal.db.db import engine, Base

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    if settings.REDIS_URL:
        init_redis(settings.REDIS_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield
    finally:
        await close_redis()


app = FastAPI(title="Game portal service", lifespan=lifespan)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message, **extra}
    )


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
    extra = {"details": exc.details} if exc.details else {}
    return _error(exc.status_code, exc.message, **extra)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = {
        ".".join(str(p) for p in err["loc"] if p != "body"): err["msg"]
        for err in exc.errors()
    }
    return _error(400, "Invalid request", fields=fields)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


app.include_router(auth_router.router)
app.include_router(payment_router.router)
app.include_router(billing_router.router)
