from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from lotto_lens import __version__
from lotto_lens.api_ticket_endpoints import ticket_router
from lotto_lens.config import get_settings
from lotto_lens.errors import AuthError, LottoLensError
from lotto_lens.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    level = configure_logging(get_settings().log_level)
    logger.info(f"Lotto Lens API {__version__} starting (log level {level})")
    yield
    logger.info("Lotto Lens API shutting down")


app = FastAPI(
    title="Lotto Lens API",
    description="Reads lottery tickets from photos and checks them against official results",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(ticket_router)
app.include_router(ticket_router, prefix="/api")


@app.exception_handler(LottoLensError)
async def lotto_lens_error_handler(request: Request, exc: LottoLensError):
    if isinstance(exc, AuthError):
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    else:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "request_error"
    if exc.status_code == 405:
        detail = "Method not allowed"
    return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
